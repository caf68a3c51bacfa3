"""Global functions and variables, used across various modules."""

import getpass
import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler

import keyring
from keyring.backends import null
from platformdirs import user_config_dir, user_data_dir
from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.styles import Style
from rich.console import Console

from sagestate.errors import ConfigIOError, UsageError

APP_NAME = "sagestate"
CONFIG_FILE_NAME = "config.json"
MESSAGES_FILE_NAME = "messages.md"
SESSIONS_DIR_NAME = "sessions"
LOG_DIR = os.path.join(user_data_dir(APP_NAME), "logs")
USER_NAME = getpass.getuser()
KEYRING_SERVICE = "SageStateAPI"

# Terminal integration
CONSOLE = Console()

# Main prompt prefix
PROMPT_PREFIX = HTML("<seagreen>〉</seagreen>")

# Dark style for all prompt_toolkit completers
COMPLETER_STYLER = Style.from_dict(
    {
        "completion-menu.completion": "bg:#202020 #ffffff",
        "completion-menu.completion.current": "bg:#024a1a #000000",
        "completion-menu.meta.completion": "bg:#202020 #aaaaaa",
        "completion-menu.meta.completion.current": "bg:#024a1a #000000",
    }
)

# Main prompt command completer
COMMAND_COMPLETER = WordCompleter(
    [
        ".clear messages",
        ".exit",
        ".exit session",
        ".help",
        ".info",
        ".model",
        ".quit",
        ".save session",
        ".session",
        ".sessions",
        ".set",
    ],
    match_middle=True,
    WORD=True,
)

# In-memory history for the root prompt, must mutate
main_history = InMemoryHistory()


def get_env_name(key: str) -> str:
    """Environment variable name for a setting, e.g. SAGESTATE_CONFIG_DIR"""
    return f"{APP_NAME}_{key}".upper()


def config_dir() -> str:
    return os.getenv(get_env_name("config_dir")) or user_config_dir(APP_NAME)


def local_path(name: str) -> str:
    return os.path.join(config_dir(), name)


def config_file() -> str:
    return os.getenv(get_env_name("config_file")) or local_path(CONFIG_FILE_NAME)


def messages_file() -> str:
    return os.getenv(get_env_name("messages_file")) or local_path(MESSAGES_FILE_NAME)


def sessions_dir() -> str:
    return os.getenv(get_env_name("sessions_dir")) or local_path(SESSIONS_DIR_NAME)


def check_session_name(name: str):
    """Session names must stay inside the sessions directory."""
    separators = [s for s in (os.sep, os.altsep, "/") if s]
    if any(s in name for s in separators) or ".." in name:
        raise UsageError(f"Invalid session name '{name}'")


def session_file(name: str) -> str:
    """Session file path for a session name"""
    check_session_name(name)
    return os.path.join(sessions_dir(), f"{name}.json")


def ensure_parent_exists(path: str):
    """Creates the parent directory of path if it does not exist yet."""
    parent = os.path.dirname(os.path.abspath(path))
    try:
        os.makedirs(parent, exist_ok=True)
    except OSError as e:
        raise ConfigIOError(
            f"Failed to write {path}, cannot create parent directory: {e}", path
        ) from e


def init_logger():
    """Initializes the logging system."""
    os.makedirs(LOG_DIR, exist_ok=True)
    date_str = datetime.now().strftime("%Y%m%d")
    # Output example: sagestate_20251109.log
    log_path = os.path.join(LOG_DIR, f"sagestate_{date_str}.log")
    # Max of 3 backups, max size of 1MB
    handler = RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    level = os.getenv(get_env_name("log_level"), "ERROR").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.ERROR),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
    )


def log_exception(e: Exception, context: str = ""):
    """Creates a full formatted traceback string and writes it to a log file"""
    import traceback

    tb = "".join(traceback.format_exception(type(e), e, e.__traceback__))
    msg = f"{context}\n{tb}" if context else tb
    logging.error(msg)


def setup_keyring_backend():
    """Safely detects a keyring backend."""
    try:
        keyring.get_keyring()
    except Exception as e:
        keyring.set_keyring(null.Keyring())
        logging.error(
            f"Keyring backend failed. Falling back to NullBackend. Error: {e}"
        )


def confirm(message: str, default: bool = False) -> bool:
    """Yes/no confirmation prompt. Empty input, Ctrl+C and Ctrl+D take the default."""
    hint = (
        "(<seagreen>Y</seagreen>/<ansired>n</ansired>)"
        if default
        else "(<seagreen>y</seagreen>/<ansired>N</ansired>)"
    )
    try:
        answer = prompt(HTML(f"{message} {hint}: ")).strip().lower()
    except (KeyboardInterrupt, EOFError):
        return default
    if not answer:
        return default
    return answer in ("y", "yes")


def root_prompt(completer=COMMAND_COMPLETER) -> str:
    return prompt(
        PROMPT_PREFIX,
        completer=completer,
        style=COMPLETER_STYLER,
        complete_while_typing=False,
        history=main_history,
    )
