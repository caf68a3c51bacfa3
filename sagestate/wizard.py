"""First-run setup. Builds a config file when none exists."""

import sys

from keyring import set_password
from keyring.errors import KeyringError
from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.validation import Validator

from sagestate.globals import (
    COMPLETER_STYLER,
    CONSOLE,
    KEYRING_SERVICE,
    USER_NAME,
    confirm,
    log_exception,
)
from sagestate.models import BUILTIN_MODELS, create_client_config, list_client_types
from sagestate.settings import Settings


def client_validator(client_types: list[str]) -> Validator:
    """Prompt_toolkit validator accepting known client types only"""
    return Validator.from_callable(
        lambda text: text.strip() in client_types,
        error_message="Unknown platform.",
        move_cursor_to_end=True,
    )


def create_config_file(path: str):
    """Interactively creates the config file. Exits if the user declines."""
    if not confirm("No config file, create a new one?", default=True):
        sys.exit(0)

    client_types = list_client_types()
    client_type = prompt(
        HTML("Platform<seagreen>:</seagreen> "),
        completer=WordCompleter(client_types, ignore_case=True),
        validator=client_validator(client_types),
        validate_while_typing=False,
        style=COMPLETER_STYLER,
    ).strip()

    api_base = ""
    model_name = ""
    if client_type in ("ollama", "openai-compatible"):
        CONSOLE.print("[yellow]Format:[/yellow] http://ipaddress:port/v1")
        api_base = prompt(HTML("API endpoint<seagreen>:</seagreen> ")).strip()
    if not BUILTIN_MODELS.get(client_type):
        model_name = prompt(HTML("Model name<seagreen>:</seagreen> ")).strip()

    model_id, client = create_client_config(client_type, api_base, model_name)

    api_key = prompt(
        HTML("API key (leave empty to skip)<seagreen>:</seagreen> "),
        is_password=True,
    ).strip()
    if api_key:
        client_name = client.get("name") or client["type"]
        try:
            set_password(KEYRING_SERVICE, f"{USER_NAME}:{client_name}", api_key)
        except (KeyringError, ValueError, RuntimeError, OSError) as e:
            log_exception(e, "Error in create_config_file()")
            CONSOLE.print(f"[red]Could not save to your OS keychain:[/red] {e}")

    settings = Settings()
    settings.model_id = model_id
    settings.clients = [client]
    settings.save_to_disk(path)
    CONSOLE.print(f"✨ Saved config file to '{path}'\n")
