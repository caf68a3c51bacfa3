"""Handles all configuration and session state. Config is the single entry point."""

import logging
import os
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterable, Iterator

from sagestate.errors import ConfigIOError, ResolutionError, UsageError
from sagestate.globals import (
    check_session_name,
    config_file,
    confirm,
    ensure_parent_exists,
    get_env_name,
    messages_file,
    session_file,
    sessions_dir,
)
from sagestate.input import Input, ToolCallResult
from sagestate.lock import ReadWriteLock
from sagestate.models import Model, list_chat_models
from sagestate.overlay import (
    SessionOverlay,
    SettingsOverlay,
    SettingsResolver,
    resolve_save_session,
)
from sagestate.session import SUMMARIZE_PROMPT, TEMP_SESSION_NAME, Session
from sagestate.settings import Settings, parse_value
from sagestate.state import StateFlags

SET_USAGE = "Usage: .set <key> <value>. If value is null, unset key."
SEED_PROMPT = "Start a session that incorporates the last question and answer?"


def now() -> str:
    """Local time as an RFC 3339 timestamp, second precision"""
    return datetime.now().astimezone().isoformat(timespec="seconds")


def format_option_value(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


class Config:
    """
    Routes every read and write of the overlayable settings to the active
    session, or to the defaults when no session is active, and owns the
    session lifecycle.
    """

    def __init__(
        self,
        settings: Settings,
        confirm: Callable[[str], bool] = confirm,
    ):
        self.settings = settings
        self.session: Session | None = None
        self.model: Model = Model("", "")
        self.last_message: tuple[Input, str] | None = None
        # Yes/no collaborator for seeding a new session, defaults to "no"
        self.confirm = confirm

    @classmethod
    def init(cls, confirm: Callable[[str], bool] = confirm) -> "Config":
        """Loads settings from the environment or the config file and binds the model."""
        platform = os.getenv(get_env_name("platform"))
        if platform:
            settings = Settings.from_env(platform)
        else:
            path = config_file()
            if not os.path.exists(path):
                from sagestate.wizard import create_config_file

                create_config_file(path)
            settings = Settings.load(path)
        config = cls(settings, confirm)
        config.setup_model()
        return config

    def setup_model(self):
        """Binds the configured model, or the first available one."""
        model_id = self.settings.model_id
        if not model_id:
            models = list_chat_models(self.settings)
            if not models:
                raise ResolutionError("No available model")
            model_id = models[0].id
        self.set_model(model_id)
        self.settings.model_id = model_id

    # <~~OVERLAY~~>
    @property
    def resolver(self) -> SettingsResolver:
        if self.session is not None:
            return SessionOverlay(self.session)
        return SettingsOverlay(self.settings)

    @property
    def temperature(self) -> float | None:
        return self.resolver.temperature

    @property
    def top_p(self) -> float | None:
        return self.resolver.top_p

    @property
    def effective_save_session(self) -> bool:
        """Effective save-session toggle: session, then settings, then persist."""
        return resolve_save_session(self.session, self.settings)

    def set_temperature(self, value: float | None):
        self.resolver.set_temperature(value)

    def set_top_p(self, value: float | None):
        self.resolver.set_top_p(value)

    def set_save_session(self, value: bool | None):
        self.resolver.set_save_session(value)

    # <~~MODEL~~>
    def resolve_model(self, model_id: str) -> Model:
        model = Model.find(list_chat_models(self.settings), model_id)
        if model is None:
            raise ResolutionError(f"No model '{model_id}'")
        if self.settings.max_output_tokens is not None:
            model.set_max_tokens(self.settings.max_output_tokens)
        return model

    def set_model(self, model_id: str):
        """Switches the live model, and the session's model when one is active."""
        model = self.resolve_model(model_id)
        if self.session is not None:
            self.session.set_model(model)
        self.model = model

    def set_model_id(self):
        """Remembers the live model so restore_model() can return to it"""
        self.settings.model_id = self.model.id

    def restore_model(self):
        self.set_model(self.settings.model_id)

    # <~~COMMANDS~~>
    def update(self, data: str):
        """Applies a '<key> <value>' command. 'null' unsets optional keys."""
        parts = data.split()
        if len(parts) != 2:
            raise UsageError(SET_USAGE)
        key, value = parts
        if key == "temperature":
            self.set_temperature(parse_value(value, float))
        elif key == "top_p":
            self.set_top_p(parse_value(value, float))
        elif key == "save_session":
            self.set_save_session(parse_value(value, bool))
        elif key == "max_output_tokens":
            self.model.set_max_tokens(parse_value(value, int))
        elif key == "model":
            self.set_model(value)
        elif key in ("function_calling", "save"):
            self.settings.update(key, value)
        else:
            raise UsageError(f"Unknown key `{key}`")

    def save_message(
        self,
        input: Input,
        output: str,
        tool_results: Iterable[ToolCallResult] = (),
    ):
        """Records a finished turn in the session, or in the message log."""
        input.clear_patch_text()
        self.last_message = (input, output)

        if self.session is not None:
            self.session.add_message(input, output)
            return

        if not self.settings.save or not output:
            return
        entry = f"# CHAT: {input.summary()} [{now()}]\n{input.render()}\n--------\n{output}\n"
        for result in tool_results:
            entry += f"\n{result.render()}\n"
        entry += "--------\n\n"

        path = messages_file()
        ensure_parent_exists(path)
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(entry)
        except OSError as e:
            raise ConfigIOError(f"Failed to create/append {path}: {e}", path) from e

    def last_reply(self) -> str:
        if self.last_message is None:
            return ""
        return self.last_message[1]

    # <~~SESSIONS~~>
    def use_session(self, name: str | None = None):
        """Starts the temporary session, a new named session, or loads a saved one."""
        if self.session is not None:
            raise UsageError(
                "Already in a session, please run '.exit session' first to exit the current session."
            )

        model = self.model
        if not name:
            path = session_file(TEMP_SESSION_NAME)
            if os.path.exists(path):
                try:
                    os.remove(path)
                except OSError as e:
                    raise ConfigIOError(
                        f"Failed to cleanup previous '{TEMP_SESSION_NAME}' session: {e}",
                        path,
                    ) from e
            session = Session(
                TEMP_SESSION_NAME, model, self.settings.temperature, self.settings.top_p
            )
        else:
            path = session_file(name)
            if not os.path.exists(path):
                session = Session(
                    name, model, self.settings.temperature, self.settings.top_p
                )
            else:
                session = Session.load(name, path)
                model = self.resolve_model(session.model_id)
                session.bind_model(model)

        if session.is_empty() and self.last_message is not None:
            input, output = self.last_message
            if self.confirm(SEED_PROMPT):
                session.add_message(input, output)

        self.set_model_id()
        self.model = model
        self.session = session
        logging.info(f"Started session '{session.name}' with {model.id}")

    def save_session(self, name: str = ""):
        """Saves the active session, renaming it first when name is given."""
        session = self._require_session()
        previous_name = session.name
        if name:
            check_session_name(name)
            session.name = name
        try:
            session.save(sessions_dir())
        except ConfigIOError:
            session.name = previous_name
            raise

    def exit_session(self):
        """
        Persists the active session when it has unsaved changes and saving is
        on, then drops it and returns to the model in use before it started.
        The session is dropped even when the model cannot be restored.
        """
        session = self._require_session()
        session.exit(sessions_dir(), self.effective_save_session)
        self.session = None
        self.last_message = None
        logging.info(f"Exited session '{session.name}'")
        self.restore_model()

    def clear_session_messages(self):
        self._require_session().clear_messages()

    def list_sessions(self) -> list[str]:
        """Lists all sessions that exist within the sessions directory"""
        try:
            files = os.listdir(sessions_dir())
        except OSError:
            return []
        return sorted(f[: -len(".json")] for f in files if f.endswith(".json"))

    def is_compressing_session(self) -> bool:
        return self.session is not None and self.session.compressing

    def start_compressing_session(self) -> str:
        """Marks the session as compressing and returns the summarization prompt."""
        session = self._require_session()
        if session.compressing:
            raise UsageError("The session is already being compressed.")
        session.compressing = True
        return SUMMARIZE_PROMPT

    def compress_session(self, summary: str):
        """Folds the summarization response into the session history."""
        session = self._require_session()
        if not session.compressing:
            raise UsageError("No session compression is pending.")
        session.compress(summary)

    def end_compressing_session(self):
        if self.session is not None:
            self.session.compressing = False

    def needs_compression(self) -> bool:
        if self.session is None:
            return False
        return self.session.needs_compression(self.settings.compress_threshold)

    def _require_session(self) -> Session:
        if self.session is None:
            raise UsageError("Not in a session.")
        return self.session

    # <~~QUERIES~~>
    def state(self) -> StateFlags:
        flags = StateFlags(0)
        if self.session is not None:
            if self.session.is_empty():
                flags |= StateFlags.SESSION_EMPTY
            else:
                flags |= StateFlags.SESSION
        return flags

    def prompt_context(self) -> dict[str, str]:
        """Values offered to the prompt template renderer. Absent keys mean inactive."""
        output = {
            "model": self.model.id,
            "client_name": self.model.client_name,
            "model_name": self.model.name,
            "max_input_tokens": str(self.model.max_input_tokens or 0),
        }
        if self.temperature:
            output["temperature"] = str(self.temperature)
        if self.top_p:
            output["top_p"] = str(self.top_p)
        if self.settings.save:
            output["save"] = "true"
        if self.session is not None:
            output["session"] = self.session.name
            output["dirty"] = format_option_value(self.session.dirty)
            tokens, percent = self.session.tokens_and_percent()
            output["consume_tokens"] = str(tokens)
            output["consume_percent"] = str(percent)
            output["user_messages_len"] = str(self.session.user_messages_len())
        return output

    def system_info(self) -> str:
        max_tokens = self.model.max_output_tokens
        items = [
            ("model", self.model.id),
            (
                "max_output_tokens",
                f"{max_tokens} (current model)" if max_tokens else "-",
            ),
            ("temperature", format_option_value(self.temperature)),
            ("top_p", format_option_value(self.top_p)),
            ("function_calling", format_option_value(self.settings.function_calling)),
            ("save", format_option_value(self.settings.save)),
            ("save_session", format_option_value(self.settings.save_session)),
            ("config_file", config_file()),
            ("messages_file", messages_file()),
            ("sessions_dir", sessions_dir()),
        ]
        return "\n".join(f"{name:<20}{value}" for name, value in items)

    def info(self) -> str:
        if self.session is not None:
            return self.session.export()
        return self.system_info()


class GlobalConfig:
    """
    The one shared Config, created at startup and passed to every component
    that needs it. Readers may overlap; writers are exclusive.
    """

    def __init__(self, config: Config):
        self._config = config
        self._lock = ReadWriteLock()

    @contextmanager
    def read(self) -> Iterator[Config]:
        with self._lock.read():
            yield self._config

    @contextmanager
    def write(self) -> Iterator[Config]:
        with self._lock.write():
            yield self._config
