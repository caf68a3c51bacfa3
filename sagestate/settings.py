"""Process-wide default settings, loaded once at startup."""

import json
import logging
import os

from sagestate.errors import ConfigIOError, ResolutionError, UsageError
from sagestate.globals import ensure_parent_exists, get_env_name
from sagestate.models import BUILTIN_MODELS, is_openai_compatible

UPDATABLE_KEYS = (
    "max_output_tokens",
    "temperature",
    "top_p",
    "function_calling",
    "save",
    "save_session",
)


def parse_value(value: str, kind: type):
    """Parses an optional numeric/boolean value. The literal 'null' unsets it."""
    if value == "null":
        return None
    if kind is bool:
        return parse_bool(value)
    try:
        return kind(value)
    except ValueError:
        raise UsageError(f"Invalid value '{value}'") from None


def parse_bool(value: str) -> bool:
    if value == "true":
        return True
    if value == "false":
        return False
    raise UsageError(f"Invalid value '{value}'")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _optional(check):
    return lambda value: value is None or check(value)


# Accepted value types for each key of the config file
FIELD_CHECKS = {
    "model_id": lambda value: isinstance(value, str),
    "temperature": _optional(_is_number),
    "top_p": _optional(_is_number),
    "save": lambda value: isinstance(value, bool),
    "save_session": _optional(lambda value: isinstance(value, bool)),
    "function_calling": lambda value: isinstance(value, bool),
    "max_output_tokens": _optional(_is_int),
    "compress_threshold": _is_int,
    "clients": lambda value: isinstance(value, list),
}


class Settings:
    """Default settings, overlaid by an active session"""

    def __init__(self):
        # Default values
        self.model_id: str = ""
        self.temperature: float | None = None
        self.top_p: float | None = None
        self.save: bool = False
        self.save_session: bool | None = None
        self.function_calling: bool = False
        self.max_output_tokens: int | None = None
        self.compress_threshold: int = 2000
        self.clients: list[dict] = []

    def to_dict(self) -> dict:
        data = dict(self.__dict__)
        data["model"] = data.pop("model_id")
        return data

    def update(self, key: str, value: str):
        """Parses value and stores it under key. Nothing changes on failure."""
        if key in ("temperature", "top_p"):
            setattr(self, key, parse_value(value, float))
        elif key == "max_output_tokens":
            self.max_output_tokens = parse_value(value, int)
        elif key == "save_session":
            self.save_session = parse_value(value, bool)
        elif key in ("function_calling", "save"):
            setattr(self, key, parse_bool(value))
        else:
            raise UsageError(f"Unknown key `{key}`")

    def save_to_disk(self, path: str):
        """Saves the settings to the config file."""
        ensure_parent_exists(path)
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2)
        except OSError as e:
            raise ConfigIOError(f"Failed to write config at {path}: {e}", path) from e
        if os.name == "posix":
            os.chmod(path, 0o600)

    @classmethod
    def load(cls, path: str) -> "Settings":
        """Loads the config file."""
        logging.debug(f"Loading config from {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ResolutionError(f"No config file at {path}") from None
        except json.JSONDecodeError as e:
            raise ResolutionError(f"Failed to load config at {path}: {e}") from e
        except OSError as e:
            raise ConfigIOError(f"Failed to load config at {path}: {e}", path) from e
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        settings = cls()
        if not isinstance(data, dict):
            raise ResolutionError("Config must be a JSON object")
        for name, val in data.items():
            key = "model_id" if name == "model" else name
            if key not in FIELD_CHECKS:
                logging.debug(f"Ignoring unknown config key `{name}`")
                continue
            if not FIELD_CHECKS[key](val):
                raise ResolutionError(f"{name}: invalid value")
            setattr(settings, key, val)
        return settings

    @classmethod
    def from_env(cls, platform: str) -> "Settings":
        """
        Synthesizes settings naming a single client of the given platform.
        The model name is read from SAGESTATE_MODEL_NAME when set.
        """
        model_name = os.getenv(get_env_name("model_name"))
        model_id = f"{platform}:{model_name}" if model_name else platform
        if is_openai_compatible(platform):
            client = {"type": "openai-compatible", "name": platform}
        else:
            client = {"type": platform}
        if model_name and not BUILTIN_MODELS.get(platform):
            client["models"] = [{"name": model_name}]
        return cls.from_dict({"model": model_id, "save": False, "clients": [client]})
