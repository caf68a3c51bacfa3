"""Session state, token accounting and session file I/O."""

import json
import logging
import os
from functools import lru_cache

import tiktoken
from openai.types.chat import ChatCompletionMessageParam

from sagestate.errors import ConfigIOError, ResolutionError
from sagestate.globals import check_session_name, ensure_parent_exists
from sagestate.input import Input
from sagestate.models import Model

TEMP_SESSION_NAME = "temp"

SUMMARIZE_PROMPT = (
    "Summarize the discussion briefly in 200 words or less "
    "to use as a prompt for future context."
)
SUMMARY_PROMPT = "This is a summary of the chat history as a recap: "


@lru_cache(maxsize=1)
def _encoder() -> tiktoken.Encoding:
    return tiktoken.get_encoding("o200k_base")


def encode(text: str) -> int:
    """Converts a string to a token count"""
    try:
        count = len(_encoder().encode(text))
    except Exception as e:
        logging.debug(f"Token encoding failed: {e}")
        count = 0
    return count


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_message_list(value) -> bool:
    if value is None:
        return True
    if not isinstance(value, list):
        return False
    return all(isinstance(m, dict) and isinstance(m.get("role"), str) for m in value)


def is_valid_session_data(data) -> bool:
    """Checks the shape and field types of a parsed session file"""
    if not isinstance(data, dict):
        return False
    if not isinstance(data.get("model"), str) or not data["model"]:
        return False
    for key in ("temperature", "top_p"):
        value = data.get(key)
        if value is not None and not _is_number(value):
            return False
    save_session = data.get("save_session")
    if save_session is not None and not isinstance(save_session, bool):
        return False
    return _is_message_list(data.get("messages")) and _is_message_list(
        data.get("compressed_messages")
    )


class Session:
    """A named overlay over the default settings, plus its history"""

    def __init__(
        self,
        name: str,
        model: Model,
        temperature: float | None = None,
        top_p: float | None = None,
    ):
        self.name = name
        self.model_id: str = model.id
        self.temperature = temperature
        self.top_p = top_p
        self.save_session: bool | None = None
        self.messages: list[ChatCompletionMessageParam] = []
        self.compressed_messages: list[ChatCompletionMessageParam] = []

        # Runtime only, never serialized
        self.model: Model = model
        self.path: str = ""
        self.dirty: bool = False
        self.compressing: bool = False

    @property
    def is_temp(self) -> bool:
        return self.name == TEMP_SESSION_NAME

    def is_empty(self) -> bool:
        return not self.messages and not self.compressed_messages

    # <~~OVERLAY SETTERS~~>
    def set_temperature(self, value: float | None):
        self.temperature = value
        self.dirty = True

    def set_top_p(self, value: float | None):
        self.top_p = value
        self.dirty = True

    def set_save_session(self, value: bool | None):
        self.save_session = value
        self.dirty = True

    def set_model(self, model: Model):
        """Switches the session to another model."""
        self.bind_model(model)
        self.dirty = True

    def bind_model(self, model: Model):
        """Attaches the live model object without marking the session dirty"""
        self.model_id = model.id
        self.model = model

    # <~~HISTORY~~>
    def add_message(self, input: Input, output: str):
        """Append a user/assistant turn to the conversation history"""
        self.messages.append({"role": "user", "content": input.render()})
        self.messages.append({"role": "assistant", "content": output})
        self.dirty = True

    def clear_messages(self):
        self.messages = []
        self.compressed_messages = []
        self.dirty = True

    def user_messages_len(self) -> int:
        """Number of user-authored turns"""
        return sum(1 for m in self.messages if m["role"] == "user")

    def build_messages(self, input: Input) -> list[ChatCompletionMessageParam]:
        """History plus the pending input, ready for a chat completion request"""
        messages = [dict(m) for m in self.messages]
        text = input.patched_text or input.render()
        messages.append({"role": "user", "content": text})
        return messages  # pyright: ignore

    def tokens(self) -> int:
        total = 0
        for msg in self.messages:
            content = msg.get("content") or ""
            total += encode(str(content))
        return total

    def tokens_and_percent(self) -> tuple[int, float]:
        """Consumed tokens and their share of the model's input window"""
        tokens = self.tokens()
        max_input = self.model.max_input_tokens
        if not max_input:
            return tokens, 0
        return tokens, round(tokens / max_input * 100, 2)

    # <~~COMPRESSION~~>
    def needs_compression(self, threshold: int) -> bool:
        """True when history has outgrown the threshold or the input window"""
        if self.compressing:
            return False
        tokens = self.tokens()
        if threshold and tokens > threshold:
            return True
        max_input = self.model.max_input_tokens
        return bool(max_input) and tokens >= max_input

    def compress(self, summary: str):
        """Folds the current history away and keeps the summary in its place."""
        self.compressed_messages.extend(self.messages)
        self.messages = [
            {"role": "system", "content": f"{SUMMARY_PROMPT}{summary.strip()}"}
        ]
        self.compressing = False
        self.dirty = True

    # <~~I/O~~>
    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "model": self.model_id,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "save_session": self.save_session,
            "messages": self.messages,
            "compressed_messages": self.compressed_messages,
        }

    def export(self) -> str:
        """Human-readable dump of the session, used by the info command"""
        data = self.to_dict()
        data["path"] = self.path or "-"
        tokens, percent = self.tokens_and_percent()
        data["total_tokens"] = tokens
        if self.model.max_input_tokens:
            data["max_input_tokens"] = self.model.max_input_tokens
            data["consume_percent"] = percent
        return json.dumps(data, indent=2, ensure_ascii=False)

    def save(self, sessions_dir: str):
        """Write the session to disk. The previous file survives a failed write."""
        check_session_name(self.name)
        path = os.path.join(sessions_dir, f"{self.name}.json")
        ensure_parent_exists(path)
        tmp_path = f"{path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise ConfigIOError(f"Failed to write session to {path}: {e}", path) from e
        self.path = path
        self.dirty = False
        logging.info(f"Saved session '{self.name}' to {path}")

    def exit(self, sessions_dir: str, save_session: bool):
        """Persists pending changes on the way out, unless saving is off"""
        if self.dirty and save_session:
            self.save(sessions_dir)

    @classmethod
    def load(cls, name: str, path: str) -> "Session":
        """Load a session file from disk. The model is bound by the caller."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ResolutionError(f"No session file found at {path}") from None
        except json.JSONDecodeError as e:
            raise ResolutionError(f"Corrupted session file {path}: {e}") from e
        except OSError as e:
            raise ConfigIOError(f"Failed to load session from {path}: {e}", path) from e
        if not is_valid_session_data(data):
            raise ResolutionError(f"Invalid session file {path}")

        model_id = data["model"]
        client_name, _, model_name = model_id.partition(":")
        session = cls(name, Model(client_name, model_name))
        session.model_id = model_id
        session.temperature = data.get("temperature")
        session.top_p = data.get("top_p")
        session.save_session = data.get("save_session")
        session.messages = list(data.get("messages") or [])
        session.compressed_messages = list(data.get("compressed_messages") or [])
        session.path = path
        logging.info(f"Loaded session '{name}' from {path}")
        return session
