"""
Routes reads and writes of the overlayable settings.

While a session is active its own copy is authoritative, otherwise the
defaults are. Config picks the resolver; callers never branch themselves.
"""

from typing import Protocol

from sagestate.session import Session
from sagestate.settings import Settings

# Built-in fallback when neither session nor settings decide
DEFAULT_SAVE_SESSION = True


class SettingsResolver(Protocol):
    @property
    def temperature(self) -> float | None: ...

    @property
    def top_p(self) -> float | None: ...

    @property
    def save_session(self) -> bool | None: ...

    def set_temperature(self, value: float | None): ...

    def set_top_p(self, value: float | None): ...

    def set_save_session(self, value: bool | None): ...


class SessionOverlay:
    """Reads and writes the active session's overlay."""

    def __init__(self, session: Session):
        self.session = session

    @property
    def temperature(self) -> float | None:
        return self.session.temperature

    @property
    def top_p(self) -> float | None:
        return self.session.top_p

    @property
    def save_session(self) -> bool | None:
        return self.session.save_session

    def set_temperature(self, value: float | None):
        self.session.set_temperature(value)

    def set_top_p(self, value: float | None):
        self.session.set_top_p(value)

    def set_save_session(self, value: bool | None):
        self.session.set_save_session(value)


class SettingsOverlay:
    """Reads and writes the default settings."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def temperature(self) -> float | None:
        return self.settings.temperature

    @property
    def top_p(self) -> float | None:
        return self.settings.top_p

    @property
    def save_session(self) -> bool | None:
        return self.settings.save_session

    def set_temperature(self, value: float | None):
        self.settings.temperature = value

    def set_top_p(self, value: float | None):
        self.settings.top_p = value

    def set_save_session(self, value: bool | None):
        self.settings.save_session = value


def resolve_save_session(session: Session | None, settings: Settings) -> bool:
    """Session toggle, then settings toggle, then the built-in default."""
    if session is not None and session.save_session is not None:
        return session.save_session
    if settings.save_session is not None:
        return settings.save_session
    return DEFAULT_SAVE_SESSION
