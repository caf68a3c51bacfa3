"""State flags and assertions consumed by the prompt renderer."""

from dataclasses import dataclass
from enum import Flag, auto


class StateFlags(Flag):
    """Boolean facts about the current state. SESSION and SESSION_EMPTY are
    never set together: SESSION_EMPTY is the session-without-history case."""

    ROLE = auto()
    SESSION_EMPTY = auto()
    SESSION = auto()
    RAG = auto()


@dataclass(frozen=True)
class AssertState:
    """Either every flag in `flags` must be set (expect=True) or every flag
    must be clear (expect=False)."""

    flags: StateFlags
    expect: bool

    @classmethod
    def true(cls, flags: StateFlags) -> "AssertState":
        return cls(flags, True)

    @classmethod
    def false(cls, flags: StateFlags) -> "AssertState":
        return cls(flags, False)

    @classmethod
    def any(cls) -> "AssertState":
        return cls(StateFlags(0), False)

    def holds(self, state: StateFlags) -> bool:
        if self.expect:
            return state & self.flags == self.flags
        return not state & self.flags
