"""
Error taxonomy.

Every failure raised by the configuration and session layer derives from
SageStateError so the REPL can surface it in a single place.
"""


class SageStateError(Exception):
    """Base exception for all sagestate errors."""

    pass


class UsageError(SageStateError):
    """Malformed command input, unknown key, unparsable value or an
    operation that is not valid in the current state."""

    pass


class ResolutionError(SageStateError):
    """A requested model, session or file could not be found or read."""

    pass


class ConfigIOError(SageStateError):
    """A file could not be created, written or read."""

    def __init__(self, message: str, path: str = ""):
        self.path = path
        super().__init__(message)
