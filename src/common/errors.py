# ABOUTME: Declares the exception hierarchy shared by generation and learning components.
# ABOUTME: Separates configuration mistakes, session-protocol misuse, and storage failures.


class EngineError(Exception):
    """Base class for every error raised by the difficulty engine."""


class ConfigurationError(EngineError, ValueError):
    """Invalid input that must be rejected rather than silently defaulted."""


class SessionStateError(EngineError, RuntimeError):
    """A collector operation was called in the wrong session state."""


class StorageError(EngineError, OSError):
    """The storage collaborator could not persist or restore learning data."""
