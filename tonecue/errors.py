from __future__ import annotations


class ToneCueError(Exception):
    """Base error for the tonecue library."""


class InvalidConfigError(ToneCueError):
    """Raised when settings or a recipe cannot be parsed or validated."""


class InvalidScheduleError(ToneCueError):
    """Raised when an audio node or parameter is scheduled against its contract."""


class EngineError(ToneCueError):
    """Base for failures the sound engine logs instead of propagating."""


class UnsupportedPlatformError(EngineError):
    """Raised when the host has no usable audio output."""


class ContextSuspendedError(EngineError):
    """Raised when a suspended output context cannot be resumed."""


class CatalogMissError(EngineError, KeyError):
    """Raised when a sound event has no recipe in the catalog."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class PersistenceError(EngineError):
    """Raised when engine state cannot be read from or written to storage."""
