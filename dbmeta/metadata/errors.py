"""Errors raised by capability readers and the describe writer."""

from typing import Optional


class MetadataError(Exception):
    """Base class for every catalog introspection error."""

    pass


class CapabilityAbsentError(MetadataError):
    """Raised when the primary capability of a command is not available."""

    def __init__(self, command: str, driver: str):
        self.command = command
        self.driver = driver
        super().__init__(f"{command} not supported by driver {driver}")


class NotSupportedError(MetadataError):
    """Raised by a reader that implements a capability but declines it at runtime.

    Callers treat it exactly like a capability the reader does not implement.
    """

    def __init__(self, message: str = "not supported"):
        super().__init__(message)


class QueryFailedError(MetadataError):
    """Raised when a catalog query fails.

    The original driver error is kept in ``__cause__`` and ``cause``.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class PatternParseError(MetadataError):
    """Raised for malformed search patterns.

    Pattern parsing is currently total, so nothing raises this yet.
    """

    pass
