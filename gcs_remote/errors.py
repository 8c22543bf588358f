from __future__ import annotations
"""Error taxonomy shared by the listing, download and batch delete paths."""


class StorageError(Exception):
    """Base class for every failure surfaced by :class:`RemoteStorage`."""


class BadInputError(StorageError, ValueError):
    """Raised when a caller-supplied argument is invalid."""


class NotFoundError(StorageError):
    """Raised when the remote object does not exist."""

    def __init__(self, key: str = ""):
        super().__init__(f"Object '{key}' not found" if key else "Object not found")
        self.key = key


class UnmodifiedError(StorageError):
    """Raised when a conditional request reports no change."""


class TransferCancelledError(StorageError):
    """Raised when an operation is cancelled by the caller."""


class StorageTimeoutError(StorageError):
    """Raised when an operation exceeds its deadline."""


class FatalError(StorageError):
    """Raised when a protocol or integrity invariant is violated. Never retried."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class OtherError(StorageError):
    """Wraps any other transport, auth or decode failure."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class AuthError(Exception):
    """Raised by token providers when no credential can be produced."""
