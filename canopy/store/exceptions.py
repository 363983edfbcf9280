"""Exceptions for the canopy.store module."""

from typing import Optional


class StoreError(Exception):
    """Base exception for all store errors."""

    pass


class StoreNotInitializedError(StoreError, RuntimeError):
    """Store connection used before it was established."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "Store has not been initialized. Did you forget to await connect()?"
        )


class BackendError(StoreError):
    """The storage backend rejected or failed a request."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class InvalidPathError(StoreError, ValueError):
    """Path or key is not addressable in the tree."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid path {path!r}: {reason}")
