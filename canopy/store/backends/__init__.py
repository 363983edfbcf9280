"""Storage backends for canopy.store."""

from .base import TreeBackend
from .memory import MemoryBackend
from .sqlite import SQLiteBackend
from .rest import RestBackend

__all__ = [
    "TreeBackend",
    "MemoryBackend",
    "SQLiteBackend",
    "RestBackend",
]
