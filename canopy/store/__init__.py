"""Path-based client for hierarchical key-value tree stores.

This module provides the narrow tree-store interface the model layer is
built on: nodes addressed by slash-delimited paths, children keyed by
store-generated push keys or caller-supplied keys.

Quick Start:
    from canopy.store import connect

    db = await connect("memory://")

    ref = await db.reference("ships").push({"name": "Enterprise"})
    print(ref.key)                 # generated push key
    print(await db.read("ships"))  # {ref.key: {'name': 'Enterprise'}}

Supported backends:
    - memory://           In-memory storage (testing)
    - sqlite:///path.db   SQLite file storage
    - sqlite:///:memory:  SQLite in-memory
    - https://...         Realtime-database REST endpoint (aiohttp)

Key Classes:
    - TreeStore: read / append / overwrite / child_path
    - Reference: handle on one node
    - connect(): Create a TreeStore from a URL
"""

from .core import TreeStore, connect
from .reference import Reference
from .backends import TreeBackend, MemoryBackend, SQLiteBackend, RestBackend
from .keys import PushKeyGenerator, generate_push_key
from .exceptions import (
    StoreError,
    StoreNotInitializedError,
    BackendError,
    InvalidPathError,
)

__all__ = [
    # Main API
    "TreeStore",
    "Reference",
    "connect",
    # Backends
    "TreeBackend",
    "MemoryBackend",
    "SQLiteBackend",
    "RestBackend",
    # Keys
    "PushKeyGenerator",
    "generate_push_key",
    # Exceptions
    "StoreError",
    "StoreNotInitializedError",
    "BackendError",
    "InvalidPathError",
]
