"""Core TreeStore class for path-based tree persistence."""

import logging
from typing import Any, Optional
from urllib.parse import urlparse

from . import paths
from .backends.base import TreeBackend
from .backends.memory import MemoryBackend
from .exceptions import StoreNotInitializedError
from .reference import Reference

logger = logging.getLogger(__name__)


class TreeStore:
    """Client for a hierarchical key-value tree.

    This is the narrow interface the model layer talks to: read a subtree,
    append a child under a generated key, overwrite a subtree, and compose
    child paths. Paths are slash-delimited; leading and trailing slashes
    are ignored.

    Example:
        from canopy.store import connect

        db = await connect("memory://")

        key = await db.append("ships", {"name": "Enterprise"})
        await db.overwrite(db.child_path("ships", key), {"name": "Defiant"})
        print(await db.read("ships"))  # {key: {'name': 'Defiant'}}

        await db.close()
    """

    def __init__(self, backend: TreeBackend):
        """Create a TreeStore with the given backend.

        Use connect() for convenient URL-based connection.

        Args:
            backend: Storage backend instance
        """
        self._backend = backend

    @property
    def backend(self) -> TreeBackend:
        return self._backend

    @property
    def connected(self) -> bool:
        return self._backend.connected

    def _check(self) -> None:
        if not self._backend.connected:
            raise StoreNotInitializedError(
                "Store connection is not open. Did you forget to await connect()?"
            )

    # Collaborator contract

    async def read(self, path: str) -> Optional[Any]:
        """Read the subtree at path.

        Args:
            path: Node path (e.g., "ships/-NxQ3...")

        Returns:
            The stored value, or None if nothing is stored there

        Raises:
            StoreNotInitializedError: If the store is not connected
        """
        self._check()
        path = paths.validate(path)
        logger.debug("read /%s", path)
        return await self._backend.read(path)

    async def append(self, path: str, value: Any) -> str:
        """Create a new child of path holding value.

        Returns:
            The store-generated child key
        """
        self._check()
        path = paths.validate(path)
        key = await self._backend.append(path, value)
        logger.debug("append /%s -> %s", path, key)
        return key

    async def overwrite(self, path: str, value: Any) -> None:
        """Replace the subtree at path wholesale (no merge)."""
        self._check()
        path = paths.validate(path)
        logger.debug("overwrite /%s", path)
        await self._backend.write(path, value)

    async def remove(self, path: str) -> bool:
        """Remove the subtree at path.

        Returns:
            True if a node existed at path
        """
        self._check()
        path = paths.validate(path)
        logger.debug("remove /%s", path)
        return await self._backend.remove(path)

    def child_path(self, path: str, key: str) -> str:
        """Compose the path of child key under path."""
        return paths.join(path, paths.validate_key(key))

    # References

    def reference(self, *segments: str) -> Reference:
        """Return a Reference to the node at the joined segments."""
        return Reference(self, paths.join(*segments))

    def root(self) -> Reference:
        """Return a Reference to the root of the tree."""
        return Reference(self, "")

    # Lifecycle

    async def close(self) -> None:
        """Close the store and release resources."""
        await self._backend.close()

    async def __aenter__(self) -> "TreeStore":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()


async def connect(url: str, **options) -> TreeStore:
    """Connect to a tree store using a URL.

    Supported URL schemes:
        - memory://                      In-memory tree (testing)
        - sqlite:///path.db              SQLite file storage
        - sqlite:///:memory:             SQLite in-memory
        - https://<db>.firebaseio.com    Realtime-database REST endpoint

    Args:
        url: Connection URL
        **options: Backend connection options (e.g. auth, timeout for REST)

    Returns:
        Connected TreeStore instance

    Example:
        db = await connect("sqlite:///fleet.db")
        db = await connect("memory://")
        db = await connect("https://fleet-1234.firebaseio.com", auth=token)
    """
    parsed = urlparse(url)
    scheme = parsed.scheme

    if scheme == "memory":
        backend = MemoryBackend()
        await backend.connect()

    elif scheme == "sqlite":
        from .backends.sqlite import SQLiteBackend

        # Handle sqlite:///path and sqlite:///:memory:
        path = parsed.path
        if path.startswith("/"):
            path = path[1:]  # Remove leading slash from file path

        backend = SQLiteBackend()
        await backend.connect(path=path if path else ":memory:")

    elif scheme in ("http", "https"):
        from .backends.rest import RestBackend

        backend = RestBackend(url)
        await backend.connect(**options)

    else:
        raise ValueError(f"Unknown storage scheme: {scheme}")

    logger.debug("connected to %s", url)
    return TreeStore(backend)
