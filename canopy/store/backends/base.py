"""Abstract base class for tree storage backends."""

import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, Optional, Tuple

from .. import paths
from ..exceptions import StoreNotInitializedError
from ..keys import generate_push_key


def prune(value: Any) -> Any:
    """Normalize a value for storage in the tree.

    Mappings are copied with string keys; None children and mappings that
    end up empty are dropped, since a tree node never holds an empty object.
    Returns None when nothing is left to store.

    Raises:
        InvalidPathError: If a nested mapping key is not a valid child key
    """
    if isinstance(value, dict):
        result = {}
        for key, child in value.items():
            key = paths.validate_key(str(key))
            child = prune(child)
            if child is not None:
                result[key] = child
        return result or None
    if isinstance(value, tuple):
        return list(value)
    return value


def flatten(path: str, value: Any) -> Iterator[Tuple[str, Any]]:
    """Yield (path, leaf) pairs for every leaf of an already pruned value."""
    if isinstance(value, dict):
        for key, child in value.items():
            yield from flatten(paths.join(path, key), child)
    elif value is not None:
        yield paths.normalize(path), value


def unflatten(prefix: str, leaves: Dict[str, Any]) -> Any:
    """Rebuild the subtree rooted at prefix from (path, leaf) pairs."""
    prefix = paths.normalize(prefix)
    if prefix in leaves:
        return leaves[prefix]

    tree: Dict[str, Any] = {}
    depth = len(paths.split(prefix))
    for path, leaf in leaves.items():
        if prefix and not path.startswith(prefix + "/"):
            continue
        segments = paths.split(path)[depth:]
        if not segments:
            continue
        node = tree
        for segment in segments[:-1]:
            node = node.setdefault(segment, {})
        node[segments[-1]] = leaf
    return tree or None


class TreeBackend(ABC):
    """Abstract base class for tree storage backends.

    Backends implement the actual storage mechanism (memory, SQLite, REST)
    while TreeStore handles path validation and the public API. All paths
    handed to a backend are already normalized.
    """

    def __init__(self):
        self._connected = False

    @property
    def connected(self) -> bool:
        """Whether connect() has been called and close() has not."""
        return self._connected

    def ensure_connected(self) -> None:
        """Raise StoreNotInitializedError unless the backend is connected."""
        if not self._connected:
            raise StoreNotInitializedError(
                f"{type(self).__name__} is not connected. Call connect() first."
            )

    @abstractmethod
    async def connect(self, **kwargs) -> None:
        """Establish connection to storage.

        Args:
            **kwargs: Backend-specific connection parameters
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close connection and release resources."""
        pass

    @abstractmethod
    async def read(self, path: str) -> Optional[Any]:
        """Read the subtree at path.

        Args:
            path: Normalized node path (e.g., "ships/-Nabc")

        Returns:
            The stored value, or None if nothing is stored there
        """
        pass

    @abstractmethod
    async def write(self, path: str, value: Any) -> None:
        """Replace the subtree at path wholesale.

        Args:
            path: Normalized node path
            value: JSON-compatible value; None or an empty mapping removes the node
        """
        pass

    @abstractmethod
    async def remove(self, path: str) -> bool:
        """Remove the subtree at path.

        Returns:
            True if something was stored there
        """
        pass

    async def append(self, path: str, value: Any) -> str:
        """Store value as a new child of path under a generated key.

        Returns:
            The generated child key
        """
        key = generate_push_key()
        await self.write(paths.join(path, key), value)
        return key

    @staticmethod
    def snapshot(value: Any) -> Any:
        """Detached copy of a stored value, safe to hand to callers."""
        return copy.deepcopy(value)
