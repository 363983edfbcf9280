"""In-memory tree backend for testing."""

from typing import Any, Dict, Optional

from .. import paths
from .base import TreeBackend, prune


class MemoryBackend(TreeBackend):
    """In-memory tree backend.

    Useful for testing and temporary storage. Data is lost when the
    backend is closed or the process ends.

    Example:
        backend = MemoryBackend()
        await backend.connect()

        key = await backend.append("ships", {"name": "Enterprise"})
        value = await backend.read(f"ships/{key}")
    """

    def __init__(self):
        super().__init__()
        self._root: Dict[str, Any] = {}

    async def connect(self, **kwargs) -> None:
        """Initialize the in-memory tree."""
        self._root = {}
        self._connected = True

    async def close(self) -> None:
        """Clear the in-memory tree."""
        self._root = {}
        self._connected = False

    async def read(self, path: str) -> Optional[Any]:
        """Read the subtree at path."""
        node: Any = self._root
        for segment in paths.split(path):
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        if isinstance(node, dict) and not node:
            return None
        return self.snapshot(node)

    async def write(self, path: str, value: Any) -> None:
        """Replace the subtree at path."""
        value = prune(self.snapshot(value))
        segments = paths.split(path)
        if not segments:
            # A scalar at the root is stored as the whole tree
            self._root = {} if value is None else value
            return
        if value is None:
            self._remove(segments)
            return

        if not isinstance(self._root, dict):
            self._root = {}
        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                # Writing below a leaf replaces the leaf with a branch
                child = {}
                node[segment] = child
            node = child
        node[segments[-1]] = value

    async def remove(self, path: str) -> bool:
        """Remove the subtree at path."""
        segments = paths.split(path)
        if not segments:
            existed = self._root != {}
            self._root = {}
            return existed
        return self._remove(segments)

    def _remove(self, segments) -> bool:
        """Delete the node and prune ancestors left empty."""
        trail = [self._root]
        node: Any = self._root
        for segment in segments[:-1]:
            node = node.get(segment) if isinstance(node, dict) else None
            if not isinstance(node, dict):
                return False
            trail.append(node)
        if not isinstance(node, dict) or segments[-1] not in node:
            return False
        del node[segments[-1]]

        for depth in range(len(trail) - 1, 0, -1):
            if trail[depth]:
                break
            del trail[depth - 1][segments[depth - 1]]
        return True
