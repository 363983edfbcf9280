"""Path handles into a TreeStore."""

from typing import TYPE_CHECKING, Any, Optional

from . import paths

if TYPE_CHECKING:
    from .core import TreeStore


class Reference:
    """A handle on one node of the tree.

    References are cheap, immutable and perform no I/O until one of the
    async verbs is awaited.

    Example:
        ships = db.reference("ships")
        enterprise = await ships.push({"name": "Enterprise"})
        print(enterprise.key)            # generated push key
        print(await enterprise.get())    # {'name': 'Enterprise'}
    """

    __slots__ = ("_store", "_path")

    def __init__(self, store: "TreeStore", path: str = ""):
        self._store = store
        self._path = paths.normalize(path)

    @property
    def store(self) -> "TreeStore":
        return self._store

    @property
    def path(self) -> str:
        """Normalized path of the node ("" for the root)."""
        return self._path

    @property
    def key(self) -> Optional[str]:
        """Terminal path segment, None for the root."""
        return paths.basename(self._path)

    @property
    def parent(self) -> Optional["Reference"]:
        """Reference to the parent node, None for the root."""
        if not self._path:
            return None
        return Reference(self._store, paths.parent(self._path))

    def child(self, *segments: str) -> "Reference":
        """Reference to a descendant node."""
        return Reference(self._store, paths.join(self._path, *segments))

    async def get(self) -> Optional[Any]:
        """Read the subtree at this node."""
        return await self._store.read(self._path)

    async def set(self, value: Any) -> None:
        """Overwrite the subtree at this node."""
        await self._store.overwrite(self._path, value)

    async def push(self, value: Any) -> "Reference":
        """Append a child with a generated key and return its reference."""
        key = await self._store.append(self._path, value)
        return self.child(key)

    async def remove(self) -> bool:
        """Remove the subtree at this node."""
        return await self._store.remove(self._path)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Reference):
            return NotImplemented
        return self._store is other._store and self._path == other._path

    def __hash__(self) -> int:
        return hash((id(self._store), self._path))

    def __repr__(self) -> str:
        return f"Reference({'/' + self._path!r})"
