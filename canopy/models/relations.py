"""One-to-many relations between models."""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Type

from .exceptions import RelationError

if TYPE_CHECKING:
    from .model import Model

logger = logging.getLogger(__name__)


class HasMany:
    """Binds a parent model to the child model class of one relation.

    The parent's relation field maps child keys to placeholders; the
    children themselves are stored at the child model's own location.
    A HasMany performs no I/O until one of its async methods is awaited,
    and holds no state beyond its parent, child class and field.

    Example:
        class Ship(Model):
            location = "ships"
            relations = {"crew": "CrewMember"}

        ship = await Ship.find(db, ship_key)
        crew = ship.relation("crew")
        officer = await crew.fetch_relation("-NxQ3...")
        everyone = await crew.fetch_all()
    """

    def __init__(self, parent: "Model", child: Type["Model"], field: Optional[str] = None):
        """Create the relation.

        Args:
            parent: The owning model instance
            child: The child model class
            field: Parent field holding the {child_key: placeholder} mapping
        """
        self.parent = parent
        self.child = child
        self.field = field

    def __repr__(self) -> str:
        return (
            f"HasMany({type(self.parent).__name__} -> {self.child.__name__}, "
            f"field={self.field!r})"
        )

    def new_child(self, attributes: Optional[Mapping] = None) -> "Model":
        """Return a new child model sharing the parent's store."""
        return self.child(attributes, store=self.parent._store)

    async def fetch_relation(self, key: str) -> "Model":
        """Load the child stored at ``child_location/key``.

        A missing node yields an empty child carrying the key.
        """
        child = self.new_child()
        store = child._require_store()
        path = store.child_path(child._require_location(), key)
        value = await store.read(path)
        child._attributes.merge(child._record(value))
        child._key = key
        return child

    def _children(self) -> Dict[str, Any]:
        if self.field is None:
            raise RelationError(
                type(self.parent).__name__, self.child.__name__, "relation has no field"
            )
        children = self.parent._attributes.get(self.field)
        if children is None:
            children = {}
            self.parent._attributes[self.field] = children
        return children

    def keys(self) -> List[str]:
        """Child keys referenced by the parent's relation field."""
        return list(self._children())

    async def fetch_all(self) -> List["Model"]:
        """Fetch every referenced child concurrently.

        Unlike Model.load_relations() this leaves the parent untouched and
        raises the first failure.
        """
        keys = self.keys()
        logger.debug("fetching %d %s children", len(keys), self.child.__name__)
        return list(await asyncio.gather(*(self.fetch_relation(key) for key in keys)))

    async def create(self, attributes: Optional[Mapping] = None) -> "Model":
        """Persist a new child and reference it from the parent's field.

        The parent is not saved; call save() on it to store the reference.
        """
        children = self._children()
        child = await self.new_child()._create(attributes)
        children[child._key] = child
        return child

    async def once(self, *segments: str) -> Optional[Any]:
        """Read the node at the joined segments from the store root."""
        store = self.parent._require_store()
        return await store.root().child(*segments).get()
