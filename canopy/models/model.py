"""Model base class: attribute interception, persistence and relations."""

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple

from ..store import TreeStore
from ..store.backends.base import prune
from ..store.exceptions import StoreNotInitializedError
from ..store.reference import Reference
from .attributes import AttributeStore
from .config import LocationConfig
from .exceptions import (
    MissingLocationError,
    ModelError,
    ModelStateError,
    RelationError,
    RelationLoadError,
)
from .registry import RelationSpec, registry
from .relations import HasMany
from .serialization import from_json_compatible, to_json_compatible

logger = logging.getLogger(__name__)

# Marker stored in a relation field for a child that exists at that key
PRESENT = True


class Model:
    """A record stored at ``location/key`` in a tree store.

    Every public attribute read or write on an instance is redirected to
    the instance's attribute bag:

    - reading ``model.name`` returns the ``name`` field when the bag holds
      it, otherwise the class member of that name (so ``model.save`` is
      the method unless a ``save`` field has been stored);
    - writing ``model.name = value`` always stores into the bag, even when
      the class defines a member of that name.

    Names starting with an underscore are the instance's own state and are
    never intercepted.

    Subclasses configure storage with class attributes:

        class Ship(Model):
            relations = {"crew": "CrewMember"}
            fillable = ("name", "registry", "crew")

            def location(self):
                return "ships"

    ``location`` may also be a plain string class attribute.

    Example:
        db = await connect("memory://")

        ship = Ship({"name": "Enterprise"}, store=db)
        await ship.save()           # push: key assigned by the store
        ship.registry = "NCC-1701"
        await ship.save()           # update: overwrite in place

        loaded = await Ship(store=db).fetch(ship.get_key())
        print(loaded.name)          # Enterprise
    """

    relations: Dict[str, Any] = {}
    fillable: Tuple[str, ...] = ()

    _relation_specs_: Dict[str, RelationSpec] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        specs: Dict[str, RelationSpec] = {}
        for base in reversed(cls.__bases__):
            specs.update(getattr(base, "_relation_specs_", {}))
        for field, child in cls.__dict__.get("relations", {}).items():
            specs[field] = RelationSpec(field, child)
        cls._relation_specs_ = specs
        registry.register(cls)

    def __init__(
        self,
        attributes: Optional[Mapping] = None,
        *,
        store: Optional[TreeStore] = None,
        key: Optional[str] = None,
    ):
        """Create a model.

        Args:
            attributes: Initial field values
            store: Tree store the model persists to
            key: Key of an existing record at the model's location
        """
        self._attributes = AttributeStore()
        self._store = store
        self._key = key
        self._set_config()
        self._attributes.merge(attributes)

    # Attribute interception

    def __getattribute__(self, name: str) -> Any:
        if not name.startswith("_"):
            attributes = object.__getattribute__(self, "_attributes")
            if name in attributes:
                return attributes[name]
        return object.__getattribute__(self, name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        else:
            self._attributes[name] = value

    def __delattr__(self, name: str) -> None:
        if name.startswith("_"):
            object.__delattr__(self, name)
            return
        try:
            del self._attributes[name]
        except KeyError:
            raise AttributeError(name) from None

    def __dir__(self):
        return sorted(set(super().__dir__()) | set(self._attributes))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key={self._key!r}, {self._attributes.snapshot()!r})"

    def get_attribute(self, name: str, default: Any = None) -> Any:
        """Return a field value from the attribute bag, or default."""
        return self._attributes.get(name, default)

    def set_attribute(self, name: str, value: Any) -> "Model":
        """Store a field value in the attribute bag."""
        self._attributes[name] = value
        return self

    def set_attributes(self, attributes: Optional[Mapping] = None) -> "Model":
        """Merge attributes into the bag and return the model."""
        self._attributes.merge(attributes)
        return self

    def fill(self, attributes: Optional[Mapping] = None) -> "Model":
        """Merge attributes into the bag and return the model."""
        self._attributes.merge(attributes)
        return self

    def replace_attributes(self, attributes: Optional[Mapping] = None) -> "Model":
        """Replace every field with attributes and return the model."""
        self._attributes.replace(attributes)
        return self

    def get_attributes(self) -> Dict[str, Any]:
        """Return the live attribute dict.

        This is not a copy: mutating it changes the model.
        """
        return self._attributes.data

    # Identity & configuration

    def location(self) -> str:
        """Base path of this model's records. Override in subclasses."""
        return "/"

    def _set_config(self) -> None:
        cls = type(self)
        # Bypasses the bag so a stored "location" field never shadows it
        location = object.__getattribute__(self, "location")
        if callable(location):
            location = location()
        self._config = LocationConfig(
            location=location,
            relation_fields=frozenset(cls._relation_specs_),
            fillable_fields=frozenset(cls.fillable),
        )

    def get_config(self) -> LocationConfig:
        return self._config

    def set_location(self, location: str) -> "Model":
        """Point this instance at another base path."""
        self._config = self._config.with_location(location)
        return self

    def get_location(self) -> str:
        return self._config.location

    def set_key(self, key: Optional[str]) -> "Model":
        self._key = key
        return self

    def get_key(self) -> Optional[str]:
        return self._key

    @property
    def key(self) -> Optional[str]:
        """Key of the stored record, None until persisted."""
        return self._key

    def is_persisted(self) -> bool:
        return self._key is not None

    def get_store(self) -> Optional[TreeStore]:
        return self._store

    def with_store(self, store: TreeStore) -> "Model":
        """Bind the model to a tree store and return it."""
        self._store = store
        return self

    def _require_store(self) -> TreeStore:
        store = self._store
        if store is None:
            raise StoreNotInitializedError(
                f"{type(self).__name__} has no store. "
                f"Pass store= when constructing it or call with_store()."
            )
        if not store.connected:
            raise StoreNotInitializedError()
        return store

    def _require_location(self) -> str:
        location = self._config.location
        if not location:
            raise MissingLocationError(type(self).__name__)
        return location

    def _node_path(self) -> str:
        return self._require_store().child_path(self._require_location(), self._key)

    def reference(self) -> Reference:
        """Reference to this model's location in the store."""
        return self._require_store().reference(self._require_location())

    # Instances

    def new_instance(
        self, attributes: Optional[Mapping] = None, key: Optional[str] = None
    ) -> "Model":
        """Return a sibling record with its own attribute bag and key.

        The sibling shares this model's class, configuration and store.
        """
        return self._new_instance(attributes, key)

    def _new_instance(
        self, attributes: Optional[Mapping] = None, key: Optional[str] = None
    ) -> "Model":
        instance = object.__new__(type(self))
        instance._attributes = AttributeStore(attributes)
        instance._store = self._store
        instance._key = key
        instance._config = self._config
        return instance

    def _record(self, value: Any) -> Dict[str, Any]:
        """Convert a stored node value to attributes."""
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ModelError(
                f"{type(self).__name__} record must be a mapping, got {type(value).__name__}"
            )
        return from_json_compatible(dict(value))

    def _storage_value(self) -> Dict[str, Any]:
        """The attribute bag as written to the store.

        Hydrated children in relation fields collapse back to markers; the
        children themselves live at their own location.
        """
        value = {}
        for field, item in self._attributes.items():
            if self._config.is_relation(field) and isinstance(item, Mapping):
                value[field] = {
                    child_key: PRESENT if isinstance(child, Model) else to_json_compatible(child)
                    for child_key, child in item.items()
                }
            else:
                value[field] = to_json_compatible(item)
        return value

    def _writable_value(self) -> Dict[str, Any]:
        value = self._storage_value()
        if prune(value) is None:
            # Tree stores hold no empty nodes
            raise ModelStateError(
                f"{type(self).__name__} has no non-empty fields to store"
            )
        return value

    # Persistence

    async def create(self, attributes: Optional[Mapping] = None) -> "Model":
        """Persist a new record and return it.

        On a new model the attributes are merged in and the model itself is
        pushed. On a persisted model a new sibling is created from this
        model's fields overlaid with the attributes and pushed instead,
        leaving this model untouched.
        """
        return await self._create(attributes)

    async def _create(self, attributes: Optional[Mapping] = None) -> "Model":
        attributes = self._fillable_only(attributes or {})
        if self._key is not None:
            model = self._new_instance(self._cloned_attributes(attributes))
        else:
            model = self
            self._attributes.merge(attributes)
        return await model._push()

    def _cloned_attributes(self, patch: Mapping) -> Dict[str, Any]:
        """This model's fields overlaid with patch, for a new sibling record.

        Mapping values are copied one level deep so the sibling's relation
        fields never share a dict with this model.
        """
        values = {
            name: dict(value) if isinstance(value, Mapping) else value
            for name, value in self._attributes.items()
        }
        values.update(patch)
        return values

    def _fillable_only(self, attributes: Mapping) -> Dict[str, Any]:
        accepted = {}
        discarded = []
        for name, value in attributes.items():
            if self._config.is_fillable(name):
                accepted[name] = value
            else:
                discarded.append(name)
        if discarded:
            logger.warning(
                "Discarding non-fillable fields for %s: %s",
                type(self).__name__,
                ", ".join(sorted(discarded)),
            )
        return accepted

    async def push(self) -> "Model":
        """Append this model under its location and adopt the new key.

        Raises:
            StoreNotInitializedError: If no connected store is bound
            MissingLocationError: If the location is empty
            ModelStateError: If the model is already persisted
        """
        return await self._push()

    async def _push(self) -> "Model":
        store = self._require_store()
        location = self._require_location()
        if self._key is not None:
            raise ModelStateError(
                f"{type(self).__name__} {self._key} is already persisted; use save() or update()"
            )
        key = await store.append(location, self._writable_value())
        self._key = key
        logger.debug("pushed %s to %s/%s", type(self).__name__, location, key)
        return self

    async def update(self) -> "Model":
        """Overwrite the stored record with the attribute bag.

        Raises:
            ModelStateError: If the model has not been persisted
        """
        return await self._update()

    async def _update(self) -> "Model":
        if self._key is None:
            raise ModelStateError(
                f"{type(self).__name__} has no key; push() or save() it first"
            )
        path = self._node_path()
        await self._require_store().overwrite(path, self._writable_value())
        logger.debug("updated %s at %s", type(self).__name__, path)
        return self

    async def save(self) -> "Model":
        """Update the record if persisted, push it otherwise."""
        if self._key is not None:
            return await self._update()
        return await self._push()

    async def delete(self) -> bool:
        """Remove the stored record; the model becomes new again.

        Returns:
            True if a record existed at the model's path
        """
        if self._key is None:
            raise ModelStateError(f"{type(self).__name__} has no key to delete")
        existed = await self._require_store().remove(self._node_path())
        self._key = None
        return existed

    async def refresh(self) -> "Model":
        """Replace the attribute bag with the stored record.

        Relations come back as placeholders; await load_relations() to
        hydrate them again.
        """
        if self._key is None:
            raise ModelStateError(f"{type(self).__name__} has no key to refresh")
        value = await self._require_store().read(self._node_path())
        self._attributes.replace(self._record(value))
        return self

    async def fetch(self, key: str) -> "Model":
        """Load the record at ``location/key`` with its relations hydrated.

        A missing record yields an empty model carrying the key.
        """
        store = self._require_store()
        path = store.child_path(self._require_location(), key)
        value = await store.read(path)
        instance = self._new_instance(self._record(value), key)
        await instance._load_relations()
        return instance

    async def all(self) -> List["Model"]:
        """Load every record stored under this model's location."""
        store = self._require_store()
        children = await store.read(self._require_location()) or {}
        if not isinstance(children, Mapping):
            return []
        instances = [
            self._new_instance(self._record(value), key)
            for key, value in children.items()
            if isinstance(value, Mapping)
        ]
        await asyncio.gather(*(instance._load_relations() for instance in instances))
        return instances

    @classmethod
    async def make(cls, store: TreeStore, attributes: Optional[Mapping] = None) -> "Model":
        """Construct and persist a new record in one step."""
        return await cls(store=store)._create(attributes)

    @classmethod
    async def find(cls, store: TreeStore, key: str) -> "Model":
        """Fetch the record at key with its relations hydrated."""
        return await cls(store=store).fetch(key)

    def pipe(self, value: Any) -> Any:
        """Call value with the model if callable, else return value."""
        if callable(value):
            return value(self)
        return value

    # Serialization

    def data(self) -> Dict[str, Any]:
        """Snapshot of the attributes plus ``key``.

        Every relation field becomes a list with one entry per child key:
        the child's data() once hydrated, otherwise just ``{"key": child_key}``.
        Await load_relations() first to get child data.
        """
        return self._data()

    def _data(self) -> Dict[str, Any]:
        result = {}
        for field, value in self._attributes.items():
            if self._config.is_relation(field) and isinstance(value, Mapping):
                result[field] = [
                    child._data() if isinstance(child, Model) else {"key": child_key}
                    for child_key, child in value.items()
                ]
            else:
                result[field] = to_json_compatible(value)
        result["key"] = self._key
        return result

    def json(self, **kwargs) -> str:
        """Return data() encoded as JSON text."""
        return json.dumps(self._data(), **kwargs)

    @classmethod
    def from_json(
        cls,
        text: str,
        key: Optional[str] = None,
        store: Optional[TreeStore] = None,
    ) -> "Model":
        """Rebuild a model from the output of json().

        Relation lists become mappings of child key to child model; entries
        carrying only a key come back as placeholders.
        """
        values = json.loads(text)
        if not isinstance(values, dict):
            raise ModelError(f"Expected a JSON object for {cls.__name__}")
        return cls._from_data(values, key, store)

    @classmethod
    def _from_data(
        cls,
        values: Dict[str, Any],
        key: Optional[str],
        store: Optional[TreeStore],
    ) -> "Model":
        values = dict(values)
        stored_key = values.pop("key", None)
        for field, declared in cls._relation_specs_.items():
            children = values.get(field)
            if not isinstance(children, list):
                continue
            child_cls = declared.resolve(cls.__name__)
            values[field] = {
                item["key"]: (
                    PRESENT
                    if item.keys() == {"key"}
                    else child_cls._from_data(item, None, store)
                )
                for item in children
                if isinstance(item, dict) and item.get("key") is not None
            }
        return cls(
            from_json_compatible(values),
            store=store,
            key=key if key is not None else stored_key,
        )

    # Relations

    def has_many(self, child: Any, field: Optional[str] = None) -> HasMany:
        """Return a relation from this model to a child model class."""
        return HasMany(self, child, field)

    def relation(self, field: str) -> HasMany:
        """Return the relation declared for field.

        Raises:
            RelationError: If field is not a declared relation
        """
        return self._relation(field)

    def _relation(self, field: str) -> HasMany:
        declared = type(self)._relation_specs_.get(field)
        if declared is None:
            raise RelationError(type(self).__name__, field)
        return HasMany(self, declared.resolve(type(self).__name__), field)

    def is_relation(self, field: str) -> bool:
        return self._config.is_relation(field)

    def get_relations(self) -> List[str]:
        """Names of declared relation fields present in the bag."""
        return [field for field in self._attributes if self._config.is_relation(field)]

    async def load_relations(self) -> "Model":
        """Hydrate every declared relation field in place.

        Each referenced child is fetched concurrently from its own location
        and replaces its placeholder as soon as it arrives. The key set of
        each relation field is left unchanged.

        Raises:
            RelationLoadError: If any child fetch failed; the other children
                are still hydrated and the failed ones keep their placeholder
        """
        return await self._load_relations()

    async def _load_relations(self) -> "Model":
        pending = []
        for field in list(self._attributes):
            children = self._attributes[field]
            if not self._config.is_relation(field) or not isinstance(children, Mapping):
                continue
            relation = self._relation(field)
            for child_key in list(children):
                pending.append((field, child_key, relation, children))
        if not pending:
            return self

        logger.debug(
            "loading %d relation(s) on %s %s", len(pending), type(self).__name__, self._key
        )

        async def hydrate(relation: HasMany, children: Dict[str, Any], child_key: str):
            child = await relation.fetch_relation(child_key)
            children[child_key] = child
            return child

        results = await asyncio.gather(
            *(hydrate(relation, children, child_key) for _, child_key, relation, children in pending),
            return_exceptions=True,
        )

        failures = {}
        for (field, child_key, _, _), result in zip(pending, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Failed to load %s.%s/%s: %s", type(self).__name__, field, child_key, result
                )
                failures[(field, child_key)] = result
            elif isinstance(result, BaseException):
                raise result
        if failures:
            raise RelationLoadError(type(self).__name__, failures)
        return self
