"""Typed records over a tree store.

A Model subclass names the base path its records live under and the
fields that reference children of other models. Instances read and write
their fields as plain attributes and persist themselves through a
TreeStore.

Quick Start:
    from canopy.models import Model
    from canopy.store import connect

    class CrewMember(Model):
        location = "crew"

    class Ship(Model):
        location = "ships"
        relations = {"crew": CrewMember}

    db = await connect("memory://")

    ship = Ship({"name": "Enterprise"}, store=db)
    picard = await ship.has_many(CrewMember, "crew").create({"name": "Picard"})
    await ship.save()

    loaded = await Ship.find(db, ship.key)   # crew hydrated
    print(loaded.json())

Key Classes:
    - Model: record base class
    - HasMany: one-to-many relation binding
    - AttributeStore, LocationConfig: per-instance state
"""

from .attributes import AttributeStore
from .config import LocationConfig
from .model import Model, PRESENT
from .relations import HasMany
from .registry import ModelRegistry, RelationSpec, registry
from .serialization import SerializationError, from_json_compatible, to_json_compatible
from .exceptions import (
    ModelError,
    MissingLocationError,
    ModelStateError,
    RelationError,
    RelationLoadError,
)

__all__ = [
    # Main API
    "Model",
    "HasMany",
    "PRESENT",
    # State
    "AttributeStore",
    "LocationConfig",
    # Registry
    "ModelRegistry",
    "RelationSpec",
    "registry",
    # Serialization
    "to_json_compatible",
    "from_json_compatible",
    "SerializationError",
    # Exceptions
    "ModelError",
    "MissingLocationError",
    "ModelStateError",
    "RelationError",
    "RelationLoadError",
]
