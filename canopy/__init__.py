"""
Canopy - Object mapping for hierarchical key-value tree stores.

Submodules:
    canopy.models - Model records, attribute interception, relations
    canopy.store - Tree-store client (memory, SQLite, REST backends)
    canopy.cli - Command line access to a tree store
"""

from .models import Model, HasMany, ModelError, RelationLoadError
from .store import TreeStore, Reference, connect, StoreError
from . import models
from . import store

__all__ = [
    # Submodules
    "models",
    "store",
    # Models
    "Model",
    "HasMany",
    # Store
    "TreeStore",
    "Reference",
    "connect",
    # Exceptions
    "ModelError",
    "RelationLoadError",
    "StoreError",
]

__version__ = "0.1.0"
