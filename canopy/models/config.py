"""Per-model storage configuration."""

from dataclasses import dataclass, field, replace
from typing import FrozenSet


@dataclass(frozen=True)
class LocationConfig:
    """Where a model's records live and which fields are special.

    Attributes:
        location: Base path under which records are stored
        relation_fields: Fields holding {child_key: placeholder | child} mappings
        fillable_fields: Fields create() accepts; empty means every field
    """

    location: str = "/"
    relation_fields: FrozenSet[str] = field(default_factory=frozenset)
    fillable_fields: FrozenSet[str] = field(default_factory=frozenset)

    def with_location(self, location: str) -> "LocationConfig":
        """Return a copy pointing at another location."""
        return replace(self, location=location)

    def is_relation(self, name: str) -> bool:
        return name in self.relation_fields

    def is_fillable(self, name: str) -> bool:
        return not self.fillable_fields or name in self.fillable_fields
