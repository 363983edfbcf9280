"""Exceptions for the canopy.models module."""

from typing import Dict, Tuple


class ModelError(Exception):
    """Base exception for all model errors."""

    pass


class MissingLocationError(ModelError, ValueError):
    """Model has no storage location to read from or write to."""

    def __init__(self, model_name: str):
        self.model_name = model_name
        super().__init__(f"{model_name} has no location. Call set_location() first.")


class ModelStateError(ModelError):
    """Operation is not valid for the model's persistence state."""

    pass


class RelationError(ModelError, KeyError):
    """Relation is not declared on the model or cannot be resolved."""

    def __init__(self, model_name: str, field: str, reason: str = "is not a declared relation"):
        self.model_name = model_name
        self.field = field
        super().__init__(f"{model_name}.{field} {reason}")

    def __str__(self) -> str:
        # KeyError quotes its message otherwise
        return self.args[0]


class RelationLoadError(ModelError):
    """One or more child fetches failed while hydrating relations.

    Attributes:
        failures: Maps (field, child_key) to the exception raised for that pair
    """

    def __init__(self, model_name: str, failures: Dict[Tuple[str, str], BaseException]):
        self.model_name = model_name
        self.failures = failures
        pairs = ", ".join(f"{field}/{key}" for field, key in sorted(failures))
        super().__init__(
            f"Failed to load {len(failures)} relation(s) on {model_name}: {pairs}"
        )
