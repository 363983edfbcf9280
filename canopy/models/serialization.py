"""Value conversion between model attributes and stored JSON trees."""

from datetime import datetime
from typing import Any

from .exceptions import ModelError


class SerializationError(ModelError):
    """Failed to convert a value to or from its stored form."""

    pass


def to_json_compatible(value: Any) -> Any:
    """Convert an attribute value to JSON-compatible format.

    Nested models are flattened with their own data(); datetimes are
    wrapped in a marker mapping so from_json_compatible() can restore them.

    Raises:
        SerializationError: For values with no JSON representation
    """
    from .model import Model

    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, datetime):
        return {"__datetime__": value.isoformat()}
    if isinstance(value, Model):
        return value._data()
    if isinstance(value, (list, tuple)):
        return [to_json_compatible(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_json_compatible(v) for k, v in value.items()}
    raise SerializationError(f"Cannot serialize type: {type(value).__name__}")


def from_json_compatible(value: Any) -> Any:
    """Convert a stored value back to attribute format."""
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, list):
        return [from_json_compatible(v) for v in value]
    if isinstance(value, dict):
        if set(value) == {"__datetime__"}:
            return datetime.fromisoformat(value["__datetime__"])
        return {k: from_json_compatible(v) for k, v in value.items()}
    return value
