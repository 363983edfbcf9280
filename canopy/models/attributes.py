"""Attribute bag backing every model instance."""

from collections.abc import MutableMapping
from typing import Any, Dict, Iterator, Mapping, Optional


class AttributeStore(MutableMapping):
    """Mapping of field name to value for one model instance.

    The underlying dict is exposed through ``data`` and is never swapped
    out, so references handed to callers stay live across merge() and
    replace().
    """

    __slots__ = ("_data",)

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._data: Dict[str, Any] = dict(values or {})

    @property
    def data(self) -> Dict[str, Any]:
        """The live underlying dict (not a copy)."""
        return self._data

    def merge(self, patch: Optional[Mapping[str, Any]] = None) -> "AttributeStore":
        """Shallow-merge patch; patched fields win, others are kept."""
        for name, value in (patch or {}).items():
            self._data[name] = value
        return self

    def replace(self, values: Optional[Mapping[str, Any]] = None) -> "AttributeStore":
        """Replace every field with values, in place."""
        self._data.clear()
        self._data.update(values or {})
        return self

    def snapshot(self) -> Dict[str, Any]:
        """Shallow copy of the current fields."""
        return dict(self._data)

    def __getitem__(self, name: str) -> Any:
        return self._data[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self._data[name] = value

    def __delitem__(self, name: str) -> None:
        del self._data[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, name: object) -> bool:
        return name in self._data

    def __repr__(self) -> str:
        return f"AttributeStore({self._data!r})"
