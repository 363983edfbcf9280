"""Model class registry and relation declarations."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional, Type, Union

from .exceptions import RelationError

if TYPE_CHECKING:
    from .model import Model

logger = logging.getLogger(__name__)


class ModelRegistry:
    """Maps model class names to classes.

    Lets relations name their child class before it is defined.

    Example:
        registry = ModelRegistry()
        registry.register(Ship)

        registry.get("Ship")  # Ship
    """

    def __init__(self):
        self._classes: Dict[str, Type["Model"]] = {}

    def register(self, cls: Type["Model"]) -> None:
        """Register a model class under its class name.

        A later class with the same name replaces the earlier one.
        """
        previous = self._classes.get(cls.__name__)
        if previous is not None and previous is not cls:
            logger.debug(
                "Model name %s rebound from %s to %s",
                cls.__name__,
                previous.__module__,
                cls.__module__,
            )
        self._classes[cls.__name__] = cls

    def get(self, name: str) -> Optional[Type["Model"]]:
        """Get the model class registered under name, or None."""
        return self._classes.get(name)

    def clear(self) -> None:
        """Remove all registered classes."""
        self._classes.clear()


registry = ModelRegistry()


@dataclass(frozen=True)
class RelationSpec:
    """A declared one-to-many relation: field name and child model.

    The child may be given as a class or as a registered class name.
    """

    field: str
    child: Union[str, Type["Model"]]

    def resolve(self, owner: str = "Model") -> Type["Model"]:
        """Return the child model class.

        Raises:
            RelationError: If a child class name is not registered
        """
        if isinstance(self.child, str):
            cls = registry.get(self.child)
            if cls is None:
                raise RelationError(
                    owner, self.field, f"refers to unknown model {self.child!r}"
                )
            return cls
        return self.child
