"""
Entity registry for docrepo.

This module keeps a process-wide map of entity types by class name, used to
resolve the entity type of a repository from its naming convention:
- Registering entity types (done automatically on subclass creation)
- Type lookup by name
- Schema dump of every registered type

Class names need not be unique across modules. A name claimed by more than
one class is ambiguous: it stays registered, but looking it up by name
resolves to nothing, so only name-based resolution of that name fails.

Example:
    >>> from docrepo import Entity, attribute, get_registry
    >>>
    >>> class User(Entity):
    ...     name = attribute("str")
    >>> get_registry().get("User") is User
    True
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .entity import Entity

logger = logging.getLogger(__name__)

# Global registry
_global_registry: EntityRegistry | None = None
_registry_lock = threading.Lock()


def qualified_name(entity_type: type) -> str:
    return f"{entity_type.__module__}.{entity_type.__qualname__}"


class EntityRegistry:
    """Registry of entity types keyed by class name.

    Re-registering the same class is a no-op, so importing a module twice
    does not fail. A different class under a taken name makes the name
    ambiguous.

    Example:
        >>> registry = EntityRegistry()
        >>> registry.register(User)
        >>> registry.get("User")
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._entity_types: dict[str, list[type[Entity]]] = {}
        self._lock = threading.Lock()

    def register(self, entity_type: type[Entity]) -> None:
        """Register an entity type.

        Args:
            entity_type: Entity subclass to register
        """
        name = entity_type.__name__
        with self._lock:
            claimed = self._entity_types.setdefault(name, [])
            if entity_type in claimed:
                return
            claimed.append(entity_type)
            if len(claimed) > 1:
                logger.warning(
                    f"Entity name {name!r} is ambiguous: "
                    f"{', '.join(qualified_name(t) for t in claimed)}"
                )

    def unregister(self, name: str) -> None:
        """Remove every entity type registered under a name."""
        with self._lock:
            self._entity_types.pop(name, None)

    def get(self, name: str) -> type[Entity] | None:
        """Get entity type by name, or None when missing or ambiguous."""
        claimed = self._entity_types.get(name, [])
        return claimed[0] if len(claimed) == 1 else None

    def is_ambiguous(self, name: str) -> bool:
        return len(self._entity_types.get(name, [])) > 1

    def candidates(self, name: str) -> list[type[Entity]]:
        """Every entity type registered under a name."""
        return list(self._entity_types.get(name, []))

    def __contains__(self, name: object) -> bool:
        return name in self._entity_types

    def __len__(self) -> int:
        return sum(len(claimed) for claimed in self._entity_types.values())

    def entity_types(self) -> Iterator[type[Entity]]:
        """Iterate over all entity types."""
        for claimed in list(self._entity_types.values()):
            yield from claimed

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "entity_types": [
                t.schema() for t in sorted(self.entity_types(), key=lambda t: (t.__name__, t.__module__))
            ],
        }

    def to_json(self, indent: int | None = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)


def get_registry() -> EntityRegistry:
    """Get the global entity registry."""
    global _global_registry
    with _registry_lock:
        if _global_registry is None:
            _global_registry = EntityRegistry()
        return _global_registry


def reset_registry() -> None:
    """Reset the global registry (for testing only)."""
    global _global_registry
    with _registry_lock:
        _global_registry = None
