"""
Document codec for docrepo.

Converts entities to flat documents for writes and documents back into
entities for reads, and derives entity and collection names from
repository names.

Invariants:
    - encode() never emits null placeholders: absent attributes are omitted
    - decode() builds a fresh entity and sets every document key
    - The entity type is resolved lazily, so it may be defined after the
      repository that stores it
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Generic, Mapping, TypeVar, Union

from .entity import Entity
from .errors import EntityClassNotFoundError
from .registry import EntityRegistry, get_registry, qualified_name

logger = logging.getLogger(__name__)

REPOSITORY_SUFFIX = "Repository"

E = TypeVar("E", bound=Entity)


class UnknownFieldPolicy(Enum):
    """What decode() does with a document key the entity does not declare."""

    FAIL = "fail"
    IGNORE = "ignore"


def entity_name_for(repository_name: str) -> str | None:
    """Entity type name for a repository class name.

    ``"ArticleRepository"`` maps to ``"Article"``. Names without the
    suffix have no conventional entity.
    """
    name = repository_name.rsplit(".", 1)[-1]
    if not name.endswith(REPOSITORY_SUFFIX) or name == REPOSITORY_SUFFIX:
        return None
    return name[: -len(REPOSITORY_SUFFIX)]


def collection_name_for(repository_name: str) -> str | None:
    """Collection name for a repository class name (lower-cased entity name)."""
    entity_name = entity_name_for(repository_name)
    if entity_name is None:
        return None
    return entity_name.lower()


class DocumentCodec(Generic[E]):
    """Bidirectional entity/document mapping for one entity type.

    Attributes:
        entity_name: Name of the entity type
        unknown_fields: Policy for undeclared document keys

    Example:
        >>> codec = DocumentCodec(User)
        >>> codec.encode(User(name="L"))
        {'name': 'L'}
        >>> codec.decode({"id": "1", "name": "L"}).name
        'L'
    """

    def __init__(
        self,
        entity_type: Union[type[E], str, None],
        *,
        registry: EntityRegistry | None = None,
        unknown_fields: UnknownFieldPolicy = UnknownFieldPolicy.FAIL,
    ) -> None:
        """Initialize the codec.

        Args:
            entity_type: Entity class, or its registered name
            registry: Registry used to resolve names (global by default)
            unknown_fields: Policy for undeclared document keys
        """
        if isinstance(entity_type, type):
            self._entity_type: type[E] | None = entity_type
            self.entity_name: str | None = entity_type.__name__
        else:
            self._entity_type = None
            self.entity_name = entity_type
        self._registry = registry
        self.unknown_fields = unknown_fields

    @property
    def entity_type(self) -> type[E]:
        """Resolved entity type.

        Raises:
            EntityClassNotFoundError: If no entity type, or more than one,
                is registered under the name
        """
        if self._entity_type is None:
            if not self.entity_name:
                raise EntityClassNotFoundError(self.entity_name)
            registry = self._registry if self._registry is not None else get_registry()
            if registry.is_ambiguous(self.entity_name):
                raise EntityClassNotFoundError(
                    self.entity_name,
                    candidates=[qualified_name(t) for t in registry.candidates(self.entity_name)],
                )
            resolved = registry.get(self.entity_name)
            if resolved is None:
                raise EntityClassNotFoundError(self.entity_name)
            self._entity_type = resolved  # type: ignore[assignment]
        return self._entity_type  # type: ignore[return-value]

    def encode(self, entity: Entity) -> dict[str, Any]:
        """Convert an entity into a document, omitting absent attributes."""
        document: dict[str, Any] = {}
        for name in entity.attribute_names():
            value = getattr(entity, name)
            if value is not None:
                document[name] = value
        return document

    def decode(self, document: Mapping[str, Any]) -> E:
        """Convert a document into a new entity.

        Raises:
            EntityClassNotFoundError: If the type cannot be resolved, or a key
                has no attribute under the FAIL policy
        """
        entity_type = self.entity_type
        known = set(entity_type.attribute_names())
        entity = entity_type()

        for key, value in document.items():
            if key not in known:
                if self.unknown_fields is UnknownFieldPolicy.IGNORE:
                    logger.debug(f"Skipping unknown key {key!r} for {entity_type.__name__}")
                    continue
                raise EntityClassNotFoundError(entity_type.__name__, field_name=key)
            setattr(entity, key, value)

        return entity
