"""
Entity types for docrepo.

This module provides the in-memory side of the mapping:
- Entity: Base class for domain objects identified by ``id``
- Attribute: Declared, typed attribute of an entity class
- Timestamped: Mixin adding ``created_at`` / ``updated_at``

The attribute schema of an entity type is computed once, when the class
is defined, so encoding and decoding are plain attribute enumeration.

Invariants:
    - Every entity type has an implicit ``id`` attribute, always first
    - An attribute that was never set reads as None (absent)
    - Unknown attribute names are rejected at construction
    - Two entities are equal iff same concrete type and equal, non-None ids

Example:
    >>> class User(Entity):
    ...     name = attribute("str", required=True)
    ...     age = attribute("int")
    >>>
    >>> user = User(name="L")
    >>> user.age is None
    True
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Mapping

from .errors import UnknownFieldError
from .registry import get_registry


class FieldKind(Enum):
    """Supported attribute kinds."""

    ANY = "any"
    STRING = "str"
    INTEGER = "int"
    FLOAT = "float"
    BOOLEAN = "bool"
    TIMESTAMP = "timestamp"
    DICT = "dict"
    LIST = "list"
    ENUM = "enum"

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string to FieldKind."""
        for kind in cls:
            if kind.value == value:
                return kind
        raise ValueError(f"Invalid field kind: {value}")


class Attribute:
    """Descriptor for one declared entity attribute.

    Values live in the instance ``__dict__``; reading an attribute that was
    never assigned returns None.

    Attributes:
        name: Attribute name, set when the owning class is created
        kind: Declared kind
        required: Whether validation requires a value
        choices: Valid values for enum kind
        description: Documentation
    """

    def __init__(
        self,
        kind: str | FieldKind = FieldKind.ANY,
        *,
        required: bool = False,
        choices: tuple[Any, ...] | None = None,
        description: str = "",
    ) -> None:
        if isinstance(kind, str):
            kind = FieldKind.from_str(kind)
        if kind == FieldKind.ENUM and not choices:
            raise ValueError("choices required for enum attribute")
        self.name = ""
        self.kind = kind
        self.required = required
        self.choices = choices
        self.description = description

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance.__dict__.get(self.name)

    def __set__(self, instance: Any, value: Any) -> None:
        instance.__dict__[self.name] = value

    def __delete__(self, instance: Any) -> None:
        instance.__dict__.pop(self.name, None)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {"name": self.name, "kind": self.kind.value}
        if self.required:
            result["required"] = True
        if self.choices:
            result["choices"] = list(self.choices)
        if self.description:
            result["description"] = self.description
        return result

    def __repr__(self) -> str:
        return f"Attribute(name={self.name!r}, kind={self.kind.value!r})"


def attribute(
    kind: str | FieldKind = FieldKind.ANY,
    *,
    required: bool = False,
    choices: tuple[Any, ...] | None = None,
    description: str = "",
) -> Attribute:
    """Declare an entity attribute.

    Args:
        kind: Attribute kind (``"str"``, ``"int"``, ...)
        required: Whether validation requires a value
        choices: Valid values for enum kind
        description: Documentation

    Returns:
        Attribute descriptor

    Example:
        >>> class Article(Entity):
        ...     title = attribute("str", required=True)
        ...     status = attribute("enum", choices=("draft", "published"))
    """
    return Attribute(kind, required=required, choices=choices, description=description)


class Entity:
    """Base class for persisted domain objects.

    Subclasses declare attributes with :func:`attribute`. The ordered schema
    is collected from the class hierarchy when the subclass is created, and
    the class is registered by name so repositories can resolve it.

    Pass ``register=False`` in the class statement to keep a type out of the
    global registry.
    """

    __attributes__: ClassVar[tuple[Attribute, ...]] = ()

    id = Attribute(FieldKind.ANY, description="Primary key")

    def __init_subclass__(cls, register: bool = True, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        collected: dict[str, Attribute] = {"id": Entity.__dict__["id"]}
        for klass in reversed(cls.__mro__):
            for name, value in vars(klass).items():
                if isinstance(value, Attribute) and name != "id":
                    collected[name] = value
        cls.__attributes__ = tuple(collected.values())

        if register:
            get_registry().register(cls)

    def __init__(self, data: Mapping[str, Any] | None = None, /, **attributes: Any) -> None:
        from .validate import suggest_attributes

        values = dict(data or {})
        values.update(attributes)

        known = self.attribute_names()
        for name, value in values.items():
            name = str(name)
            if name not in known:
                suggestions = suggest_attributes(name, type(self), limit=3)
                raise UnknownFieldError(name, type(self).__name__, suggestions)
            setattr(self, name, value)

    @classmethod
    def attribute_names(cls) -> list[str]:
        """Get ordered list of attribute names, ``id`` first."""
        return [a.name for a in cls.__attributes__] or ["id"]

    @classmethod
    def schema(cls) -> dict[str, Any]:
        """Describe the entity type."""
        return {
            "name": cls.__name__,
            "attributes": [a.to_dict() for a in cls.__attributes__],
        }

    def to_dict(self) -> dict[str, Any]:
        """All attributes, absent ones as None."""
        return {name: getattr(self, name) for name in self.attribute_names()}

    def validate(self) -> tuple[bool, list[str]]:
        """Validate current values against the declared kinds."""
        from .validate import validate_attributes

        payload = {k: v for k, v in self.to_dict().items() if v is not None}
        return validate_attributes(type(self), payload)

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if type(self) is not type(other):
            return NotImplemented if not isinstance(other, Entity) else False
        return self.id is not None and self.id == other.id  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        if self.id is None:
            return object.__hash__(self)
        return hash((type(self), self.id))

    def __repr__(self) -> str:
        parts = [f"{k}={v!r}" for k, v in self.to_dict().items() if v is not None]
        return f"{type(self).__name__}({', '.join(parts)})"


class Timestamped:
    """Mixin adding creation and modification times (Unix ms).

    Repositories stamp both on create and ``updated_at`` on update.

    Example:
        >>> class Post(Timestamped, Entity):
        ...     title = attribute("str")
    """

    created_at = Attribute(FieldKind.TIMESTAMP, description="Creation time (Unix ms)")
    updated_at = Attribute(FieldKind.TIMESTAMP, description="Last update time (Unix ms)")
