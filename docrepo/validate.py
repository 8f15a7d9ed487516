"""
Attribute validation for docrepo.

This module provides validation utilities:
- Kind-level validation of attribute values
- Payload validation against entity types
- Helpful error messages with suggestions

Validation is opt-in: encoding never validates, repositories validate
before writes only when ``validate_on_write`` is set.

Invariants:
    - Validation errors are deterministic
    - Error messages include context for fixing
    - Unknown attributes suggest similar valid attributes
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from .entity import FieldKind
from .errors import UnknownFieldError, ValidationError

if TYPE_CHECKING:
    from .entity import Entity


def validate_attributes(
    entity_type: type[Entity],
    payload: Dict[str, Any],
) -> Tuple[bool, List[str]]:
    """Validate payload against entity type.

    Args:
        entity_type: Entity type to validate against
        payload: Attribute values keyed by name

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors: List[str] = []

    # Check for unknown attributes
    known = entity_type.attribute_names()
    unknown = set(payload.keys()) - set(known)
    for name in sorted(unknown):
        suggestions = suggest_attributes(name, entity_type, limit=3)
        if suggestions:
            errors.append(f"Unknown attribute '{name}'. Did you mean: {suggestions}?")
        else:
            errors.append(f"Unknown attribute '{name}'")

    # Validate each attribute
    for attr in entity_type.__attributes__:
        value = payload.get(attr.name)

        if value is None:
            if attr.required:
                errors.append(f"Attribute '{attr.name}' is required")
            continue

        error = _validate_value(attr.name, attr.kind, value, attr.choices)
        if error:
            errors.append(error)

    return len(errors) == 0, errors


def _validate_value(
    name: str,
    kind: FieldKind,
    value: Any,
    choices: Optional[Tuple[Any, ...]] = None,
) -> Optional[str]:
    """Validate a single attribute value.

    Returns error message if invalid, None if valid.
    """
    if kind == FieldKind.STRING:
        if not isinstance(value, str):
            return f"Attribute '{name}' must be a string, got {type(value).__name__}"

    elif kind == FieldKind.INTEGER:
        if not isinstance(value, int) or isinstance(value, bool):
            return f"Attribute '{name}' must be an integer, got {type(value).__name__}"

    elif kind == FieldKind.FLOAT:
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return f"Attribute '{name}' must be a number, got {type(value).__name__}"

    elif kind == FieldKind.BOOLEAN:
        if not isinstance(value, bool):
            return f"Attribute '{name}' must be a boolean, got {type(value).__name__}"

    elif kind == FieldKind.TIMESTAMP:
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            return f"Attribute '{name}' must be a positive integer timestamp"

    elif kind == FieldKind.DICT:
        if not isinstance(value, dict):
            return f"Attribute '{name}' must be a mapping, got {type(value).__name__}"

    elif kind == FieldKind.LIST:
        if not isinstance(value, list):
            return f"Attribute '{name}' must be a list, got {type(value).__name__}"

    elif kind == FieldKind.ENUM:
        if choices and value not in choices:
            return f"Attribute '{name}' must be one of {choices}, got {value!r}"

    return None


def validate_or_raise(entity: Entity) -> None:
    """Validate an entity and raise if invalid.

    Args:
        entity: Entity to validate

    Raises:
        UnknownFieldError: If an unknown attribute is present
        ValidationError: If validation fails
    """
    entity_type = type(entity)
    payload = {k: v for k, v in entity.to_dict().items() if v is not None}

    # Check unknown attributes first (for better error messages)
    extra = {k for k in vars(entity) if k not in entity_type.attribute_names()}
    if extra:
        name = sorted(extra)[0]
        suggestions = suggest_attributes(name, entity_type, limit=3)
        raise UnknownFieldError(name, entity_type.__name__, suggestions)

    is_valid, errors = validate_attributes(entity_type, payload)
    if not is_valid:
        raise ValidationError(
            f"Validation failed for {entity_type.__name__}: {'; '.join(errors)}",
            errors=errors,
        )


def suggest_attributes(
    partial: str,
    entity_type: type[Entity],
    limit: int = 5,
) -> List[str]:
    """Suggest attribute names based on partial input.

    Args:
        partial: Partial attribute name
        entity_type: Entity type to suggest from
        limit: Maximum suggestions

    Returns:
        List of suggested attribute names
    """
    known = entity_type.attribute_names()
    matches = get_close_matches(partial, known, n=limit)

    # Also include prefix matches
    prefix_matches = [n for n in known if n.lower().startswith(partial.lower())]

    # Combine and deduplicate
    all_matches = list(dict.fromkeys(matches + prefix_matches))
    return all_matches[:limit]
