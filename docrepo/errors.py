"""
Error types for docrepo.

This module defines all exception types raised by the package:
- DocRepoError: Base exception
- EntityNotFoundError: Lookup by id found no record
- EntityIdNotFoundError: Supplied id cannot be normalized to a lookup key
- EntityClassNotFoundError: Document cannot be turned into an entity
- EntityExistedError: Create collided with an existing identity
- NonPersistedEntityError: Update/delete on an entity without identity
- NotConfiguredError / MissingAdapterError: Repository defined too early
- RepositoryRuntimeError: Any other executor failure, wrapped
- QueryError: Executor-level failure raised by adapters
- AdapterConnectionError: The store cannot be reached
- QueryLogicError: The store could not evaluate a query on its data

Invariants:
    - All errors inherit from DocRepoError
    - Errors include context for debugging
    - Callers never need the driver's exception types
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class DocRepoError(Exception):
    """Base exception for all docrepo errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DOCREPO_ERROR"
        self.details = details or {}


class EntityNotFoundError(DocRepoError):
    """No record matches the requested identity or filter."""

    def __init__(
        self,
        entity_name: Optional[str],
        entity_id: Any = None,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(
            message or f"{entity_name or 'Entity'} with id {entity_id!r} not found",
            code="ENTITY_NOT_FOUND",
            details={"entity_name": entity_name, "entity_id": entity_id},
        )
        self.entity_name = entity_name
        self.entity_id = entity_id


class EntityIdNotFoundError(DocRepoError):
    """The supplied id cannot be used as a lookup key.

    Raised when:
    - The id is None
    - The id is neither a string, an integer nor a UUID
    """

    def __init__(self, value: Any) -> None:
        super().__init__(
            f"Missing entity id: cannot use {type(value).__name__} value {value!r} as an id",
            code="ENTITY_ID_NOT_FOUND",
            details={"value_type": type(value).__name__},
        )
        self.value = value


class EntityClassNotFoundError(DocRepoError):
    """A document cannot be decoded into an entity.

    Raised when:
    - The entity type of a repository cannot be resolved
    - The entity name is claimed by several classes
    - A document key has no matching entity attribute
    """

    def __init__(
        self,
        entity_name: Optional[str],
        field_name: Optional[str] = None,
        candidates: Optional[List[str]] = None,
    ) -> None:
        if candidates:
            msg = f"Entity class '{entity_name}' is ambiguous: {', '.join(candidates)}"
        elif field_name is None:
            msg = f"Entity class '{entity_name}' not found"
        else:
            msg = f"Entity class '{entity_name}' has no attribute '{field_name}'"
        super().__init__(
            msg,
            code="ENTITY_CLASS_NOT_FOUND",
            details={
                "entity_name": entity_name,
                "field_name": field_name,
                "candidates": candidates or [],
            },
        )
        self.entity_name = entity_name
        self.field_name = field_name
        self.candidates = candidates or []


class EntityExistedError(DocRepoError):
    """A record with the same primary key already exists."""

    def __init__(self, collection: str, entity_id: Any) -> None:
        super().__init__(
            f"Entity with id {entity_id!r} already exists in '{collection}'",
            code="ENTITY_EXISTED",
            details={"collection": collection, "entity_id": entity_id},
        )
        self.collection = collection
        self.entity_id = entity_id


class NonPersistedEntityError(DocRepoError):
    """Update or delete was attempted on an entity that has no id."""

    def __init__(self, entity_name: str, operation: str) -> None:
        super().__init__(
            f"Cannot {operation} {entity_name}: entity is not persisted",
            code="NON_PERSISTED_ENTITY",
            details={"entity_name": entity_name, "operation": operation},
        )
        self.entity_name = entity_name
        self.operation = operation


class NotConfiguredError(DocRepoError):
    """A repository was defined before any configuration exists."""

    def __init__(self, repository_name: str) -> None:
        super().__init__(
            f"Cannot define {repository_name}: docrepo is not configured",
            code="NOT_CONFIGURED",
            details={"repository": repository_name},
        )
        self.repository_name = repository_name


class MissingAdapterError(DocRepoError):
    """The configuration holds no adapter."""

    def __init__(self, repository_name: str) -> None:
        super().__init__(
            f"Cannot bind {repository_name}: no adapter configured",
            code="MISSING_ADAPTER",
            details={"repository": repository_name},
        )
        self.repository_name = repository_name


class RepositoryRuntimeError(DocRepoError):
    """An executor failure surfaced through a repository operation."""

    def __init__(
        self,
        message: str,
        collection: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="RUNTIME_ERROR",
            details={"collection": collection, "operation": operation},
        )
        self.collection = collection
        self.operation = operation


class UnknownFieldError(DocRepoError):
    """Unknown attribute supplied to an entity.

    Includes suggestions for similar attribute names.

    Attributes:
        field_name: The unknown attribute
        type_name: The entity type being built
        suggestions: Similar attribute names
    """

    def __init__(
        self,
        field_name: str,
        type_name: str,
        suggestions: Optional[List[str]] = None,
    ) -> None:
        suggestions = suggestions or []
        msg = f"Unknown attribute '{field_name}' in entity '{type_name}'"
        if suggestions:
            msg += f". Did you mean: {', '.join(suggestions)}?"

        super().__init__(
            msg,
            code="UNKNOWN_FIELD",
            details={
                "field_name": field_name,
                "type_name": type_name,
                "suggestions": suggestions,
            },
        )
        self.field_name = field_name
        self.type_name = type_name
        self.suggestions = suggestions


class ValidationError(DocRepoError):
    """Attribute validation failed.

    Raised when:
    - Required attribute is missing
    - Attribute value has wrong kind
    - Enum value is invalid
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class MissingQueryBuilderError(DocRepoError):
    """An adapter query was issued without a query-building function."""

    def __init__(self, table: Optional[str] = None) -> None:
        super().__init__(
            "Missing query block",
            code="MISSING_QUERY_BUILDER",
            details={"table": table},
        )
        self.table = table


class MissingDatabaseError(DocRepoError):
    """No database name is available for a query."""

    def __init__(self) -> None:
        super().__init__("Missing a default database name", code="MISSING_DATABASE")


class QueryError(DocRepoError):
    """The query executor failed to run a query.

    Adapters raise this for malformed queries and driver failures; the
    repository translates it into RepositoryRuntimeError.
    """

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        code: str = "QUERY_ERROR",
    ) -> None:
        super().__init__(message, code=code, details={"table": table})
        self.table = table


class AdapterConnectionError(QueryError):
    """Failed to reach the database server.

    Raised when:
    - Server is unreachable
    - Connection times out
    - Authentication fails
    """

    def __init__(self, message: str, address: Optional[str] = None) -> None:
        super().__init__(message, code="CONNECTION_ERROR")
        self.details["address"] = address
        self.address = address


class QueryLogicError(QueryError):
    """The query reached the store but could not be evaluated on its data.

    Raised when:
    - Ordering by an attribute some records lack
    - Ordering by values that cannot be compared
    - Indexing past the end of a sequence
    """

    def __init__(self, message: str, table: Optional[str] = None) -> None:
        super().__init__(message, table=table, code="QUERY_LOGIC_ERROR")
