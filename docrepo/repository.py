"""
Repository facade for docrepo.

A Repository gives application code identity-based CRUD and simple queries
over one collection, without exposing the query language. Subclasses are
bound when they are defined: the configured adapter is captured and the
collection and entity names are derived from the class name.

Invariants:
    - A repository class is bound to exactly one adapter, captured at
      definition time
    - Stored ids are always strings
    - Executor failures surface as RepositoryRuntimeError with the executor
      error as __cause__
    - "Nothing matched" is reported as False (writes) or None (first/last),
      lookup misses as EntityNotFoundError; an unreachable store is never
      reported as "nothing matched"
    - A failed create leaves the entity as it was

Example:
    >>> class User(Entity):
    ...     name = attribute("str")
    >>>
    >>> class UserRepository(Repository[User]):
    ...     pass
    >>>
    >>> users = UserRepository()
    >>> user = users.create(User(name="L"))
    >>> users.find(user.id).name
    'L'
"""

from __future__ import annotations

import logging
import time
import typing
import uuid
from typing import Any, ClassVar, Generic, List, Mapping, Optional, TypeVar, Union

from .adapter.base import Adapter, QueryBuilder
from .codec import DocumentCodec, UnknownFieldPolicy, collection_name_for, entity_name_for
from .config import get_config
from .cursor import Cursor
from .entity import Entity, Timestamped
from .errors import (
    DocRepoError,
    EntityIdNotFoundError,
    EntityNotFoundError,
    MissingAdapterError,
    NonPersistedEntityError,
    NotConfiguredError,
    QueryError,
    RepositoryRuntimeError,
)
from .query import compose, limit, where
from .validate import validate_or_raise

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)

_CREATE_STAMPS = ("id", "created_at", "updated_at")


def _now_ms() -> int:
    return int(time.time() * 1000)


class Repository(Generic[E]):
    """Base class for repositories.

    Class attributes (declare in the class body to override the defaults):
        entity: Entity class or name (from the generic argument, else the
            class name without the "Repository" suffix)
        collection: Collection name (lower-cased entity name)
        adapter: Query executor (the configured one)
        unknown_fields: What to do with undeclared document keys
        validate_on_write: Validate entities before create/update

    Pass ``abstract=True`` in the class statement for intermediate bases
    that should not be bound.
    """

    entity: ClassVar[Union[type, str, None]] = None
    collection: ClassVar[Optional[str]] = None
    adapter: Optional[Adapter] = None
    unknown_fields: ClassVar[UnknownFieldPolicy] = UnknownFieldPolicy.FAIL
    validate_on_write: ClassVar[bool] = False

    def __init_subclass__(cls, abstract: bool = False, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if abstract:
            return

        declared = cls.__dict__
        if "adapter" not in declared:
            config = get_config()
            if config is None:
                raise NotConfiguredError(cls.__name__)
            if config.adapter is None:
                raise MissingAdapterError(cls.__name__)
            cls.adapter = config.adapter

        if "entity" not in declared:
            cls.entity = _entity_argument(cls) or entity_name_for(cls.__name__)

        if "collection" not in declared:
            cls.collection = collection_name_for(cls.__name__)
        if not cls.collection:
            raise ValueError(
                f"{cls.__name__} has no collection: name it '<Entity>Repository' "
                f"or declare 'collection'"
            )

        logger.debug(f"Bound {cls.__name__} to collection {cls.collection!r}")

    def __init__(self, adapter: Optional[Adapter] = None) -> None:
        """Initialize the repository.

        Args:
            adapter: Query executor (the class-bound one if None)

        Raises:
            MissingAdapterError: If no adapter is available
        """
        adapter = adapter or type(self).adapter
        if adapter is None:
            raise MissingAdapterError(type(self).__name__)
        self.adapter = adapter
        self._codec: Optional[DocumentCodec[E]] = None
        self._codec_source: Any = None

    @property
    def codec(self) -> DocumentCodec[E]:
        """Codec for the current entity declaration."""
        if self._codec is None or self._codec_source is not self.entity:
            self._codec = DocumentCodec(self.entity, unknown_fields=self.unknown_fields)
            self._codec_source = self.entity
        return self._codec

    @property
    def entity_name(self) -> Optional[str]:
        return self.codec.entity_name

    # Writes

    def persist(self, entity: E) -> Union[E, bool]:
        """Create the entity if it has no id, otherwise update it."""
        if entity.id is None:
            return self.create(entity)
        return self.update(entity)

    def create(self, entity: E) -> E:
        """Store a new entity and set its id.

        Returns:
            The same entity, with ``id`` set

        Raises:
            EntityExistedError: If a record with the same id exists
            RepositoryRuntimeError: On any other executor failure

        On failure the entity keeps the id and timestamps it had before the
        call.
        """
        names = entity.attribute_names()
        previous = {name: getattr(entity, name) for name in _CREATE_STAMPS if name in names}
        try:
            return self._create(entity)
        except DocRepoError:
            for name, value in previous.items():
                setattr(entity, name, value)
            raise

    def _create(self, entity: E) -> E:
        if entity.id is not None:
            entity.id = self._normalize_id(entity.id)
        if isinstance(entity, Timestamped):
            now = _now_ms()
            entity.created_at = now
            entity.updated_at = now
        if self.validate_on_write:
            validate_or_raise(entity)

        document = self.codec.encode(entity)
        logger.debug(f"Creating {type(entity).__name__} in {self.collection}")
        try:
            entity.id = self.adapter.create(self.collection, document)
        except QueryError as e:
            raise self._runtime_error("create", e) from e
        return entity

    def update(self, entity: E) -> Union[E, bool]:
        """Merge the entity's present attributes into its stored record.

        Returns:
            The entity, or False when no record has its id

        Raises:
            NonPersistedEntityError: If the entity has no id
            RepositoryRuntimeError: On executor failure
        """
        if entity.id is None:
            raise NonPersistedEntityError(type(entity).__name__, "update")
        entity.id = self._normalize_id(entity.id)
        if isinstance(entity, Timestamped):
            entity.updated_at = _now_ms()
        if self.validate_on_write:
            validate_or_raise(entity)

        document = self.codec.encode(entity)
        try:
            matched = self.adapter.update(self.collection, document)
        except QueryError as e:
            raise self._runtime_error("update", e) from e

        if not matched:
            logger.debug(f"Update of {entity.id!r} in {self.collection} matched nothing")
            return False
        return entity

    def delete(self, entity: E) -> Union[E, bool]:
        """Delete the entity's stored record.

        Returns:
            The entity, or False when nothing was deleted

        Raises:
            NonPersistedEntityError: If the entity has no id
            RepositoryRuntimeError: On executor failure
        """
        if entity.id is None:
            raise NonPersistedEntityError(type(entity).__name__, "delete")
        key = self._normalize_id(entity.id)
        try:
            deleted = self.adapter.delete(self.collection, key)
        except QueryError as e:
            raise self._runtime_error("delete", e) from e
        return entity if deleted else False

    def clear(self) -> Union[int, bool]:
        """Delete every record in the collection.

        Returns:
            Number of deleted records, or False when the store reports
            write errors

        Raises:
            RepositoryRuntimeError: On executor failure
        """
        try:
            return self.adapter.clear(self.collection)
        except QueryError as e:
            raise self._runtime_error("clear", e) from e

    # Schema

    def create_collection(self) -> Any:
        """Create the collection in the adapter's database.

        Raises:
            RepositoryRuntimeError: If the collection exists or the store
                rejects the request
        """
        logger.info(f"Creating collection {self.collection!r}")
        return self._schema("create_collection", lambda db, r: db.table_create(self.collection))

    def drop_collection(self) -> Any:
        """Drop the collection and every record in it.

        Raises:
            RepositoryRuntimeError: If the collection does not exist or the
                store rejects the request
        """
        logger.info(f"Dropping collection {self.collection!r}")
        return self._schema("drop_collection", lambda db, r: db.table_drop(self.collection))

    def _schema(self, operation: str, builder: QueryBuilder) -> Any:
        try:
            return self.adapter.query(None, builder)
        except QueryError as e:
            raise self._runtime_error(operation, e) from e

    # Reads

    def all(self) -> List[E]:
        """Every entity in the collection."""
        try:
            return self._to_entities(self.adapter.all(self.collection), eager=True)
        except QueryError as e:
            raise self._runtime_error("all", e) from e

    def find(self, id: Any) -> E:
        """Find an entity by id.

        Raises:
            EntityNotFoundError: If no record has the id
            EntityIdNotFoundError: If the id cannot be used as a key
            TypeError: If an entity is passed instead of an id
        """
        key = self._normalize_id(id)
        try:
            document = self.adapter.find(self.collection, key)
        except QueryError as e:
            raise self._runtime_error("find", e) from e
        if document is None:
            raise EntityNotFoundError(self.entity_name, key)
        return self.codec.decode(document)

    def find_by(self, **fields: Any) -> E:
        """First entity whose attributes equal every given value.

        Raises:
            EntityNotFoundError: If nothing matches
        """
        matches = self._query(compose(where(**fields), limit(1)))
        entity = next(iter(matches), None)
        if isinstance(matches, Cursor):
            matches.close()
        if entity is None:
            raise EntityNotFoundError(
                self.entity_name,
                message=f"No {self.entity_name or 'entity'} matching {fields!r}",
            )
        return entity

    def first(self, order_by: str = "id") -> Optional[E]:
        """Lowest entity by ``order_by``, or None."""
        return self._edge("first", order_by)

    def last(self, order_by: str = "id") -> Optional[E]:
        """Highest entity by ``order_by``, or None."""
        return self._edge("last", order_by)

    def count(self) -> int:
        try:
            return self.adapter.count(self.collection)
        except QueryError as e:
            raise self._runtime_error("count", e) from e

    # Custom queries

    def _query(self, builder: Optional[QueryBuilder], *, to_entity: bool = True) -> Any:
        """Run a custom query on the collection.

        Args:
            builder: Callable receiving (table, r) and returning the
                expression to run
            to_entity: Decode documents into entities

        Returns:
            A lazy Cursor for streams, a list for arrays, an entity for a
            single document, or the raw value otherwise

        Raises:
            MissingQueryBuilderError: If no builder is given
            RepositoryRuntimeError: On executor failure
        """
        try:
            result = self.adapter.query(self.collection, builder)
        except QueryError as e:
            raise self._runtime_error("query", e) from e
        if not to_entity:
            return result
        return self._to_entities(result)

    def _to_entities(self, result: Any, eager: bool = False) -> Any:
        if isinstance(result, self.adapter.cursor_types):
            cursor: Cursor[E] = Cursor(result, self.codec.decode)
            return cursor.to_list() if eager else cursor
        if isinstance(result, list):
            return [self.codec.decode(document) for document in result]
        if isinstance(result, Mapping):
            return self.codec.decode(result)
        return result

    def _edge(self, operation: str, order_by: str) -> Optional[E]:
        lookup = getattr(self.adapter, operation)
        try:
            document = lookup(self.collection, order_by)
        except QueryError as e:
            raise self._runtime_error(operation, e) from e
        if document is None:
            return None
        return self.codec.decode(document)

    def _runtime_error(self, operation: str, error: QueryError) -> RepositoryRuntimeError:
        logger.debug(f"{operation} on {self.collection} failed: {error}")
        return RepositoryRuntimeError(
            f"{operation} on '{self.collection}' failed: {error.message}",
            collection=self.collection,
            operation=operation,
        )

    @staticmethod
    def _normalize_id(value: Any) -> str:
        """Turn an id into the string key stored in the collection.

        Raises:
            TypeError: If an entity is passed instead of an id
            EntityIdNotFoundError: If the value cannot be used as an id
        """
        if isinstance(value, Entity):
            raise TypeError(f"Expected an id, got a {type(value).__name__} entity")
        if isinstance(value, str):
            return value
        if isinstance(value, (int, uuid.UUID)) and not isinstance(value, bool):
            return str(value)
        raise EntityIdNotFoundError(value)


def _entity_argument(cls: type) -> Optional[type]:
    """Entity class given as the generic argument, e.g. ``Repository[User]``."""
    for base in getattr(cls, "__orig_bases__", ()):
        if typing.get_origin(base) is Repository:
            for arg in typing.get_args(base):
                if isinstance(arg, type) and issubclass(arg, Entity):
                    return arg
    return None
