"""
docrepo - Repository pattern over document databases.

This package maps plain domain objects onto documents and back:
- Entity definitions with declared attributes
- Repositories giving identity-based CRUD per collection
- Adapters executing queries (RethinkDB, in-memory)
- Process-wide configuration binding repositories to an adapter

Example:
    >>> from docrepo import Entity, Repository, MemoryAdapter, attribute, configure
    >>>
    >>> configure(lambda c: setattr(c, "adapter", MemoryAdapter()))
    >>>
    >>> class Article(Entity):
    ...     title = attribute("str", required=True)
    >>>
    >>> class ArticleRepository(Repository[Article]):
    ...     pass
    >>>
    >>> articles = ArticleRepository()
    >>> article = articles.create(Article(title="Hello"))
    >>> articles.find(article.id).title
    'Hello'

Invariants:
    - Configure before defining repository classes
    - Stored ids are strings
    - Callers never see driver exceptions

Version: 0.1.0
"""

__version__ = "0.1.0"

from .adapter import Adapter, MemoryAdapter, RethinkDbAdapter
from .codec import DocumentCodec, UnknownFieldPolicy, collection_name_for, entity_name_for
from .config import (
    Configuration,
    ConnectionSettings,
    RunOptions,
    configure,
    get_config,
    reset_config,
    setup_logging,
)
from .cursor import Cursor
from .entity import Attribute, Entity, FieldKind, Timestamped, attribute
from .errors import (
    AdapterConnectionError,
    DocRepoError,
    EntityClassNotFoundError,
    EntityExistedError,
    EntityIdNotFoundError,
    EntityNotFoundError,
    MissingAdapterError,
    MissingDatabaseError,
    MissingQueryBuilderError,
    NonPersistedEntityError,
    NotConfiguredError,
    QueryError,
    QueryLogicError,
    RepositoryRuntimeError,
    UnknownFieldError,
    ValidationError,
)
from .query import asc, compose, desc, limit, order_by, skip, where
from .registry import EntityRegistry, get_registry
from .repository import Repository

__all__ = [
    # Version
    "__version__",
    # Entities
    "Entity",
    "Attribute",
    "FieldKind",
    "Timestamped",
    "attribute",
    "EntityRegistry",
    "get_registry",
    # Codec
    "DocumentCodec",
    "UnknownFieldPolicy",
    "entity_name_for",
    "collection_name_for",
    # Repository
    "Repository",
    "Cursor",
    # Query helpers
    "where",
    "order_by",
    "asc",
    "desc",
    "limit",
    "skip",
    "compose",
    # Adapters
    "Adapter",
    "MemoryAdapter",
    "RethinkDbAdapter",
    # Configuration
    "Configuration",
    "ConnectionSettings",
    "RunOptions",
    "configure",
    "get_config",
    "reset_config",
    "setup_logging",
    # Errors
    "DocRepoError",
    "EntityNotFoundError",
    "EntityIdNotFoundError",
    "EntityClassNotFoundError",
    "EntityExistedError",
    "NonPersistedEntityError",
    "NotConfiguredError",
    "MissingAdapterError",
    "RepositoryRuntimeError",
    "UnknownFieldError",
    "ValidationError",
    "MissingQueryBuilderError",
    "MissingDatabaseError",
    "QueryError",
    "AdapterConnectionError",
    "QueryLogicError",
]
