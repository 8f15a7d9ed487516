"""
Query executor contract for docrepo.

An Adapter owns the connection to a document store and runs queries built
by callers. Every query goes through :meth:`Adapter.query`: the caller
supplies a builder ``(table, r) -> expression`` and the adapter hands it the
table expression and the driver namespace, then runs the result with the
configured run options.

The record-level commands used by repositories (create, update, delete,
find, ...) are written once here on top of ``query``, so a backend only has
to provide table expressions and a way to run them.

Invariants:
    - A query without a builder fails before touching the store
    - Driver failures surface as QueryError, never as driver exceptions
    - Lookups report "not found" as None; first/last also report an
      ordering the data cannot satisfy as None
    - Connection and other store failures always propagate
    - Write results have the RethinkDB shape (inserted, replaced, ...)

How to change safely:
    - New shared commands must be expressible through ``query``
    - Keep _expression() and _run() the only backend-specific hooks
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple, Union

from ..config import RunOptions
from ..errors import EntityExistedError, MissingQueryBuilderError, QueryError, QueryLogicError

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
QueryBuilder = Callable[[Any, Any], Any]

DUPLICATE_KEY_MARKER = "Duplicate primary key"


class Adapter(ABC):
    """Base class for query executors.

    Attributes:
        database: Default database name
        run_options: Options passed with every query (None until configured)
        cursor_types: Raw result types that are streaming cursors
        r: Driver namespace handed to query builders
    """

    cursor_types: Tuple[type, ...] = ()
    r: Any = None

    def __init__(
        self,
        database: Optional[str] = "test",
        run_options: Optional[RunOptions] = None,
    ) -> None:
        self.database = database
        self.run_options = run_options

    # Backend hooks

    @abstractmethod
    def _expression(self, table: Optional[str], database: Optional[str]) -> Any:
        """Build the table expression, or the database expression when
        ``table`` is None."""
        ...

    @abstractmethod
    def _run(self, expression: Any, table: Optional[str]) -> Any:
        """Run an expression and return the raw result.

        Raises:
            QueryError: If the store rejects the query
        """
        ...

    def close(self) -> None:
        """Release the connection, if any."""

    # Query entry point

    def query(
        self,
        table: Optional[str],
        builder: Optional[QueryBuilder] = None,
        *,
        database: Optional[str] = None,
    ) -> Any:
        """Build and run a query against ``table``.

        Args:
            table: Table name, or None for a database-level query
            builder: Callable receiving (table_expression, r) and returning
                the expression to run
            database: Database name (adapter default if None)

        Returns:
            Raw result: a cursor, a list, a document, a scalar or a write
            result, depending on the expression

        Raises:
            MissingQueryBuilderError: If no builder is given
            QueryError: If the store rejects the query
        """
        if builder is None:
            raise MissingQueryBuilderError(table)

        expression = builder(self._expression(table, database), self.r)
        logger.debug(f"Running query on {database or self.database}.{table}")
        return self._run(expression, table)

    def _run_kwargs(self) -> Dict[str, Any]:
        return (self.run_options or RunOptions()).to_run_kwargs()

    # Shared commands

    def create(self, table: str, document: Document) -> Any:
        """Insert a document and return its id.

        Raises:
            EntityExistedError: If the primary key is taken
            QueryError: On any other write error
        """
        result = self.query(table, lambda t, r: t.insert(document))
        if result.get("errors"):
            first_error = result.get("first_error") or ""
            if DUPLICATE_KEY_MARKER in first_error:
                raise EntityExistedError(table, document.get("id"))
            raise QueryError(first_error or "Insert failed", table=table)

        if document.get("id") is not None:
            return document["id"]
        return result["generated_keys"][0]

    def update(self, table: str, document: Document) -> int:
        """Merge a document into the record with the same id.

        Returns:
            Number of matched records (replaced + unchanged)
        """
        key = document["id"]
        result = self.query(table, lambda t, r: t.get(key).update(document))
        self._check_write(result, table)
        return result.get("replaced", 0) + result.get("unchanged", 0)

    def persist(self, table: str, document: Document) -> Any:
        """Update when the document has an id, otherwise create."""
        if document.get("id") is not None:
            return self.update(table, document)
        return self.create(table, document)

    def delete(self, table: str, key: Any) -> int:
        """Delete one record by id and return the deleted count."""
        result = self.query(table, lambda t, r: t.get(key).delete())
        self._check_write(result, table)
        return result.get("deleted", 0)

    def all(self, table: str) -> Any:
        """Stream every record of the table."""
        return self.query(table, lambda t, r: t)

    def find(self, table: str, key: Any) -> Optional[Document]:
        """Fetch one record by id, or None."""
        return self.query(table, lambda t, r: t.get(key))

    def first(self, table: str, order_by: str = "id") -> Optional[Document]:
        """Lowest record by ``order_by``, or None when empty or unorderable."""
        return self._edge(table, lambda t, r: t.order_by(order_by).limit(1))

    def last(self, table: str, order_by: str = "id") -> Optional[Document]:
        """Highest record by ``order_by``, or None when empty or unorderable."""
        return self._edge(table, lambda t, r: t.order_by(r.desc(order_by)).limit(1))

    def count(self, table: str) -> int:
        return self.query(table, lambda t, r: t.count())

    def clear(self, table: str) -> Union[int, bool]:
        """Delete every record; False when the store reports errors."""
        result = self.query(table, lambda t, r: t.delete())
        if result.get("errors"):
            logger.warning(f"Clearing {table} reported errors: {result.get('first_error')}")
            return False
        return result.get("deleted", 0)

    def _edge(self, table: str, builder: QueryBuilder) -> Optional[Document]:
        try:
            rows = list(self.query(table, builder))
        except QueryLogicError as e:
            logger.warning(f"Ordered lookup on {table} failed: {e}")
            return None
        return rows[0] if rows else None

    @staticmethod
    def _check_write(result: Dict[str, Any], table: str) -> None:
        if result.get("errors"):
            raise QueryError(result.get("first_error") or "Write failed", table=table)
