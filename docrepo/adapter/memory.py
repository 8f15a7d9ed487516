"""
In-memory query executor for testing.

This module provides a process-local document store for:
- Unit and integration tests
- Local development without a database server

It understands the subset of ReQL that repositories and the query helpers
build: selections (get, filter, order_by, limit, skip, nth), aggregates
(count, sum, avg), writes (insert, update, delete) and database-level table
management (table_create, table_drop, table_list).

Invariants:
    - All data is lost on process exit
    - Tables are created on first use
    - Results are copies: mutating them never changes the store
    - Write results have the same shape as RethinkDB's
    - Thread-safe for concurrent access

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep result shapes aligned with the RethinkDB driver
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..config import RunOptions
from ..errors import QueryError, QueryLogicError
from .base import Adapter, Document

logger = logging.getLogger(__name__)

STREAM = "stream"
ARRAY = "array"
SINGLE = "single"
VALUE = "value"

_WRITE_RESULT = ("deleted", "errors", "inserted", "replaced", "skipped", "unchanged")


@dataclass(frozen=True)
class Ordering:
    """Sort key with direction, built by ``r.asc`` / ``r.desc``."""

    key: str
    descending: bool = False


class MemoryNamespace:
    """The ``r`` handed to query builders by the memory adapter."""

    @staticmethod
    def asc(key: str) -> Ordering:
        return Ordering(key)

    @staticmethod
    def desc(key: str) -> Ordering:
        return Ordering(key, descending=True)


class MemoryCursor:
    """Streaming result of a memory query."""

    def __init__(self, documents: List[Document]) -> None:
        self._documents = iter(documents)
        self.closed = False

    def __iter__(self) -> Iterator[Document]:
        return self

    def __next__(self) -> Document:
        if self.closed:
            raise StopIteration
        return next(self._documents)

    def close(self) -> None:
        self.closed = True


class MemoryQuery:
    """Chainable query expression, evaluated by :meth:`run`.

    Each method returns a new expression with one more term.
    """

    def __init__(
        self,
        adapter: MemoryAdapter,
        database: str,
        table: Optional[str],
        terms: Tuple[Tuple[str, Tuple[Any, ...]], ...] = (),
    ) -> None:
        self.adapter = adapter
        self.database = database
        self.table_name = table
        self.terms = terms

    def _chain(self, term: str, *args: Any) -> MemoryQuery:
        return MemoryQuery(self.adapter, self.database, self.table_name, self.terms + ((term, args),))

    # Database level
    def table(self, name: str) -> MemoryQuery:
        return MemoryQuery(self.adapter, self.database, name)

    def table_create(self, name: str) -> MemoryQuery:
        return self._chain("table_create", name)

    def table_drop(self, name: str) -> MemoryQuery:
        return self._chain("table_drop", name)

    def table_list(self) -> MemoryQuery:
        return self._chain("table_list")

    # Selections
    def get(self, key: Any) -> MemoryQuery:
        return self._chain("get", key)

    def filter(self, predicate: Any) -> MemoryQuery:
        return self._chain("filter", predicate)

    def order_by(self, key: Any) -> MemoryQuery:
        return self._chain("order_by", key)

    def limit(self, count: int) -> MemoryQuery:
        return self._chain("limit", count)

    def skip(self, count: int) -> MemoryQuery:
        return self._chain("skip", count)

    def nth(self, index: int) -> MemoryQuery:
        return self._chain("nth", index)

    # Aggregates
    def count(self) -> MemoryQuery:
        return self._chain("count")

    def sum(self, field: str) -> MemoryQuery:
        return self._chain("sum", field)

    def avg(self, field: str) -> MemoryQuery:
        return self._chain("avg", field)

    # Writes
    def insert(self, documents: Any) -> MemoryQuery:
        return self._chain("insert", documents)

    def update(self, changes: Document) -> MemoryQuery:
        return self._chain("update", changes)

    def delete(self) -> MemoryQuery:
        return self._chain("delete")

    def run(self) -> Any:
        return self.adapter._evaluate(self)

    def __repr__(self) -> str:
        terms = ".".join(f"{name}{args!r}" for name, args in self.terms)
        return f"MemoryQuery({self.database}.{self.table_name}{'.' + terms if terms else ''})"


class MemoryAdapter(Adapter):
    """In-memory implementation of Adapter for testing.

    Attributes:
        database: Default database name
        tables: Storage keyed by (database, table), each id -> document

    Example:
        >>> adapter = MemoryAdapter()
        >>> adapter.create("user", {"name": "L"})
        '6f1c...'
        >>> adapter.count("user")
        1
    """

    cursor_types = (MemoryCursor,)

    def __init__(
        self,
        database: Optional[str] = "test",
        run_options: Optional[RunOptions] = None,
    ) -> None:
        super().__init__(database=database, run_options=run_options)
        self.r = MemoryNamespace()
        self.tables: Dict[Tuple[str, str], Dict[Any, Document]] = defaultdict(dict)
        self._databases: Dict[str, set] = defaultdict(set)
        self._lock = threading.RLock()

    def _expression(self, table: Optional[str], database: Optional[str]) -> MemoryQuery:
        return MemoryQuery(self, database or self.database or "test", table)

    def _run(self, expression: Any, table: Optional[str]) -> Any:
        if not isinstance(expression, MemoryQuery):
            raise QueryError(f"Expected a query expression, got {type(expression).__name__}", table=table)
        return expression.run()

    def reset(self) -> None:
        """Drop every table (for tests)."""
        with self._lock:
            self.tables.clear()
            self._databases.clear()

    # Evaluation

    def _evaluate(self, query: MemoryQuery) -> Any:
        logger.debug(f"Evaluating {query!r}")
        with self._lock:
            if query.table_name is None:
                return self._evaluate_database(query)

            store = self._store(query.database, query.table_name)
            kind: str = STREAM
            value: Any = list(store.values())
            for position, (term, args) in enumerate(query.terms):
                kind, value = self._apply(query, store, position, kind, value, term, args)

            if kind == STREAM:
                return MemoryCursor(copy.deepcopy(value))
            return copy.deepcopy(value)

    def _store(self, database: str, table: str) -> Dict[Any, Document]:
        self._databases[database].add(table)
        return self.tables[(database, table)]

    def _evaluate_database(self, query: MemoryQuery) -> Any:
        if len(query.terms) != 1:
            raise QueryError(f"Unsupported database query: {query!r}")
        term, args = query.terms[0]
        database = query.database
        names = self._databases[database]

        if term == "table_list":
            return sorted(names)
        name = args[0]
        if term == "table_create":
            if name in names:
                raise QueryError(f"Table `{database}.{name}` already exists.", table=name)
            self._store(database, name)
            return {"tables_created": 1}
        if term == "table_drop":
            if name not in names:
                raise QueryError(f"Table `{database}.{name}` does not exist.", table=name)
            names.discard(name)
            self.tables.pop((database, name), None)
            return {"tables_dropped": 1}
        raise QueryError(f"Unsupported database query: {query!r}")

    def _apply(
        self,
        query: MemoryQuery,
        store: Dict[Any, Document],
        position: int,
        kind: str,
        value: Any,
        term: str,
        args: Tuple[Any, ...],
    ) -> Tuple[str, Any]:
        table = query.table_name

        if kind == VALUE:
            raise QueryError(f"Cannot apply {term} to a terminal value", table=table)

        if term == "get":
            if position != 0:
                raise QueryError("get can only be called on a table", table=table)
            return SINGLE, store.get(args[0])

        if term == "insert":
            if position != 0:
                raise QueryError("insert can only be called on a table", table=table)
            return VALUE, self._insert(store, args[0])

        if term == "update":
            return VALUE, self._update(store, self._targets(kind, value), args[0])

        if term == "delete":
            return VALUE, self._delete(store, self._targets(kind, value))

        if kind == SINGLE:
            raise QueryError(f"Cannot apply {term} to a single document", table=table)

        if term == "filter":
            return kind, [d for d in value if _matches(d, args[0])]

        if term == "order_by":
            return ARRAY, _ordered(value, args[0], table)

        if term in ("limit", "skip"):
            count = args[0]
            if not isinstance(count, int) or count < 0:
                raise QueryError(f"{term.capitalize()} takes a non-negative argument, got {count!r}", table=table)
            return kind, value[:count] if term == "limit" else value[count:]

        if term == "nth":
            index = args[0]
            try:
                return SINGLE, value[index]
            except IndexError:
                raise QueryLogicError(f"Index out of bounds: {index}", table=table) from None

        if term == "count":
            return VALUE, len(value)

        if term in ("sum", "avg"):
            numbers = [d[args[0]] for d in value if isinstance(d.get(args[0]), (int, float))]
            if term == "sum":
                return VALUE, sum(numbers)
            if not numbers:
                raise QueryLogicError("Cannot reduce over an empty stream.", table=table)
            return VALUE, sum(numbers) / len(numbers)

        raise QueryError(f"Unsupported term: {term}", table=table)

    @staticmethod
    def _targets(kind: str, value: Any) -> List[Optional[Document]]:
        return [value] if kind == SINGLE else list(value)

    @staticmethod
    def _insert(store: Dict[Any, Document], documents: Any) -> Dict[str, Any]:
        result = dict.fromkeys(_WRITE_RESULT, 0)
        generated: List[str] = []
        batch = documents if isinstance(documents, list) else [documents]

        for document in batch:
            document = copy.deepcopy(dict(document))
            if document.get("id") is None:
                document["id"] = str(uuid.uuid4())
                generated.append(document["id"])
            key = document["id"]
            if key in store:
                result["errors"] += 1
                result.setdefault(
                    "first_error",
                    f"Duplicate primary key `id`:\n{store[key]!r}\n{document!r}",
                )
                continue
            store[key] = document
            result["inserted"] += 1

        if generated:
            result["generated_keys"] = generated
        return result

    @staticmethod
    def _update(
        store: Dict[Any, Document],
        targets: List[Optional[Document]],
        changes: Document,
    ) -> Dict[str, Any]:
        result = dict.fromkeys(_WRITE_RESULT, 0)
        for document in targets:
            if document is None:
                result["skipped"] += 1
                continue
            if "id" in changes and changes["id"] != document["id"]:
                result["errors"] += 1
                result.setdefault("first_error", "Primary key `id` cannot be changed.")
                continue
            merged = {**document, **copy.deepcopy(changes)}
            if merged == document:
                result["unchanged"] += 1
            else:
                store[document["id"]] = merged
                result["replaced"] += 1
        return result

    @staticmethod
    def _delete(store: Dict[Any, Document], targets: List[Optional[Document]]) -> Dict[str, Any]:
        result = dict.fromkeys(_WRITE_RESULT, 0)
        for document in targets:
            if document is None or document["id"] not in store:
                result["skipped"] += 1
                continue
            del store[document["id"]]
            result["deleted"] += 1
        return result


def _matches(document: Document, predicate: Any) -> bool:
    if callable(predicate):
        return bool(predicate(document))
    return all(key in document and document[key] == expected for key, expected in predicate.items())


def _ordered(documents: List[Document], key: Any, table: Optional[str]) -> List[Document]:
    ordering = key if isinstance(key, Ordering) else Ordering(key)
    for document in documents:
        if ordering.key not in document:
            raise QueryLogicError(f"No attribute `{ordering.key}` in object", table=table)
    try:
        return sorted(documents, key=lambda d: d[ordering.key], reverse=ordering.descending)
    except TypeError as e:
        raise QueryLogicError(f"Cannot order by `{ordering.key}`: {e}", table=table) from e

