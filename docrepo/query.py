"""
Query-building fragments for docrepo repositories.

A query builder is a callable ``(table, r) -> expression``: it receives the
table expression of the repository's collection and the driver namespace,
and returns the expression to run. The helpers below build small fragments
that can be chained with :func:`compose`, so custom finders read as intent
rather than as driver calls.

Example:
    >>> class ArticleRepository(Repository[Article]):
    ...     def most_recent_by_author(self, author, count=8):
    ...         return self._query(
    ...             compose(where(author_id=author.id), desc("published_at"), limit(count))
    ...         )
"""

from __future__ import annotations

from typing import Any

from .adapter.base import QueryBuilder


def where(**conditions: Any) -> QueryBuilder:
    """Keep documents whose fields equal every given value."""
    return lambda table, r: table.filter(conditions)


def order_by(key: str) -> QueryBuilder:
    """Sort ascending by ``key``."""
    return lambda table, r: table.order_by(key)


def asc(key: str) -> QueryBuilder:
    """Sort ascending by ``key`` (explicit form)."""
    return lambda table, r: table.order_by(r.asc(key))


def desc(key: str) -> QueryBuilder:
    """Sort descending by ``key``."""
    return lambda table, r: table.order_by(r.desc(key))


def limit(count: int) -> QueryBuilder:
    """Keep at most ``count`` documents."""
    return lambda table, r: table.limit(count)


def skip(count: int) -> QueryBuilder:
    """Drop the first ``count`` documents."""
    return lambda table, r: table.skip(count)


def compose(*builders: QueryBuilder) -> QueryBuilder:
    """Chain builders left to right, each refining the previous expression."""

    def build(table: Any, r: Any) -> Any:
        expr = table
        for builder in builders:
            expr = builder(expr, r)
        return expr

    return build
