"""
Lazy result cursor for docrepo.

A Cursor wraps a raw document stream returned by an adapter and applies a
transform (normally the codec's decode step) to each element as it is
consumed, instead of materializing the whole result first.

Invariants:
    - Each element is transformed exactly once, in stream order, on demand
    - The cursor is single-pass: once exhausted it yields nothing
    - Iterating again requires re-issuing the query

Example:
    >>> cursor = Cursor(raw_stream, codec.decode)
    >>> for user in cursor:
    ...     print(user.name)
"""

from __future__ import annotations

from typing import Any, Callable, Generic, Iterable, Iterator, List, TypeVar

T = TypeVar("T")


class Cursor(Generic[T]):
    """Single-pass, forward-only sequence of transformed elements.

    Attributes:
        stream: The raw element stream
        transform: Per-element transform
    """

    def __init__(self, stream: Iterable[Any], transform: Callable[[Any], T]) -> None:
        self.stream = stream
        self.transform = transform
        self._iterator = iter(stream)

    def __iter__(self) -> Iterator[T]:
        for item in self._iterator:
            yield self.transform(item)

    def each(self, consumer: Callable[[T], Any]) -> None:
        """Feed every remaining element to ``consumer``.

        Raises:
            TypeError: If no callable consumer is given
        """
        if consumer is None or not callable(consumer):
            raise TypeError("Missing a consumer to enumerate cursor")
        for item in self:
            consumer(item)

    def to_list(self) -> List[T]:
        """Drain the cursor into a list."""
        return list(self)

    def close(self) -> None:
        """Close the underlying stream if it supports it."""
        close = getattr(self.stream, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> Cursor[T]:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
