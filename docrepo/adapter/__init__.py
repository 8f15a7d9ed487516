"""
Query executors for docrepo.

Backends:
- RethinkDbAdapter: production, RethinkDB server
- MemoryAdapter: testing and local development
"""

from .base import Adapter, Document, QueryBuilder
from .memory import MemoryAdapter, MemoryCursor
from .rethink import RethinkDbAdapter

__all__ = [
    "Adapter",
    "Document",
    "QueryBuilder",
    "MemoryAdapter",
    "MemoryCursor",
    "RethinkDbAdapter",
]
