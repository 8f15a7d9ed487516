"""
docrepo Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Repository tests against the in-memory adapter
- e2e/: End-to-end tests (RethinkDB server)
"""
