"""
Unit tests for the in-memory adapter.

Tests cover:
- Query entry point contract
- Shared record commands
- Selection, ordering and aggregate terms
- Write result shapes
- Database-level table management
"""

import threading

import pytest

from docrepo.adapter.memory import MemoryAdapter, MemoryCursor
from docrepo.errors import (
    AdapterConnectionError,
    EntityExistedError,
    MissingQueryBuilderError,
    QueryError,
    QueryLogicError,
)


@pytest.fixture
def adapter():
    """Create a fresh adapter."""
    return MemoryAdapter()


@pytest.fixture
def seeded(adapter):
    """Adapter with three ranked articles."""
    for key, rank in (("a", 2), ("b", 3), ("c", 1)):
        adapter.create("article", {"id": key, "rank": rank, "user_id": "u1" if rank > 1 else "u2"})
    return adapter


class TestQueryEntryPoint:
    """Tests for Adapter.query."""

    def test_missing_builder(self, adapter):
        """A query without builder raises."""
        with pytest.raises(MissingQueryBuilderError, match="Missing query block"):
            adapter.query("article")

    def test_builder_receives_table_and_namespace(self, adapter):
        """The builder gets the table expression and r."""
        seen = {}

        def builder(table, r):
            seen["table"], seen["r"] = table, r
            return table.count()

        assert adapter.query("article", builder) == 0
        assert seen["table"].table_name == "article"
        assert seen["r"] is adapter.r

    def test_non_expression_rejected(self, adapter):
        """Builders must return an expression."""
        with pytest.raises(QueryError, match="Expected a query expression"):
            adapter.query("article", lambda t, r: 42)

    def test_table_stream_is_cursor(self, seeded):
        """Whole-table queries stream."""
        result = seeded.query("article", lambda t, r: t)
        assert isinstance(result, MemoryCursor)
        assert sorted(d["id"] for d in result) == ["a", "b", "c"]

    def test_results_are_copies(self, seeded):
        """Mutating results leaves the store intact."""
        document = seeded.find("article", "a")
        document["rank"] = 99
        assert seeded.find("article", "a")["rank"] == 2


class TestRecordCommands:
    """Tests for shared commands built on query."""

    def test_create_generates_id(self, adapter):
        """Documents without id get a generated key."""
        key = adapter.create("user", {"name": "L"})
        assert isinstance(key, str)
        assert adapter.find("user", key) == {"id": key, "name": "L"}

    def test_create_keeps_client_id(self, adapter):
        """Client ids are kept."""
        assert adapter.create("user", {"id": "u1"}) == "u1"

    def test_create_duplicate(self, adapter):
        """Duplicate primary keys raise EntityExistedError."""
        adapter.create("user", {"id": "u1"})
        with pytest.raises(EntityExistedError) as exc_info:
            adapter.create("user", {"id": "u1"})
        assert exc_info.value.entity_id == "u1"

    def test_update_merges(self, adapter):
        """Update merges fields into the stored record."""
        adapter.create("user", {"id": "u1", "name": "L", "age": 3})

        assert adapter.update("user", {"id": "u1", "name": "M"}) == 1
        assert adapter.find("user", "u1") == {"id": "u1", "name": "M", "age": 3}

    def test_update_unchanged_counts_as_match(self, adapter):
        """Identical updates still match."""
        adapter.create("user", {"id": "u1", "name": "L"})
        assert adapter.update("user", {"id": "u1", "name": "L"}) == 1

    def test_update_missing(self, adapter):
        """Updating a missing record matches nothing."""
        assert adapter.update("user", {"id": "ghost", "name": "L"}) == 0

    def test_persist(self, adapter):
        """persist creates without id and updates with one."""
        key = adapter.persist("user", {"name": "L"})
        assert adapter.persist("user", {"id": key, "name": "M"}) == 1

    def test_delete(self, seeded):
        """Delete removes one record."""
        assert seeded.delete("article", "a") == 1
        assert seeded.delete("article", "a") == 0
        assert seeded.count("article") == 2

    def test_find_missing(self, adapter):
        """Missing ids return None."""
        assert adapter.find("user", "ghost") is None

    def test_first_last(self, seeded):
        """first/last order by key."""
        assert seeded.first("article")["id"] == "a"
        assert seeded.last("article")["id"] == "c"
        assert seeded.first("article", order_by="rank")["id"] == "c"
        assert seeded.last("article", order_by="rank")["id"] == "b"

    def test_first_empty(self, adapter):
        """first on an empty table is None."""
        assert adapter.first("article") is None

    def test_first_unorderable(self, seeded):
        """Ordering failures yield None."""
        assert seeded.first("article", order_by="missing") is None

    def test_order_by_missing_attribute_is_logic_error(self, seeded):
        """Ordering by an absent attribute raises QueryLogicError."""
        with pytest.raises(QueryLogicError, match="No attribute `missing`"):
            seeded.query("article", lambda t, r: t.order_by("missing"))

    def test_first_propagates_connection_errors(self, seeded, monkeypatch):
        """Only ordering failures are reported as None."""

        def refuse(expression, table):
            raise AdapterConnectionError("connection refused")

        monkeypatch.setattr(seeded, "_run", refuse)

        with pytest.raises(AdapterConnectionError):
            seeded.first("article")
        with pytest.raises(AdapterConnectionError):
            seeded.last("article")

    def test_clear(self, seeded):
        """clear removes everything and reports the count."""
        assert seeded.clear("article") == 3
        assert seeded.count("article") == 0
        assert seeded.clear("article") == 0


class TestTerms:
    """Tests for selection and aggregate terms."""

    def test_filter_mapping(self, seeded):
        """Mapping filters match on equality."""
        result = seeded.query("article", lambda t, r: t.filter({"user_id": "u1"}))
        assert sorted(d["id"] for d in result) == ["a", "b"]

    def test_filter_predicate(self, seeded):
        """Callable filters are applied per document."""
        result = seeded.query("article", lambda t, r: t.filter(lambda d: d["rank"] >= 2))
        assert len(list(result)) == 2

    def test_order_by_desc_limit(self, seeded):
        """Ordered selections are lists."""
        result = seeded.query("article", lambda t, r: t.order_by(r.desc("rank")).limit(2))
        assert isinstance(result, list)
        assert [d["id"] for d in result] == ["b", "a"]

    def test_skip(self, seeded):
        """skip drops leading documents."""
        result = seeded.query("article", lambda t, r: t.order_by(r.asc("rank")).skip(1))
        assert [d["rank"] for d in result] == [2, 3]

    def test_negative_limit(self, seeded):
        """Negative limits are rejected."""
        with pytest.raises(QueryError):
            seeded.query("article", lambda t, r: t.limit(-1))

    def test_nth(self, seeded):
        """nth picks one document."""
        assert seeded.query("article", lambda t, r: t.order_by("id").nth(1))["id"] == "b"

    def test_nth_out_of_bounds(self, seeded):
        """nth past the end raises."""
        with pytest.raises(QueryError, match="Index out of bounds"):
            seeded.query("article", lambda t, r: t.nth(10))

    def test_aggregates(self, seeded):
        """count, sum and avg reduce to scalars."""
        assert seeded.query("article", lambda t, r: t.filter({"user_id": "u1"}).count()) == 2
        assert seeded.query("article", lambda t, r: t.sum("rank")) == 6
        assert seeded.query("article", lambda t, r: t.avg("rank")) == 2

    def test_avg_empty(self, adapter):
        """avg over nothing raises."""
        with pytest.raises(QueryError):
            adapter.query("article", lambda t, r: t.avg("rank"))

    def test_get_then_filter_rejected(self, seeded):
        """Stream terms do not apply to single documents."""
        with pytest.raises(QueryError):
            seeded.query("article", lambda t, r: t.get("a").filter({}))

    def test_terminal_value_rejected(self, seeded):
        """Nothing chains after an aggregate."""
        with pytest.raises(QueryError):
            seeded.query("article", lambda t, r: t.count().limit(1))

    def test_bulk_filter_update(self, seeded):
        """Updates apply to every selected document."""
        result = seeded.query("article", lambda t, r: t.filter({"user_id": "u1"}).update({"flag": True}))
        assert result["replaced"] == 2
        assert seeded.find("article", "a")["flag"] is True

    def test_primary_key_change_rejected(self, seeded):
        """Updates cannot change the id."""
        result = seeded.query("article", lambda t, r: t.get("a").update({"id": "z"}))
        assert result["errors"] == 1
        assert "Primary key" in result["first_error"]

    def test_insert_result_shape(self, adapter):
        """Insert results mirror RethinkDB's."""
        result = adapter.query("article", lambda t, r: t.insert([{"id": "x"}, {"rank": 1}]))
        assert result["inserted"] == 2
        assert len(result["generated_keys"]) == 1
        assert result["errors"] == 0


class TestDatabaseQueries:
    """Tests for database-level queries."""

    def test_table_lifecycle(self, adapter):
        """Tables can be created, listed and dropped."""
        adapter.query(None, lambda db, r: db.table_create("movie"))
        assert adapter.query(None, lambda db, r: db.table_list()) == ["movie"]

        adapter.query(None, lambda db, r: db.table_drop("movie"))
        assert adapter.query(None, lambda db, r: db.table_list()) == []

    def test_create_existing_table(self, adapter):
        """Creating an existing table raises."""
        adapter.count("movie")
        with pytest.raises(QueryError, match="already exists"):
            adapter.query(None, lambda db, r: db.table_create("movie"))

    def test_drop_missing_table(self, adapter):
        """Dropping a missing table raises."""
        with pytest.raises(QueryError, match="does not exist"):
            adapter.query(None, lambda db, r: db.table_drop("movie"))

    def test_databases_are_separate(self, adapter):
        """Tables are scoped by database."""
        adapter.query("movie", lambda t, r: t.insert({"id": "m"}), database="other")
        assert adapter.count("movie") == 0
        assert adapter.query("movie", lambda t, r: t.count(), database="other") == 1

    def test_table_from_database(self, adapter):
        """db.table() reaches a table expression."""
        adapter.create("movie", {"id": "m"})
        assert adapter.query(None, lambda db, r: db.table("movie").count()) == 1


class TestConcurrency:
    """Tests for thread safety."""

    def test_concurrent_creates(self, adapter):
        """Concurrent creates are all stored."""

        def worker():
            for _ in range(50):
                adapter.create("counter", {})

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert adapter.count("counter") == 200
