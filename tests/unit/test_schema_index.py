"""Unit tests for the cached schema snapshot and its search filter.

Covers:
- Empty and case-insensitive filtering over table and column names
- One fetch per session, shared by concurrent callers
- Failed fetch leaves no snapshot
- Results arriving after close are discarded
- Plain-text schema rendering
"""

import asyncio

from conftest import FakeBackend, settle
from core.schema_index import SchemaIndex, format_schema_text


# ── filter ──────────────────────────────────────────────────────────────


class TestFilter:
    """Substring lookup over the loaded snapshot."""

    async def test_no_snapshot_returns_empty(self, backend, session) -> None:
        index = SchemaIndex(backend, session)
        assert index.filter("") == []
        assert backend.calls["get_schema"] == []

    async def test_empty_term_returns_all_in_order(self, backend, session) -> None:
        index = SchemaIndex(backend, session)
        await index.load()
        assert [t.name for t in index.filter("")] == ["users", "orders"]

    async def test_table_name_match_is_case_insensitive(self, backend, session) -> None:
        index = SchemaIndex(backend, session)
        await index.load()
        assert [t.name for t in index.filter("USERS")] == ["users"]

    async def test_column_name_match(self, backend, session) -> None:
        index = SchemaIndex(backend, session)
        await index.load()
        assert [t.name for t in index.filter("ema")] == ["users"]
        assert [t.name for t in index.filter("total")] == ["orders"]

    async def test_match_on_both_tables_keeps_order(self, backend, session) -> None:
        index = SchemaIndex(backend, session)
        await index.load()
        # "user_id" column on orders, "users" table name
        assert [t.name for t in index.filter("user")] == ["users", "orders"]

    async def test_no_match(self, backend, session) -> None:
        index = SchemaIndex(backend, session)
        await index.load()
        assert index.filter("zzz") == []

    async def test_filter_never_refetches(self, backend, session) -> None:
        index = SchemaIndex(backend, session)
        await index.load()
        for term in ("", "u", "id", "x"):
            index.filter(term)
        assert len(backend.calls["get_schema"]) == 1


# ── load ────────────────────────────────────────────────────────────────


class TestLoad:
    """Fetch-once semantics."""

    async def test_load_sends_session_id_and_params(self, backend, session) -> None:
        index = SchemaIndex(backend, session)
        result = await index.load()

        assert result.ok
        assert result.value.database_name == "shop"
        assert backend.calls["get_schema"] == [(session.params, "abc")]
        assert index.is_loaded

    async def test_second_load_uses_cache(self, backend, session) -> None:
        index = SchemaIndex(backend, session)
        first = await index.load()
        second = await index.load()

        assert first.value is second.value
        assert len(backend.calls["get_schema"]) == 1

    async def test_concurrent_loads_share_one_fetch(self, backend, session) -> None:
        gate = backend.block("get_schema")
        index = SchemaIndex(backend, session)

        waiters = [asyncio.ensure_future(index.load()) for _ in range(3)]
        await settle()
        assert index.is_loading

        gate.set()
        results = await asyncio.gather(*waiters)

        assert all(r.ok for r in results)
        assert len(backend.calls["get_schema"]) == 1

    async def test_start_loading_then_load_shares_fetch(self, backend, session) -> None:
        index = SchemaIndex(backend, session)
        index.start_loading()
        await index.load()
        assert len(backend.calls["get_schema"]) == 1

    async def test_failure_leaves_no_snapshot(self, backend, session) -> None:
        backend.fail("get_schema", "Failed to get database schema: boom")
        index = SchemaIndex(backend, session)

        result = await index.load()

        assert not result.ok
        assert result.error.message == "Failed to get database schema: boom"
        assert index.snapshot is None
        assert index.error is result.error
        assert index.filter("") == []

    async def test_failed_fetch_retried_on_next_load(self, backend, session) -> None:
        backend.fail("get_schema", "boom")
        index = SchemaIndex(backend, session)
        await index.load()

        del backend.errors["get_schema"]
        result = await index.load()

        assert result.ok
        assert len(backend.calls["get_schema"]) == 2

    async def test_result_after_close_is_discarded(self, backend, session) -> None:
        gate = backend.block("get_schema")
        index = SchemaIndex(backend, session)
        pending = index.start_loading()
        await settle()

        index.close()
        gate.set()
        await pending

        assert index.snapshot is None


# ── format_schema_text ──────────────────────────────────────────────────


class TestFormatSchemaText:

    def test_full_rendering(self) -> None:
        snapshot = FakeBackend().snapshot
        text = format_schema_text(snapshot)

        assert "DATABASE: `shop`" in text
        assert "Product: SQLite  Version: 3.45.0" in text
        assert "Tables: 2 of 2" in text
        assert "  - id: INTEGER [PK, NOT NULL]" in text
        assert "  - email: TEXT" in text

    def test_subset_rendering(self) -> None:
        snapshot = FakeBackend().snapshot
        text = format_schema_text(snapshot, snapshot.tables[1:])

        assert "Tables: 1 of 2" in text
        assert "TABLE: `orders`" in text
        assert "TABLE: `users`" not in text
