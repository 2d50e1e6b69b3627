"""Shared test fixtures for SQLA."""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from core.errors import ApiError
from core.models import (
    ColumnInfo,
    ConnectionParams,
    ConnectionSession,
    DatabaseKind,
    ExecutionPayload,
    ExecutionResponse,
    GeneratedQuery,
    GenerationResponse,
    ProbeResponse,
    SchemaResponse,
    SchemaSnapshot,
    TableInfo,
)

# ---------------------------------------------------------------------------
# Protocol fakes
# ---------------------------------------------------------------------------


def make_snapshot() -> SchemaSnapshot:
    """Two-table snapshot: ``users(id, email)`` and ``orders(id, user_id, total)``."""
    return SchemaSnapshot(
        database_name="shop",
        tables=[
            TableInfo(
                name="users",
                columns=[
                    ColumnInfo(name="id", column_type="INTEGER", is_primary_key=True, nullable=False),
                    ColumnInfo(name="email", column_type="TEXT"),
                ],
            ),
            TableInfo(
                name="orders",
                columns=[
                    ColumnInfo(name="id", column_type="INTEGER", is_primary_key=True, nullable=False),
                    ColumnInfo(name="user_id", column_type="INTEGER"),
                    ColumnInfo(name="total", column_type="REAL"),
                ],
            ),
        ],
        metadata={"databaseProductName": "SQLite", "databaseProductVersion": "3.45.0"},
    )


class FakeBackend:
    """In-memory fake satisfying the ``AssistantBackend`` protocol.

    Returns canned responses (or raises a configured ``ApiError``) and
    records every call. ``block(name)`` returns an event that holds the
    named operation until it is set.
    """

    def __init__(self, connection_id: str = "abc") -> None:
        self.connection_id = connection_id
        self.snapshot: SchemaSnapshot = make_snapshot()
        self.generated = GeneratedQuery(
            generated_sql="SELECT * FROM users;",
            explanation="Lists every user.",
        )
        self.execution = ExecutionPayload(
            results=[{"id": 1, "email": "a@x.com"}],
            column_names=["id", "email"],
            column_types=["INTEGER", "TEXT"],
            row_count=1,
            execution_time_ms=4,
        )
        self.errors: Dict[str, ApiError] = {}
        self.calls: Dict[str, List[Any]] = {
            "test_connection": [],
            "get_schema": [],
            "generate": [],
            "execute": [],
            "aclose": [],
        }
        self._gates: Dict[str, asyncio.Event] = {}

    def block(self, name: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[name] = gate
        return gate

    def fail(self, name: str, message: str) -> None:
        self.errors[name] = ApiError(message, status_code=500)

    async def _enter(self, name: str, call: Any) -> None:
        self.calls[name].append(call)
        gate = self._gates.get(name)
        if gate is not None:
            await gate.wait()
        if name in self.errors:
            raise self.errors[name]

    async def test_connection(self, params: ConnectionParams) -> ProbeResponse:
        await self._enter("test_connection", params)
        return ProbeResponse(connection_id=self.connection_id, message="Connection successful")

    async def get_schema(self, params: ConnectionParams, connection_id: str) -> SchemaResponse:
        await self._enter("get_schema", (params, connection_id))
        return SchemaResponse(connection_id=connection_id, snapshot=self.snapshot)

    async def generate(
        self,
        natural_language_query: str,
        connection_id: str,
        params: ConnectionParams,
        context: Optional[Dict[str, Any]] = None,
    ) -> GenerationResponse:
        await self._enter("generate", (natural_language_query, connection_id, params, context))
        return GenerationResponse(query=self.generated)

    async def execute(
        self,
        sql: str,
        connection_id: str,
        params: ConnectionParams,
        limit: int,
        dry_run: bool = False,
    ) -> ExecutionResponse:
        await self._enter("execute", {"sql": sql, "connection_id": connection_id, "limit": limit, "dry_run": dry_run})
        return ExecutionResponse(execution=self.execution)

    async def aclose(self) -> None:
        self.calls["aclose"].append(None)


async def settle() -> None:
    """Let scheduled tasks run up to their next suspension point."""
    for _ in range(5):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def backend() -> FakeBackend:
    """Return a ``FakeBackend`` with canned successful responses."""
    return FakeBackend()


@pytest.fixture
def sqlite_params() -> ConnectionParams:
    return ConnectionParams(kind=DatabaseKind.SQLITE, database="/tmp/t.db")


@pytest.fixture
def session(sqlite_params: ConnectionParams) -> ConnectionSession:
    return ConnectionSession(id="abc", params=sqlite_params)
