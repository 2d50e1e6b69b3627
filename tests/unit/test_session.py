"""Unit tests for connection sessions and workspace lifecycle.

Covers:
- Successful probe creates a session and mounts a workspace
- Failed probe leaves state untouched
- Probe in flight rejects a second open
- Reset tears everything down and late results are ignored
- End-to-end connect → search → generate → execute
"""

import asyncio

from conftest import settle
from core.conversation import Role
from core.models import ConnectionParams, DatabaseKind, ExecutionSuccess
from core.session import CONNECTION_FAILED_MESSAGE, WELCOME_MESSAGE, SessionManager


class TestOpen:

    async def test_success_creates_session_and_workspace(self, backend, sqlite_params) -> None:
        manager = SessionManager(backend)

        result = await manager.open(sqlite_params)

        assert result.ok
        assert result.value.id == "abc"
        assert result.value.params == sqlite_params
        assert manager.is_connected
        assert manager.session is result.value
        workspace = manager.workspace
        assert workspace.session is result.value
        assert [(e.role, e.text) for e in workspace.conversation] == [(Role.SYSTEM, WELCOME_MESSAGE)]
        assert workspace.draft.is_blank()
        assert workspace.execution.outcome is None

    async def test_success_starts_schema_fetch(self, backend, sqlite_params) -> None:
        manager = SessionManager(backend)
        await manager.open(sqlite_params)
        await settle()

        assert backend.calls["get_schema"] == [(sqlite_params, "abc")]
        assert manager.workspace.schema.is_loaded

    async def test_failure_returns_error_and_creates_nothing(self, backend, sqlite_params) -> None:
        backend.fail("test_connection", "Connection failed: unable to open database file")
        manager = SessionManager(backend)

        result = await manager.open(sqlite_params)

        assert not result.ok
        assert result.error.message == "Connection failed: unable to open database file"
        assert not manager.is_connected
        assert manager.workspace is None
        assert backend.calls["get_schema"] == []

    async def test_failure_without_message_uses_fallback(self, backend, sqlite_params) -> None:
        backend.fail("test_connection", "")
        result = await SessionManager(backend).open(sqlite_params)
        assert result.error.message == CONNECTION_FAILED_MESSAGE

    async def test_failed_reconnect_keeps_current_session(self, backend, sqlite_params) -> None:
        manager = SessionManager(backend)
        await manager.open(sqlite_params)
        current = manager.workspace

        backend.fail("test_connection", "nope")
        await manager.open(ConnectionParams(kind=DatabaseKind.H2, database="mem:other"))

        assert manager.workspace is current
        assert not current.closed

    async def test_open_while_probing_is_rejected(self, backend, sqlite_params) -> None:
        gate = backend.block("test_connection")
        manager = SessionManager(backend)

        first = asyncio.ensure_future(manager.open(sqlite_params))
        await settle()
        assert manager.opening
        assert await manager.open(sqlite_params) is None

        gate.set()
        assert (await first).ok
        assert len(backend.calls["test_connection"]) == 1

    async def test_new_session_gets_fresh_workspace(self, backend, sqlite_params) -> None:
        manager = SessionManager(backend)
        await manager.open(sqlite_params)
        old = manager.workspace
        old.draft.edit("SELECT 1;")

        backend.connection_id = "def"
        await manager.open(sqlite_params)

        assert old.closed
        assert manager.session.id == "def"
        assert manager.workspace is not old
        assert manager.workspace.draft.is_blank()
        assert len(manager.workspace.conversation) == 1


class TestReset:

    async def test_reset_clears_everything(self, backend, sqlite_params) -> None:
        manager = SessionManager(backend)
        await manager.open(sqlite_params)
        workspace = manager.workspace

        manager.reset()

        assert manager.session is None
        assert manager.workspace is None
        assert not manager.is_connected
        assert workspace.closed

    async def test_reset_without_session_is_noop(self, backend) -> None:
        manager = SessionManager(backend)
        manager.reset()
        assert manager.session is None

    async def test_generation_after_reset_is_ignored(self, backend, sqlite_params) -> None:
        manager = SessionManager(backend)
        await manager.open(sqlite_params)
        workspace = manager.workspace
        gate = backend.block("generate")

        pending = asyncio.ensure_future(workspace.generation.generate("show all users"))
        await settle()
        manager.reset()
        gate.set()
        await pending

        assert len(workspace.conversation) == 1
        assert workspace.draft.is_blank()


class TestEndToEnd:

    async def test_connect_search_generate_execute(self, backend) -> None:
        manager = SessionManager(backend)
        params = ConnectionParams(kind=DatabaseKind.SQLITE, database="/tmp/t.db")

        opened = await manager.open(params)
        assert opened.value.id == "abc"
        workspace = manager.workspace

        await workspace.schema.load()
        assert [t.name for t in workspace.schema.filter("ema")] == ["users"]

        generated = await workspace.generation.generate("show all users")
        assert generated.ok
        assert workspace.draft.text == "SELECT * FROM users;"
        assert [e.role for e in workspace.conversation] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]

        executed = await workspace.execution.execute()
        assert executed.ok
        assert isinstance(workspace.execution.outcome, ExecutionSuccess)
        preview = workspace.execution.preview()
        assert preview.rows == [{"id": 1, "email": "a@x.com"}]
        assert preview.label == "1 rows, 4ms"
        assert preview.note is None

        assert backend.calls["generate"][0][1] == "abc"
        assert backend.calls["execute"][0]["connection_id"] == "abc"


class TestConcurrentControllers:

    async def test_generation_landing_mid_execution_keeps_sent_sql(self, backend, sqlite_params) -> None:
        manager = SessionManager(backend)
        await manager.open(sqlite_params)
        workspace = manager.workspace
        workspace.draft.edit("SELECT COUNT(*) FROM orders;")
        execute_gate = backend.block("execute")

        running = asyncio.ensure_future(workspace.execution.execute())
        await settle()
        assert workspace.execution.in_flight

        generated = await workspace.generation.generate("show all users")
        assert generated.ok
        assert workspace.draft.text == "SELECT * FROM users;"

        execute_gate.set()
        executed = await running

        assert executed.ok
        assert [call["sql"] for call in backend.calls["execute"]] == ["SELECT COUNT(*) FROM orders;"]
        assert workspace.draft.text == "SELECT * FROM users;"
        assert not workspace.execution.in_flight
