"""Tests for the click entry point (``main.cli``)."""

import pytest
from click.testing import CliRunner

import core.api_client
from conftest import FakeBackend
from core.errors import ApiError
from main import cli


class ContextFakeBackend(FakeBackend):
    """``FakeBackend`` usable as ``async with AssistantApiClient() as api``."""

    supported = ["MYSQL", "POSTGRESQL", "SQLITE", "H2"]

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def supported_types(self):
        if "supported_types" in self.errors:
            raise self.errors["supported_types"]
        return list(self.supported)


@pytest.fixture
def runner(tmp_path, monkeypatch) -> CliRunner:
    monkeypatch.chdir(tmp_path)
    return CliRunner()


@pytest.fixture
def fake_api(monkeypatch) -> ContextFakeBackend:
    backend = ContextFakeBackend()
    monkeypatch.setattr(core.api_client, "AssistantApiClient", lambda *args, **kwargs: backend)
    return backend


class TestVersion:

    def test_version(self, runner) -> None:
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert "SQLA — SQL Assistant" in result.output


class TestInspect:

    def test_prints_schema(self, runner, fake_api) -> None:
        result = runner.invoke(cli, ["inspect", "--kind", "sqlite", "--database", "/tmp/t.db"])

        assert result.exit_code == 0, result.output
        assert "Inspecting SQLITE database: /tmp/t.db" in result.output
        assert "TABLE: `users`" in result.output
        assert "TABLE: `orders`" in result.output
        assert fake_api.calls["get_schema"][0][1] == "abc"

    def test_filter(self, runner, fake_api) -> None:
        result = runner.invoke(cli, ["inspect", "-k", "sqlite", "-d", "/tmp/t.db", "--filter", "ema"])

        assert result.exit_code == 0, result.output
        assert "TABLE: `users`" in result.output
        assert "TABLE: `orders`" not in result.output

    def test_connection_failure_exits_nonzero(self, runner, fake_api) -> None:
        fake_api.fail("test_connection", "Connection failed: unable to open database file")
        result = runner.invoke(cli, ["inspect", "-k", "sqlite", "-d", "/tmp/missing.db"])

        assert result.exit_code == 1
        assert "unable to open database file" in result.output

    def test_blank_database_rejected(self, runner, fake_api) -> None:
        result = runner.invoke(cli, ["inspect", "-k", "sqlite", "-d", "   "])

        assert result.exit_code == 2
        assert fake_api.calls["test_connection"] == []


class TestTypes:

    def test_lists_types(self, runner, fake_api) -> None:
        result = runner.invoke(cli, ["types"])

        assert result.exit_code == 0
        assert "• SQLITE" in result.output

    def test_backend_error(self, runner, fake_api) -> None:
        fake_api.errors["supported_types"] = ApiError("Backend unreachable: refused")
        result = runner.invoke(cli, ["types"])

        assert result.exit_code == 1
        assert "Backend unreachable" in result.output
