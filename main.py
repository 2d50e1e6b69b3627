#!/usr/bin/env python3
# ============================================================
# SQLA - SQL Assistant
# main.py - Application Entry Point
# ============================================================
#
# Usage:
#   sqla                                → Launch full TUI (connection form)
#   sqla simple -k sqlite -d ./app.db   → Launch simple CLI (no TUI)
#   sqla inspect -k mysql -d shop       → Print a database schema
#   sqla types                          → List backend-supported database types
#   sqla version                        → Show version info
#
# Prerequisites:
#   1. The assistant backend running (SQLA_API_BASE_URL, default
#      http://localhost:8080/api)
#   2. .env file configured (copy from .env.example)
# ============================================================

import asyncio
import os
import sys
from typing import Optional

import click
import httpx
from loguru import logger
from pydantic import ValidationError

from utils.logger import setup_logger
from config import api_config, app_config
from core.models import ConnectionParams, DatabaseKind


def connection_options(func):
    """Shared connection flags for commands that open a session."""
    options = [
        click.option("--kind", "-k", type=click.Choice([k.value for k in DatabaseKind], case_sensitive=False),
                     default=DatabaseKind.MYSQL.value, show_default=True, help="Database type."),
        click.option("--database", "-d", required=True, help="Database name, or file path for SQLite/H2."),
        click.option("--host", "-h", default=None, help="Host (MySQL/PostgreSQL)."),
        click.option("--port", "-p", type=int, default=None, help="Port (MySQL/PostgreSQL)."),
        click.option("--username", "-u", default=None, help="Username."),
        click.option("--password", default=None, help="Password."),
        click.option("--connection-string", default=None, help="Full connection URL; overrides the other fields."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group(invoke_without_command=True)
@click.pass_context
def cli(ctx):
    """SQLA - SQL Assistant CLI"""
    if ctx.invoked_subcommand is None:
        launch_tui()


@cli.command()
def tui():
    """Launch the full TUI interface (default)."""
    launch_tui()


@cli.command()
@connection_options
def simple(kind, database, host, port, username, password, connection_string):
    """Launch the simple single-panel CLI interface."""
    params = _build_params(kind, database, host, port, username, password, connection_string)
    launch_simple_cli(params)


@cli.command()
@connection_options
@click.option("--filter", "-f", "term", default="", help="Only tables whose name or a column name contains TERM.")
def inspect(kind, database, host, port, username, password, connection_string, term):
    """Inspect a database schema through the backend and print it."""
    params = _build_params(kind, database, host, port, username, password, connection_string)
    run_inspect(params, term)


@cli.command()
def types():
    """List the database types the backend supports."""
    run_types()


@cli.command()
def version():
    """Display SQLA version information."""
    show_version()


# ── Launch Functions ──────────────────────────────────────────

def launch_tui():
    """Start the full Textual TUI application."""
    setup_logger(app_config.log_file, app_config.log_level)
    logger.info(f"Starting {app_config.name} v{app_config.version} (TUI mode)")

    # Pre-flight checks
    if not _check_environment():
        sys.exit(1)

    from ui.tui import SQLAApp
    app = SQLAApp()
    app.run()


def launch_simple_cli(params: ConnectionParams):
    """
    Simple CLI mode: no Textual TUI, just a prompt_toolkit shell.
    Useful for environments where TUI doesn't work or for debugging.
    """
    setup_logger(app_config.log_file, app_config.log_level)
    logger.info(f"Starting {app_config.name} v{app_config.version} (simple mode)")

    from simple_cli import SimpleCLI
    cli_app = SimpleCLI(params)
    cli_app.run()


def run_inspect(params: ConnectionParams, term: str = ""):
    """Open a session, fetch its schema once and print it."""
    setup_logger(app_config.log_file, "WARNING")

    output = asyncio.run(_inspect(params, term))
    if output is None:
        sys.exit(1)

    click.echo(f"\nInspecting {params.describe()}\n")
    click.echo(output)


async def _inspect(params: ConnectionParams, term: str) -> Optional[str]:
    from core.api_client import AssistantApiClient
    from core.schema_index import format_schema_text
    from core.session import SessionManager

    async with AssistantApiClient() as api:
        sessions = SessionManager(api)
        opened = await sessions.open(params)
        if opened is None or not opened.ok:
            click.echo(f"❌ {opened.error.message if opened else 'Connection failed'}", err=True)
            return None

        schema = sessions.workspace.schema
        loaded = await schema.load()
        tables = schema.filter(term) if term else None
        sessions.reset()
        if not loaded.ok:
            click.echo(f"❌ {loaded.error.message}", err=True)
            return None

        return format_schema_text(loaded.value, tables)


def run_types():
    from core.api_client import AssistantApiClient
    from core.errors import ApiError

    setup_logger(app_config.log_file, "WARNING")

    async def fetch():
        async with AssistantApiClient() as api:
            return await api.supported_types()

    try:
        supported = asyncio.run(fetch())
    except ApiError as e:
        click.echo(f"❌ {e.message}", err=True)
        sys.exit(1)

    for name in supported:
        click.echo(f"  • {name}")


def show_version():
    """Display version and configuration info."""
    click.echo(f"""
╔══════════════════════════════════════════════════════╗
║               SQLA — SQL Assistant                   ║
╠══════════════════════════════════════════════════════╣
║  Version    : {app_config.version:<39}║
║  Backend    : {api_config.base_url:<39}║
║  Timeout    : {str(api_config.timeout) + 's':<39}║
║  Log file   : {app_config.log_file:<39}║
╚══════════════════════════════════════════════════════╝
""")


# ── Helpers ───────────────────────────────────────────────────

def _build_params(kind, database, host, port, username, password, connection_string) -> ConnectionParams:
    try:
        return ConnectionParams(
            kind=DatabaseKind(kind.upper()),
            database=database,
            host=host,
            port=port,
            username=username,
            password=password,
            connection_string_override=connection_string,
        )
    except ValidationError as e:
        first = e.errors()[0]
        raise click.BadParameter(f"{first.get('loc', ['?'])[-1]}: {first.get('msg')}")


# ── Pre-flight Checks ─────────────────────────────────────────

def _check_environment() -> bool:
    """Run environment checks before launching."""
    issues = []

    # Check .env exists
    if not os.path.exists(".env"):
        if os.path.exists(".env.example"):
            print("⚠️  No .env file found! Copying .env.example → .env")
            import shutil
            shutil.copy(".env.example", ".env")
            print("   Edit it if the backend is not at the default address.")

    if not api_config.base_url.startswith(("http://", "https://")):
        issues.append(f"SQLA_API_BASE_URL must be an http(s) URL, got {api_config.base_url!r}")
        return _report(issues)

    # Check the backend is reachable
    try:
        resp = httpx.get(f"{api_config.base_url}/database/supported-types",
                         headers=api_config.get_headers(), timeout=5)
        if resp.is_error:
            print(f"⚠️  Backend at {api_config.base_url} answered HTTP {resp.status_code}")
    except httpx.HTTPError as e:
        logger.warning(f"Backend unreachable at {api_config.base_url}: {e}")
        print(
            f"⚠️  Backend not reachable at {api_config.base_url}\n"
            f"   Set SQLA_API_BASE_URL in .env if it runs elsewhere.\n"
            f"   SQLA will start but every connection attempt will fail."
        )

    return _report(issues)


def _report(issues) -> bool:
    for issue in issues:
        print(f"❌ {issue}")
    return not issues


# ── Entry Point ───────────────────────────────────────────────

if __name__ == "__main__":
    cli()
