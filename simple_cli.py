# ============================================================
# SQLA - SQL Assistant
# simple_cli.py - Fallback Simple CLI (no Textual TUI)
# ============================================================
#
# Line-based front end over the same SessionManager / Workspace the
# TUI uses. Two modes of input:
#   chat - natural language goes to the generator
#   sql  - the line replaces the SQL draft and is executed
# ============================================================

import asyncio
import os
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from config import app_config
from core.api_client import AssistantApiClient
from core.conversation import Role
from core.errors import ApiError
from core.models import ConnectionParams
from core.result_formatter import (
    build_schema_tree,
    format_outcome,
    format_outcome_as_text,
    format_sql_syntax,
)
from core.session import SessionManager, Workspace
from utils.helpers import format_time, single_line, truncate_string


HELP_TEXT = """[bold]Commands[/bold]
  /execute         run the current SQL draft
  /sql             show the current SQL draft
  /edit            edit the SQL draft
  /mode            toggle chat / sql input mode
  /schema [term]   show tables (optionally filtered by table or column name)
  /validate        validate the SQL draft
  /explain         explain the SQL draft
  /history         show this session's conversation
  /reset           reconnect and start a fresh workspace
  /version         show version
  /exit            quit"""


class SimpleCLI:
    """
    Simple single-window CLI for SQLA. The current input mode is shown
    in the prompt.
    """

    def __init__(self, params: ConnectionParams, api: Optional[AssistantApiClient] = None):
        self.console = Console()
        self.params = params
        self.api = api or AssistantApiClient()
        self.sessions = SessionManager(self.api)

        self._mode: str = "chat"  # "chat" or "sql"
        self._running: bool = True

        # Prompt toolkit session with history
        history_file = os.path.expanduser("~/.sqla_history")
        self.session = PromptSession(
            history=FileHistory(history_file),
            auto_suggest=AutoSuggestFromHistory(),
        )

    @property
    def workspace(self) -> Optional[Workspace]:
        return self.sessions.workspace

    def run(self):
        asyncio.run(self.run_async())

    async def run_async(self):
        """Main loop."""
        self._print_banner()
        try:
            if not await self._connect():
                return

            while self._running:
                user_input = await self._get_input()
                if user_input is None:
                    break
                user_input = user_input.strip()
                if not user_input:
                    continue
                await self._handle_input(user_input)
        finally:
            await self._shutdown()

    async def _connect(self) -> bool:
        self.console.print(f"[dim]Connecting to {escape(self.params.describe())}...[/dim]")
        result = await self.sessions.open(self.params)
        if result is None or not result.ok:
            message = result.error.message if result is not None else "Connection already in progress"
            self.console.print(f"[red]✗ {escape(message)}[/red]")
            return False

        session = result.value
        self.console.print(f"[green]✓ Connected[/green] [dim](connection {session.id})[/dim]")
        self.console.print(f"[dim]{escape(self.workspace.conversation.last.text)}[/dim]")
        self.console.print("[dim]Type [bold]/help[/bold] for commands.[/dim]\n")
        return True

    async def _get_input(self) -> Optional[str]:
        """Get input from user with context-aware prompt."""
        db_part = f"[{self.params.database}]"
        mode_indicator = "💬" if self._mode == "chat" else "SQL"

        try:
            return await self.session.prompt_async(
                HTML(
                    f"<ansigreen><b>sqla{db_part}</b></ansigreen>"
                    f"<ansiyellow> {mode_indicator} </ansiyellow>"
                    f"<ansicyan>▶ </ansicyan>"
                )
            )
        except KeyboardInterrupt:
            return ""
        except EOFError:
            return None

    async def _handle_input(self, user_input: str):
        """Route input to appropriate handler."""
        if user_input.startswith("/"):
            await self._handle_command(user_input)
            return

        if self._mode == "sql":
            self.workspace.draft.edit(user_input)
            await self._execute_draft()
            return

        await self._handle_chat(user_input)

    async def _handle_chat(self, prompt: str):
        """Send natural language to the generator."""
        self.console.print("[dim]Thinking...[/dim]")
        result = await self.workspace.generation.generate(prompt)
        if result is None:
            return

        entry = self.workspace.conversation.last
        if not result.ok:
            self.console.print(f"[red]{escape(entry.text)}[/red]")
            if result.error.message != entry.text:
                self.console.print(f"[dim]{escape(result.error.message)}[/dim]")
            return

        self.console.print()
        self.console.print(Panel(
            escape(entry.text),
            title="[bold green]SQLA[/bold green]",
            border_style="green",
        ))
        query = result.value
        for warning in query.warnings:
            self.console.print(f"[yellow]⚠ {escape(warning)}[/yellow]")
        self.console.print(format_sql_syntax(self.workspace.draft.text))

        try:
            confirm = (await self.session.prompt_async(
                HTML("<ansiyellow>Execute this query? (y/n/e to edit): </ansiyellow>")
            )).strip().lower()
        except (KeyboardInterrupt, EOFError):
            confirm = "n"

        if confirm == "y":
            await self._execute_draft()
        elif confirm == "e":
            if await self._edit_draft():
                await self._execute_draft()
        else:
            self.console.print("[dim]Query not executed. /execute runs it later.[/dim]")
        self.console.print()

    async def _edit_draft(self) -> bool:
        try:
            edited = await self.session.prompt_async(
                HTML("<ansicyan>Edit SQL: </ansicyan>"),
                default=self.workspace.draft.text,
            )
        except (KeyboardInterrupt, EOFError):
            self.console.print("[dim]Cancelled[/dim]")
            return False
        self.workspace.draft.edit(edited)
        return not self.workspace.draft.is_blank()

    async def _execute_draft(self):
        """Execute the draft and display the outcome."""
        if self.workspace.draft.is_blank():
            self.console.print("[yellow]⚠ SQL draft is empty[/yellow]")
            return

        self.console.print(
            f"[dim #58a6ff]sql [{escape(self.params.database)}]>[/dim #58a6ff] "
            f"[bold]{escape(truncate_string(single_line(self.workspace.draft.text), 200))}[/bold]"
        )
        result = await self.workspace.execution.execute()
        if result is None:
            return
        outcome = self.workspace.execution.outcome
        if self.console.is_terminal:
            self.console.print(format_outcome(outcome))
        else:
            self.console.print(format_outcome_as_text(outcome), markup=False, highlight=False)

    async def _show_schema(self, term: str):
        result = await self.workspace.schema.load()
        if not result.ok:
            self.console.print(f"[red]✗ {escape(result.error.message)}[/red]")
            return
        tables = self.workspace.schema.filter(term)
        self.console.print(build_schema_tree(result.value, tables))

    async def _validate_draft(self):
        if self.workspace.draft.is_blank():
            self.console.print("[yellow]⚠ SQL draft is empty[/yellow]")
            return
        try:
            report = await self.api.validate_query(self.workspace.draft.text)
        except ApiError as e:
            self.console.print(f"[red]Validation failed: {escape(e.message)}[/red]")
            return

        if report.is_valid:
            self.console.print("[green]✓ SQL looks valid[/green]")
        else:
            self.console.print("[red]✗ SQL has problems[/red]")
        for msg in report.errors:
            self.console.print(f"  [red]error:[/red] {escape(msg)}")
        for msg in report.warnings:
            self.console.print(f"  [yellow]warning:[/yellow] {escape(msg)}")
        for msg in report.suggestions:
            self.console.print(f"  [cyan]suggestion:[/cyan] {escape(msg)}")

    async def _explain_draft(self):
        if self.workspace.draft.is_blank():
            self.console.print("[yellow]⚠ SQL draft is empty[/yellow]")
            return
        session = self.sessions.session
        try:
            explanation = await self.api.explain(self.workspace.draft.text, session.id, session.params)
        except ApiError as e:
            self.console.print(f"[red]Explain failed: {escape(e.message)}[/red]")
            return

        entry = self.workspace.conversation.append(Role.SYSTEM, explanation or "No explanation available.")
        self.console.print(Panel(escape(entry.text), title="[bold]Explanation[/bold]", border_style="cyan"))

    def _show_history(self):
        colors = {Role.USER: "#58a6ff", Role.ASSISTANT: "#3fb950", Role.SYSTEM: "#f0883e"}
        for entry in self.workspace.conversation:
            color = colors[entry.role]
            self.console.print(
                f"[dim]{format_time(entry.created_at)}[/dim] "
                f"[bold {color}]{entry.role.value}[/bold {color}] {escape(truncate_string(entry.text, 100))}"
            )
            if entry.has_sql():
                self.console.print(f"    [#79c0ff]{escape(truncate_string(single_line(entry.sql), 100))}[/#79c0ff]")

    async def _handle_command(self, command: str):
        """Handle /slash commands."""
        parts = command.strip().split(maxsplit=1)
        cmd = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else ""

        if cmd == "/exit" or cmd == "/quit":
            self._running = False

        elif cmd == "/help":
            self.console.print(HELP_TEXT)

        elif cmd == "/mode":
            self._mode = "sql" if self._mode == "chat" else "chat"
            self.console.print(f"[dim]Switched to {self._mode.upper()} mode[/dim]")

        elif cmd == "/execute" or cmd == "/run":
            await self._execute_draft()

        elif cmd == "/sql":
            if self.workspace.draft.is_blank():
                self.console.print("[dim]SQL draft is empty[/dim]")
            else:
                self.console.print(format_sql_syntax(self.workspace.draft.text))

        elif cmd == "/edit":
            await self._edit_draft()

        elif cmd == "/schema" or cmd == "/tables":
            await self._show_schema(arg)

        elif cmd == "/validate":
            await self._validate_draft()

        elif cmd == "/explain":
            await self._explain_draft()

        elif cmd == "/history":
            self._show_history()

        elif cmd == "/reset":
            self.sessions.reset()
            self.console.print("[dim]Workspace discarded, reconnecting...[/dim]")
            if not await self._connect():
                self._running = False

        elif cmd == "/version":
            self.console.print(f"{app_config.name} v{app_config.version}")

        else:
            self.console.print(f"[yellow]Unknown command: {escape(command)}. Type /help[/yellow]")

    def _print_banner(self):
        """Print the ASCII art banner."""
        banner = """
[bold #58a6ff]
  ███████╗ ██████╗ ██╗      █████╗
  ██╔════╝██╔═══██╗██║     ██╔══██╗
  ███████╗██║   ██║██║     ███████║
  ╚════██║██║▄▄ ██║██║     ██╔══██║
  ███████║╚██████╔╝███████╗██║  ██║
  ╚══════╝ ╚══▀▀═╝ ╚══════╝╚═╝  ╚═╝
[/bold #58a6ff][bold]  SQL Assistant v{version}[/bold]
[dim]  Natural Language → SQL • MySQL • PostgreSQL • SQLite • H2[/dim]
""".format(version=app_config.version)
        self.console.print(banner)

    async def _shutdown(self):
        """Clean up on exit."""
        self.console.print("\n[dim]Shutting down SQLA...[/dim]")
        self.sessions.reset()
        await self.api.aclose()
        self.console.print("[green]Goodbye![/green]")
