# ============================================================
# SQLA - SQL Assistant
# ui/tui.py - Textual TUI (Connection Form + Workspace)
# ============================================================
#
# Screens:
#   ConnectionScreen - connection form, probes via SessionManager.open
#   WorkspaceScreen  - schema tree | chat | SQL editor + results
#
# Generation, execution and schema loading run as async workers on
# the UI event loop. Each controller rejects a second request of its
# own kind while one is in flight; the matching control is disabled
# for the same period. "Change connection" pops the workspace screen
# and resets the session, which tears the workspace down.
# ============================================================

from pathlib import Path
from typing import Optional, Set

from pydantic import ValidationError
from rich.markup import escape
from textual import work
from textual.app import App, ComposeResult
from textual.containers import Horizontal, ScrollableContainer, Vertical
from textual.screen import Screen
from textual.widgets import (
    Button,
    DataTable,
    Footer,
    Input,
    Label,
    Select,
    Static,
    TextArea,
    Tree,
)
from loguru import logger

from config import app_config, api_config
from core.api_client import AssistantApiClient
from core.conversation import ConversationEntry, Role
from core.errors import ApiError
from core.generation import GENERATION_FAILED_MESSAGE
from core.models import ConnectionParams, DatabaseKind, ExecutionFailure
from core.result_formatter import cell_text, column_label
from core.session import SessionManager, Workspace
from utils.helpers import blank_to_none, format_time, parse_port, truncate_string


# ── Chat Bubble ───────────────────────────────────────────────
class ChatBubble(Static):
    """
    One conversation entry. Content is built once in __init__ and never
    updated; entries are immutable.
    """

    def __init__(self, role: str, content: str, sql: Optional[str] = None, timestamp: str = "", **kwargs):
        if role == Role.USER.value:
            label = "[bold #58a6ff]You ▶[/bold #58a6ff]"
        elif role == Role.SYSTEM.value:
            label = "[bold #f0883e]System ℹ[/bold #f0883e]"
        elif role == "error":
            label = "[bold #f85149]Error ✗[/bold #f85149]"
        else:
            label = "[bold #3fb950]SQLA ◆[/bold #3fb950]"

        # Escape content to prevent markup rendering glitches
        safe = content.replace("[", "\\[")
        display = f"{label}\n{safe}"

        if sql:
            safe_sql = truncate_string(sql, 100).replace("[", "\\[")
            display += f"\n[bold #79c0ff]{safe_sql}[/bold #79c0ff]"
        if timestamp:
            display += f"\n[dim]{timestamp}[/dim]"

        super().__init__(display, **kwargs)

        css_map = {
            "user":      "chat-bubble-user",
            "assistant": "chat-bubble-assistant",
            "system":    "chat-bubble-system",
            "error":     "chat-bubble-error",
        }
        self.add_class(css_map.get(role, "chat-bubble-assistant"))

    @classmethod
    def from_entry(cls, entry: ConversationEntry) -> "ChatBubble":
        return cls(entry.role.value, entry.text, sql=entry.sql, timestamp=format_time(entry.created_at))


# ── Connection Screen ─────────────────────────────────────────
class ConnectionScreen(Screen):
    """Connection form. A successful probe pushes the workspace."""

    def compose(self) -> ComposeResult:
        with Vertical(id="connect-form"):
            yield Label("◆ Connect to Your Database", id="connect-title")
            yield Label(
                "Supports MySQL, PostgreSQL, SQLite and H2.",
                id="connect-subtitle",
            )
            yield Label("Database Type")
            yield Select(
                [(kind.label, kind) for kind in DatabaseKind],
                value=DatabaseKind.MYSQL,
                allow_blank=False,
                id="kind-select",
            )
            with Horizontal(id="host-port-row", classes="networked"):
                yield Input(value="localhost", placeholder="Host", id="host-input")
                yield Input(placeholder="3306", id="port-input")
            yield Input(placeholder="Database name", id="database-input")
            with Horizontal(id="credentials-row", classes="networked"):
                yield Input(placeholder="Username", id="username-input")
                yield Input(placeholder="Password", password=True, id="password-input")
            yield Input(
                placeholder="Connection string override (optional), e.g. jdbc:mysql://localhost:3306/mydb",
                id="conn-string-input",
            )
            with Horizontal(id="connect-buttons"):
                yield Button("Test Connection", id="btn-connect", variant="primary")
                yield Button("Check Settings", id="btn-validate")
            yield Label("", id="connect-status")

    def on_mount(self) -> None:
        self.query_one("#database-input", Input).focus()

    def clear_status(self) -> None:
        self._set_status("")

    def on_select_changed(self, event: Select.Changed) -> None:
        kind = event.value
        if not isinstance(kind, DatabaseKind):
            return
        for row in self.query(".networked"):
            row.display = kind.uses_host_port
        self.query_one("#port-input", Input).placeholder = str(kind.default_port or "")
        self.query_one("#database-input", Input).placeholder = (
            "/path/to/database.db" if kind == DatabaseKind.SQLITE else "Database name"
        )

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._submit()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-connect":
            self._submit()
        elif event.button.id == "btn-validate":
            self._check_settings()

    def _submit(self) -> None:
        if self.app.sessions.opening:
            return
        params = self._checked_params()
        if params is None:
            return

        self.query_one("#btn-connect", Button).disabled = True
        self._set_status("⏳ Testing connection...")
        self._connect(params)

    def _checked_params(self) -> Optional[ConnectionParams]:
        try:
            return self._read_params()
        except ValidationError as e:
            first = e.errors()[0]
            self._set_status(f"✗ {first.get('loc', ['?'])[-1]}: {first.get('msg')}", "error")
            return None

    def _read_params(self) -> ConnectionParams:
        kind = self.query_one("#kind-select", Select).value
        fields = {
            "kind": kind,
            "database": self.query_one("#database-input", Input).value,
            "connection_string_override": blank_to_none(self.query_one("#conn-string-input", Input).value),
        }
        if isinstance(kind, DatabaseKind) and kind.uses_host_port:
            fields.update(
                host=blank_to_none(self.query_one("#host-input", Input).value),
                port=parse_port(self.query_one("#port-input", Input).value),
                username=blank_to_none(self.query_one("#username-input", Input).value),
                password=self.query_one("#password-input", Input).value or None,
            )
        return ConnectionParams(**fields)

    @work(group="connect")
    async def _connect(self, params: ConnectionParams) -> None:
        try:
            result = await self.app.sessions.open(params)
        finally:
            self.query_one("#btn-connect", Button).disabled = False

        if result is None:
            return
        if not result.ok:
            self._set_status(f"✗ {result.error.message}", "error")
            return

        self._set_status("✓ Connection successful!", "success")
        self.app.show_workspace()

    def _check_settings(self) -> None:
        params = self._checked_params()
        if params is None:
            return
        self._set_status("⏳ Checking settings...")
        self._validate(params)

    @work(group="connect")
    async def _validate(self, params: ConnectionParams) -> None:
        try:
            check = await self.app.api.validate_connection(params)
        except ApiError as e:
            self._set_status(f"✗ {e.message}", "error")
            return
        self._set_status(f"✓ {check.message or 'Settings look valid'} ({check.connection_url or params.connection_url()})", "success")

    def _set_status(self, text: str, level: str = "info") -> None:
        label = self.query_one("#connect-status", Label)
        label.update(escape(text))
        label.set_class(level == "error", "status-error")
        label.set_class(level == "success", "status-success")


# ── Workspace Screen ──────────────────────────────────────────
class WorkspaceScreen(Screen):
    """Schema tree (left), conversation (middle), SQL editor + results (right)."""

    BINDINGS = [
        ("f5",     "execute",           "Execute SQL"),
        ("ctrl+n", "change_connection", "Change Connection"),
        ("f2",     "focus_search",      "Search Schema"),
        ("f3",     "focus_chat",        "Focus Chat"),
        ("escape", "focus_editor",      "Focus SQL"),
    ]

    def __init__(self, workspace: Workspace):
        super().__init__()
        self.workspace = workspace
        self._shown_entries: Set[str] = set()

    def compose(self) -> ComposeResult:
        session = self.workspace.session
        with Horizontal(id="header"):
            yield Label(f"◆ SQLA v{app_config.version}", id="header-title")
            yield Label(f" ● Connected to {escape(session.params.describe())} ", id="header-db-badge")
            yield Label(f"ID: {session.id}", id="header-status")

        with Horizontal(id="main-container"):
            with Vertical(id="schema-panel"):
                yield Label(" 🗂 Database Schema", id="schema-panel-header")
                yield Input(placeholder="Search tables and columns...", id="schema-search")
                yield Tree("Tables", id="schema-tree")
                yield Label("Loading schema...", id="schema-status")

            with Vertical(id="chat-panel"):
                yield Label(" 💬 Conversation", id="chat-panel-header")
                yield ScrollableContainer(id="chat-messages")
                yield Label(" ⌨ Ask SQLA ▶", id="chat-input-label")
                yield Input(
                    placeholder="Ask me to generate a SQL query... (/help for commands)",
                    id="chat-input",
                )

            with Vertical(id="query-panel"):
                with Horizontal(id="query-panel-header"):
                    yield Label(" 📝 SQL Query", id="query-panel-title")
                    yield Button("▶ Execute", id="btn-execute", variant="success", disabled=True)
                yield TextArea("", id="sql-editor", soft_wrap=True)
                yield Label("", id="result-status")
                yield DataTable(id="result-table", zebra_stripes=True)
                yield Label("", id="result-note")

        yield Footer()

    # ── Lifecycle ─────────────────────────────────────────────

    def on_mount(self) -> None:
        self._sync_chat()
        self.query_one("#chat-input", Input).focus()
        self._load_schema()

    # ── Input Handlers ────────────────────────────────────────

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "chat-input":
            return

        value = event.value
        if value.strip().startswith("/"):
            event.input.value = ""
            self._handle_slash_command(value.strip())
            return

        if not self.workspace.generation.can_submit(value):
            return

        self._update_loading_state(True)
        self._run_generation(value)

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "schema-search":
            self._render_schema(event.value)

    def on_text_area_changed(self, event: TextArea.Changed) -> None:
        if event.text_area.id == "sql-editor":
            self.workspace.draft.edit(event.text_area.text)
            self._update_execute_button()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-execute":
            self.action_execute()

    # ── Generation ────────────────────────────────────────────

    @work(group="generation")
    async def _run_generation(self, prompt: str) -> None:
        try:
            result = await self.workspace.generation.generate(prompt)
        finally:
            if not self.workspace.closed:
                self._update_loading_state(False)

        if result is None or self.workspace.closed:
            return

        self._sync_chat()
        if result.ok:
            self.query_one("#chat-input", Input).value = ""
            editor = self.query_one("#sql-editor", TextArea)
            editor.load_text(self.workspace.draft.text)
            self._update_execute_button()
        elif result.error.message != GENERATION_FAILED_MESSAGE:
            self.notify(escape(result.error.message), title="Generation failed", severity="error")

    # ── Execution ─────────────────────────────────────────────

    def action_execute(self) -> None:
        if not self.workspace.execution.can_execute():
            return
        self.query_one("#btn-execute", Button).disabled = True
        self.query_one("#btn-execute", Button).label = "⏳ Running..."
        self._run_execution()

    @work(group="execution")
    async def _run_execution(self) -> None:
        try:
            result = await self.workspace.execution.execute()
        finally:
            if not self.workspace.closed:
                self.query_one("#btn-execute", Button).label = "▶ Execute"
                self._update_execute_button()

        if result is None or self.workspace.closed:
            return
        self._render_outcome()

    def _render_outcome(self) -> None:
        status = self.query_one("#result-status", Label)
        note = self.query_one("#result-note", Label)
        table = self.query_one("#result-table", DataTable)
        table.clear(columns=True)
        note.update("")

        outcome = self.workspace.execution.outcome
        if isinstance(outcome, ExecutionFailure):
            status.update(f"[bold red]✗ {escape(outcome.message)}[/bold red]")
            return

        preview = self.workspace.execution.preview()
        if preview is None:
            status.update("")
            return

        status.update(f"[green]✓ Query executed successfully ({preview.label})[/green]")
        if preview.rows:
            table.add_columns(*preview.column_names)
            for row in preview.rows:
                table.add_row(*[cell_text(row.get(col)) for col in preview.column_names])
        if preview.note:
            note.update(f"[dim]{preview.note}[/dim]")

    def _update_execute_button(self) -> None:
        self.query_one("#btn-execute", Button).disabled = not self.workspace.execution.can_execute()

    # ── Schema ────────────────────────────────────────────────

    @work(group="schema")
    async def _load_schema(self) -> None:
        result = await self.workspace.schema.load()
        if self.workspace.closed:
            return

        status = self.query_one("#schema-status", Label)
        if not result.ok:
            status.update(f"[red]✗ {escape(result.error.message)}[/red]")
            return

        self._render_schema(self.query_one("#schema-search", Input).value)

    def _render_schema(self, term: str) -> None:
        snapshot = self.workspace.schema.snapshot
        if snapshot is None:
            return

        tables = self.workspace.schema.filter(term)
        tree = self.query_one("#schema-tree", Tree)
        tree.clear()
        tree.root.set_label(f"Tables ({len(tables)})")
        for table in tables:
            node = tree.root.add(f"[green]{escape(table.name)}[/green] [dim]({len(table.columns)} columns)[/dim]", data=table.name)
            for col in table.columns:
                node.add_leaf(column_label(col))
        tree.root.expand()

        product = snapshot.metadata.get("databaseProductName", "?")
        version = snapshot.metadata.get("databaseProductVersion", "?")
        self.query_one("#schema-status", Label).update(
            f"[dim]{escape(snapshot.database_name)} │ Product: {product} │ Version: {version}[/dim]"
        )

    # ── Slash Commands ────────────────────────────────────────

    def _handle_slash_command(self, command: str) -> None:
        cmd = command.lower().split()[0]

        if cmd in ("/exit", "/quit"):
            self.app.call_later(self.app.action_quit)
        elif cmd in ("/reset", "/disconnect"):
            self.action_change_connection()
        elif cmd == "/validate":
            if self.workspace.draft.is_blank():
                self._add_chat_bubble("system", "Nothing to validate: the SQL editor is empty.")
            else:
                self._validate_draft(self.workspace.draft.text)
        elif cmd == "/explain":
            if self.workspace.draft.is_blank():
                self._add_chat_bubble("system", "Nothing to explain: the SQL editor is empty.")
            else:
                self._explain_draft(self.workspace.draft.text)
        elif cmd == "/help":
            self._add_chat_bubble("system", HELP_TEXT)
        else:
            self._add_chat_bubble("system", f"Unknown command: {command}\nType /help for available commands.")

    @work(group="assist")
    async def _validate_draft(self, sql: str) -> None:
        try:
            report = await self.app.api.validate_query(sql)
        except ApiError as e:
            self._add_chat_bubble("error", f"Validation failed: {e.message}")
            return

        lines = ["✓ SQL looks valid." if report.is_valid else "✗ SQL has problems."]
        lines += [f"  error: {msg}" for msg in report.errors]
        lines += [f"  warning: {msg}" for msg in report.warnings]
        lines += [f"  suggestion: {msg}" for msg in report.suggestions]
        self._add_chat_bubble("system", "\n".join(lines))

    @work(group="assist")
    async def _explain_draft(self, sql: str) -> None:
        session = self.workspace.session
        try:
            explanation = await self.app.api.explain(sql, session.id, session.params)
        except ApiError as e:
            self._add_chat_bubble("error", f"Explain failed: {e.message}")
            return

        if self.workspace.closed:
            return
        self.workspace.conversation.append(Role.SYSTEM, explanation or "No explanation available.")
        self._sync_chat()

    # ── UI Helpers ────────────────────────────────────────────

    def _sync_chat(self) -> None:
        """Mount bubbles for log entries not yet shown (the log only grows)."""
        container = self.query_one("#chat-messages", ScrollableContainer)
        for entry in self.workspace.conversation:
            if entry.id in self._shown_entries:
                continue
            self._shown_entries.add(entry.id)
            container.mount(ChatBubble.from_entry(entry))
        container.scroll_end(animate=False)

    def _add_chat_bubble(self, role: str, content: str) -> None:
        """UI-only notice; not part of the conversation log."""
        if self.workspace.closed:
            return
        container = self.query_one("#chat-messages", ScrollableContainer)
        container.mount(ChatBubble(role, content))
        container.scroll_end(animate=False)

    def _update_loading_state(self, is_loading: bool) -> None:
        self.query_one("#chat-input-label", Label).update(
            " ⏳ Generating SQL..." if is_loading else " ⌨ Ask SQLA ▶"
        )
        self.query_one("#chat-input", Input).disabled = is_loading
        if not is_loading:
            self.query_one("#chat-input", Input).focus()

    # ── Actions ───────────────────────────────────────────────

    def action_change_connection(self) -> None:
        self.app.change_connection()

    def action_focus_search(self) -> None:
        self.query_one("#schema-search", Input).focus()

    def action_focus_chat(self) -> None:
        self.query_one("#chat-input", Input).focus()

    def action_focus_editor(self) -> None:
        self.query_one("#sql-editor", TextArea).focus()


HELP_TEXT = (
    "Commands:\n"
    "  /validate   check the SQL in the editor\n"
    "  /explain    explain the SQL in the editor\n"
    "  /reset      change connection\n"
    "  /exit       quit\n\n"
    "Keys: F5 execute │ F2 search schema │ F3 chat │ Esc SQL editor │ Ctrl+N change connection"
)


# ── Main SQLA TUI Application ─────────────────────────────────
class SQLAApp(App):
    """Connection form first; a successful probe opens the workspace."""

    CSS_PATH = str(Path(__file__).parent / "sqla.tcss")
    TITLE = "SQLA - SQL Assistant"
    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
    ]

    def __init__(self, api: Optional[AssistantApiClient] = None):
        super().__init__()
        self.api = api or AssistantApiClient()
        self.sessions = SessionManager(self.api)

    def on_mount(self) -> None:
        logger.info(f"TUI started against backend {api_config.base_url}")
        self.push_screen(ConnectionScreen())

    def show_workspace(self) -> None:
        workspace = self.sessions.workspace
        if workspace is not None:
            self.push_screen(WorkspaceScreen(workspace))

    def change_connection(self) -> None:
        self.sessions.reset()
        if isinstance(self.screen, WorkspaceScreen):
            self.pop_screen()
        if isinstance(self.screen, ConnectionScreen):
            self.screen.clear_status()

    async def action_quit(self) -> None:
        self.sessions.reset()
        await self.api.aclose()
        self.exit()
