# ============================================================
# SQLA - SQL Assistant
# core/result_formatter.py - Execution Outcome Rendering
# ============================================================

from typing import Any, List, Optional

from rich import box
from rich.console import Group
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text
from rich.tree import Tree
from tabulate import tabulate

from core.execution import ResultPreview, build_preview
from core.models import ExecutionFailure, ExecutionOutcome, SchemaSnapshot, TableInfo


def cell_text(value: Any) -> str:
    return "NULL" if value is None else str(value)


def format_outcome(outcome: Optional[ExecutionOutcome]):
    """
    Rich renderable for the latest execution outcome: an error line,
    or the preview table with its "N rows, Xms" label and truncation note.
    """
    if outcome is None:
        return Text("No query executed yet.", style="dim")

    if isinstance(outcome, ExecutionFailure):
        error_text = Text()
        error_text.append("ERROR", style="bold red")
        error_text.append(f": {outcome.message}", style="red")
        return error_text

    preview = build_preview(outcome)
    parts = []

    ok_text = Text()
    ok_text.append("Query executed successfully ", style="bold green")
    ok_text.append(f"({preview.label})", style="dim italic")
    parts.append(ok_text)

    if preview.rows:
        parts.append(build_result_table(preview))
    if preview.note:
        parts.append(Text(preview.note, style="dim"))

    return Group(*parts)


def build_result_table(preview: ResultPreview) -> Table:
    """
    Rich Table in the MySQL CLI look:
    +----+---------+
    | id | email   |
    +----+---------+
    | 1  | a@x.com |
    +----+---------+
    """
    table = Table(
        box=box.SIMPLE_HEAVY,
        show_header=True,
        header_style="bold cyan",
        border_style="dim white",
        show_lines=False,
        pad_edge=False,
    )

    for col_name in preview.column_names:
        table.add_column(str(col_name), style="white", no_wrap=False)

    for row in preview.rows:
        cells = []
        for col_name in preview.column_names:
            value = row.get(col_name)
            if value is None:
                cells.append(Text("NULL", style="dim italic yellow"))
            else:
                cells.append(str(value))
        table.add_row(*cells)

    return table


def format_outcome_as_text(outcome: Optional[ExecutionOutcome]) -> str:
    """Plain-text version of `format_outcome` (logs, non-TTY output)."""
    if outcome is None:
        return "No query executed yet."

    if isinstance(outcome, ExecutionFailure):
        return f"ERROR: {outcome.message}"

    preview = build_preview(outcome)
    lines = [f"Query executed successfully ({preview.label})"]
    if preview.rows:
        body = [[cell_text(row.get(col)) for col in preview.column_names] for row in preview.rows]
        lines.append(tabulate(body, headers=preview.column_names, tablefmt="psql"))
    if preview.note:
        lines.append(preview.note)
    return "\n".join(lines)


def format_sql_syntax(sql: str) -> Syntax:
    return Syntax(sql, "sql", theme="monokai", line_numbers=False, word_wrap=True)


def column_label(column) -> str:
    """Markup label for a schema tree column node."""
    name = escape(column.name)
    label = f"[bold]{name}[/bold]" if column.is_primary_key else name
    if column.column_type:
        label += f" [dim]({escape(column.column_type)})[/dim]"
    if column.is_primary_key:
        label += " [yellow]PK[/yellow]"
    if not column.nullable:
        label += " [red]NOT NULL[/red]"
    if column.is_auto_increment:
        label += " [blue]AUTO[/blue]"
    return label


def build_schema_tree(snapshot: SchemaSnapshot, tables: List[TableInfo]) -> Tree:
    tree = Tree(f"[bold]{escape(snapshot.database_name or 'Database')}[/bold] [dim]Tables ({len(tables)})[/dim]")
    for table in tables:
        branch = tree.add(f"[green]{escape(table.name)}[/green] [dim]({len(table.columns)} columns)[/dim]")
        for col in table.columns:
            branch.add(column_label(col))
    return tree
