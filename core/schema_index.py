# ============================================================
# SQLA - SQL Assistant
# core/schema_index.py - Cached Schema Snapshot & Search Filter
# ============================================================

import asyncio
from typing import List, Optional

from loguru import logger

from core.errors import ApiError, SchemaFetchError
from core.models import ConnectionSession, Result, SchemaSnapshot, TableInfo
from core.protocols import AssistantBackend


class SchemaIndex:
    """
    Holds the schema snapshot for one connection session and answers
    substring lookups over table and column names.

    The snapshot is fetched once per session (`load`) and kept for the
    session's lifetime. `filter` never touches the network.
    """

    def __init__(self, backend: AssistantBackend, session: ConnectionSession):
        self._backend = backend
        self._session = session
        self._snapshot: Optional[SchemaSnapshot] = None
        self._error: Optional[SchemaFetchError] = None
        self._pending: Optional[asyncio.Future] = None
        self._closed = False

    # ── Fetch ─────────────────────────────────────────────────

    async def load(self) -> Result[SchemaSnapshot, SchemaFetchError]:
        """
        Fetch the snapshot unless it is already cached or being fetched.
        Concurrent callers share one request. A failed fetch is not
        retried until `load` is called again.
        """
        if self._snapshot is not None:
            return Result.success(self._snapshot)
        return await asyncio.shield(self.start_loading())

    def start_loading(self) -> asyncio.Future:
        """Schedule the fetch without waiting for it (eager load on mount)."""
        if self._pending is None or (self._pending.done() and self._snapshot is None):
            self._pending = asyncio.ensure_future(self._fetch())
        return self._pending

    async def _fetch(self) -> Result[SchemaSnapshot, SchemaFetchError]:
        self._error = None
        logger.info(f"Fetching schema for connection {self._session.id}")
        try:
            response = await self._backend.get_schema(self._session.params, self._session.id)
        except ApiError as e:
            error = SchemaFetchError(e.message or "Failed to load schema")
            logger.error(f"Schema fetch failed for {self._session.id}: {e.message}")
            if not self._closed:
                self._snapshot = None
                self._error = error
            return Result.failure(error)

        snapshot = response.snapshot
        if self._closed:
            logger.debug(f"Discarding schema for closed session {self._session.id}")
            return Result.success(snapshot)

        self._snapshot = snapshot
        logger.info(f"Schema loaded: {snapshot.database_name} ({len(snapshot.tables)} tables)")
        return Result.success(snapshot)

    # ── Lookup ────────────────────────────────────────────────

    def filter(self, term: str = "") -> List[TableInfo]:
        """
        Tables whose name, or any column name, contains `term`
        (case-insensitive), in snapshot order. Empty term matches all.
        """
        if self._snapshot is None:
            return []

        needle = (term or "").lower()
        if not needle:
            return list(self._snapshot.tables)

        return [
            table for table in self._snapshot.tables
            if needle in table.name.lower()
            or any(needle in col.name.lower() for col in table.columns)
        ]

    # ── State ─────────────────────────────────────────────────

    @property
    def snapshot(self) -> Optional[SchemaSnapshot]:
        return self._snapshot

    @property
    def error(self) -> Optional[SchemaFetchError]:
        return self._error

    @property
    def is_loading(self) -> bool:
        return self._pending is not None and not self._pending.done()

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def close(self):
        self._closed = True


def format_schema_text(snapshot: SchemaSnapshot, tables: Optional[List[TableInfo]] = None) -> str:
    """
    Plain-text rendering of a snapshot (or a filtered subset of its
    tables) for the CLI.
    """
    shown = snapshot.tables if tables is None else tables

    lines = [f"DATABASE: `{snapshot.database_name}`"]
    product = snapshot.metadata.get("databaseProductName")
    version = snapshot.metadata.get("databaseProductVersion")
    if product or version:
        lines.append(f"Product: {product or '?'}  Version: {version or '?'}")
    lines.append(f"Tables: {len(shown)} of {len(snapshot.tables)}")
    lines.append("=" * 60)

    for table in shown:
        lines.append(f"\nTABLE: `{table.name}` ({len(table.columns)} columns)")
        for col in table.columns:
            flags = []
            if col.is_primary_key:
                flags.append("PK")
            if not col.nullable:
                flags.append("NOT NULL")
            if col.is_auto_increment:
                flags.append("AUTO")
            flag_text = f" [{', '.join(flags)}]" if flags else ""
            lines.append(f"  - {col.name}: {col.column_type or '?'}{flag_text}")

        if table.foreign_keys:
            lines.append("Foreign Keys:")
            for fk in table.foreign_keys:
                lines.append(f"  - {fk.column_name} → {fk.referenced_table}.{fk.referenced_column}")

    if tables is None and snapshot.views:
        lines.append(f"\nVIEWS: {', '.join(v.name for v in snapshot.views)}")

    return "\n".join(lines)
