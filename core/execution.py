# ============================================================
# SQLA - SQL Assistant
# core/execution.py - Draft Execution Controller & Result Preview
# ============================================================

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from loguru import logger

from core.draft import QueryDraft
from core.errors import ApiError, ExecutionError
from core.models import (
    ConnectionSession,
    ExecutionFailure,
    ExecutionOutcome,
    ExecutionSuccess,
    Result,
)
from core.protocols import AssistantBackend
from utils.helpers import single_line


EXECUTION_ROW_LIMIT = 100   # rows requested from the backend
PREVIEW_ROW_COUNT = 10      # rows the UI renders
EXECUTION_FAILED_MESSAGE = "Query execution failed"


@dataclass(frozen=True)
class ResultPreview:
    """What the UI renders for a successful execution."""
    column_names: List[str]
    rows: List[Dict[str, Any]]
    returned: int
    row_count: int
    elapsed_ms: int

    @property
    def truncated(self) -> bool:
        return self.returned > len(self.rows)

    @property
    def note(self) -> Optional[str]:
        if not self.truncated:
            return None
        return f"Showing first {len(self.rows)} of {self.returned} rows"

    @property
    def label(self) -> str:
        return f"{self.row_count} rows, {self.elapsed_ms}ms"


def build_preview(success: ExecutionSuccess, limit: int = PREVIEW_ROW_COUNT) -> ResultPreview:
    return ResultPreview(
        column_names=list(success.column_names),
        rows=list(success.rows[:limit]),
        returned=len(success.rows),
        row_count=success.row_count,
        elapsed_ms=success.elapsed_ms,
    )


class ExecutionController:
    """
    Executes whatever the draft holds at the moment of the trigger and
    keeps only the latest outcome. One execution in flight at a time.
    """

    def __init__(self, backend: AssistantBackend, session: ConnectionSession, draft: QueryDraft):
        self._backend = backend
        self._session = session
        self._draft = draft
        self._outcome: Optional[ExecutionOutcome] = None
        self._in_flight = False
        self._closed = False

    @property
    def outcome(self) -> Optional[ExecutionOutcome]:
        return self._outcome

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def can_execute(self) -> bool:
        return not self._draft.is_blank() and not self._in_flight and not self._closed

    async def execute(self) -> Optional[Result[ExecutionSuccess, ExecutionError]]:
        """
        Run the current draft. Returns None when nothing was submitted
        (blank draft, execution already in flight, torn-down controller).
        """
        sql = self._draft.text
        if not sql.strip():
            return None
        if self._in_flight:
            logger.warning("Execution already in flight; trigger rejected")
            return None
        if self._closed:
            return None

        self._in_flight = True
        try:
            return await self._execute(sql)
        finally:
            self._in_flight = False

    async def _execute(self, sql: str) -> Result[ExecutionSuccess, ExecutionError]:
        logger.info(f"Executing on {self._session.id}: {single_line(sql)[:120]!r}")
        try:
            response = await self._backend.execute(
                sql,
                self._session.id,
                self._session.params,
                limit=EXECUTION_ROW_LIMIT,
                dry_run=False,
            )
        except ApiError as e:
            logger.error(f"Execution failed: {e.message}")
            return self._fail(e.message)

        payload = response.execution
        if payload.status == "ERROR":
            logger.error(f"Execution reported error: {payload.error}")
            return self._fail(payload.error)

        success = ExecutionSuccess.from_payload(payload)
        if not self._closed:
            self._outcome = success
        logger.info(f"Execution OK: {len(success.rows)} rows returned in {success.elapsed_ms}ms")
        return Result.success(success)

    def _fail(self, message: Optional[str]) -> Result[ExecutionSuccess, ExecutionError]:
        error = ExecutionError(message or EXECUTION_FAILED_MESSAGE)
        if not self._closed:
            self._outcome = ExecutionFailure(error.message)
        return Result.failure(error)

    def preview(self) -> Optional[ResultPreview]:
        if isinstance(self._outcome, ExecutionSuccess):
            return build_preview(self._outcome)
        return None

    def close(self):
        self._closed = True
