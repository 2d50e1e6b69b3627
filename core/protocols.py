# ============================================================
# SQLA - SQL Assistant
# core/protocols.py - Backend Collaborator Interface
# ============================================================
#
# Controllers depend on this protocol rather than on the HTTP client so
# they can be exercised with in-memory fakes. AssistantApiClient is the
# production implementation.
# ============================================================

from typing import Any, Dict, Optional, Protocol, runtime_checkable

from core.models import (
    ConnectionParams,
    ExecutionResponse,
    GenerationResponse,
    ProbeResponse,
    SchemaResponse,
)


@runtime_checkable
class AssistantBackend(Protocol):
    """Connectivity probe, schema fetch, SQL generation and execution.

    Every call that acts on an open connection receives both the
    connection id and the full parameters the session was opened with.
    Implementations raise ``core.errors.ApiError`` on failure.
    """

    async def test_connection(self, params: ConnectionParams) -> ProbeResponse:
        ...

    async def get_schema(
        self, params: ConnectionParams, connection_id: str
    ) -> SchemaResponse:
        ...

    async def generate(
        self,
        natural_language_query: str,
        connection_id: str,
        params: ConnectionParams,
        context: Optional[Dict[str, Any]] = None,
    ) -> GenerationResponse:
        ...

    async def execute(
        self,
        sql: str,
        connection_id: str,
        params: ConnectionParams,
        limit: int,
        dry_run: bool = False,
    ) -> ExecutionResponse:
        ...
