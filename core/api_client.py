# ============================================================
# SQLA - SQL Assistant
# core/api_client.py - HTTP Client for the Assistant Backend
# ============================================================
#
# The backend owns SQL generation and all database access. This
# client only shapes requests and turns responses into models:
#
#   POST /database/test-connection        connectivity probe
#   POST /database/schema?connectionId=   schema snapshot
#   POST /query/generate?connectionId=    natural language -> SQL
#   POST /query/execute?connectionId=     run SQL
#
# plus supported-types, validate-connection, validate and explain.
# Timeouts are owned here (httpx), never by the controllers.
# ============================================================

from typing import Any, Dict, List, Optional

import httpx
from loguru import logger
from pydantic import ValidationError

from config import api_config
from core.errors import ApiError
from core.models import (
    ConnectionCheck,
    ConnectionParams,
    ExecutionResponse,
    GenerationResponse,
    ProbeResponse,
    SchemaResponse,
    ValidationReport,
)


class AssistantApiClient:
    """
    Async client for the assistant backend.
    Implements the `AssistantBackend` protocol used by the controllers.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        auth_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = api_config.get_headers()
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"

        self.base_url = (base_url or api_config.base_url).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else api_config.timeout,
            headers=headers,
            transport=transport,
        )

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self) -> "AssistantApiClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    # ── Database ──────────────────────────────────────────────

    async def test_connection(self, params: ConnectionParams) -> ProbeResponse:
        payload = await self._request("POST", "/database/test-connection", json=params.to_wire())
        return self._parse(ProbeResponse, payload)

    async def get_schema(self, params: ConnectionParams, connection_id: str) -> SchemaResponse:
        payload = await self._request(
            "POST",
            "/database/schema",
            json=params.to_wire(),
            params={"connectionId": connection_id},
        )
        return self._parse(SchemaResponse, payload)

    async def supported_types(self) -> List[str]:
        payload = await self._request("GET", "/database/supported-types")
        return [str(t) for t in payload.get("supportedTypes", [])]

    async def validate_connection(self, params: ConnectionParams) -> ConnectionCheck:
        payload = await self._request("POST", "/database/validate-connection", json=params.to_wire())
        return self._parse(ConnectionCheck, payload)

    # ── Query ─────────────────────────────────────────────────

    async def generate(
        self,
        natural_language_query: str,
        connection_id: str,
        params: ConnectionParams,
        context: Optional[Dict[str, Any]] = None,
    ) -> GenerationResponse:
        body: Dict[str, Any] = {
            "naturalLanguageQuery": natural_language_query,
            "connectionId": connection_id,
            "connectionDto": params.to_wire(),
        }
        if context:
            body["context"] = context

        payload = await self._request(
            "POST", "/query/generate", json=body, params={"connectionId": connection_id}
        )
        return self._parse(GenerationResponse, payload)

    async def execute(
        self,
        sql: str,
        connection_id: str,
        params: ConnectionParams,
        limit: int,
        dry_run: bool = False,
    ) -> ExecutionResponse:
        body = {
            "sql": sql,
            "connectionId": connection_id,
            "limit": limit,
            "dryRun": dry_run,
            "connectionDto": params.to_wire(),
        }
        payload = await self._request(
            "POST", "/query/execute", json=body, params={"connectionId": connection_id}
        )
        return self._parse(ExecutionResponse, payload)

    async def validate_query(self, sql: str) -> ValidationReport:
        payload = await self._request("POST", "/query/validate", json={"sql": sql})
        return self._parse(ValidationReport, payload.get("validation") or {})

    async def explain(self, sql: str, connection_id: str, params: ConnectionParams) -> str:
        payload = await self._request(
            "POST",
            "/query/explain",
            json={"sql": sql, "connectionDto": params.to_wire()},
            params={"connectionId": connection_id},
        )
        return str(payload.get("explanation") or "")

    # ── Internals ─────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(f"Backend unreachable: {e}") from e

        return self._unwrap(method, path, response)

    def _unwrap(self, method: str, path: str, response: httpx.Response) -> Dict[str, Any]:
        """Decode the JSON body and raise `ApiError` for error responses."""
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.is_error or payload.get("status") == "ERROR":
            message = payload.get("message") or f"HTTP {response.status_code} from {path}"
            logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            raise ApiError(message, status_code=response.status_code, payload=payload)

        logger.debug(f"{method} {path} -> {response.status_code}")
        return payload

    @staticmethod
    def _parse(model, payload: Dict[str, Any]):
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Malformed {model.__name__} payload: {e}")
            raise ApiError(f"Malformed response from backend: {model.__name__}") from e
