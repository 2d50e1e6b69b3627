# ============================================================
# SQLA - SQL Assistant
# core/errors.py - Error Taxonomy
# ============================================================

from typing import Any, Dict, Optional


class AssistantError(Exception):
    """Base class for every error the assistant surfaces to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ApiError(AssistantError):
    """
    Raised by the backend client for transport failures, non-2xx
    responses and `{"status": "ERROR"}` bodies.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}

    def __repr__(self):
        return f"<ApiError status={self.status_code} message={self.message!r}>"


class DatabaseConnectionError(AssistantError):
    """Connectivity probe failed; no session is created."""


class SchemaFetchError(AssistantError):
    """Schema snapshot could not be fetched for the session."""


class GenerationError(AssistantError):
    """Natural-language to SQL generation failed."""


class ExecutionError(AssistantError):
    """Executing the current draft failed."""
