# ============================================================
# SQLA - SQL Assistant
# core/generation.py - Natural Language → SQL Generation Controller
# ============================================================

from typing import Any, Dict, Optional

from loguru import logger

from core.conversation import ConversationLog, Role
from core.draft import QueryDraft
from core.errors import ApiError, GenerationError
from core.models import ConnectionSession, GeneratedQuery, Result
from core.protocols import AssistantBackend


GENERATION_FAILED_MESSAGE = "Failed to generate SQL query. Please try again."
FALLBACK_EXPLANATION = "Here's the SQL query I generated:"


class GenerationController:
    """
    Drives one generation request at a time.

    On success the prompt and the assistant's answer are appended to the
    conversation (in that order) and the generated SQL replaces the draft.
    On failure a single system entry is appended and nothing else changes.
    """

    def __init__(
        self,
        backend: AssistantBackend,
        session: ConnectionSession,
        log: ConversationLog,
        draft: QueryDraft,
    ):
        self._backend = backend
        self._session = session
        self._log = log
        self._draft = draft
        self._in_flight = False
        self._closed = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def can_submit(self, prompt_text: str) -> bool:
        return bool(prompt_text and prompt_text.strip()) and not self._in_flight and not self._closed

    async def generate(
        self,
        prompt_text: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[Result[GeneratedQuery, GenerationError]]:
        """
        Submit `prompt_text` for generation.

        Returns None when nothing was submitted: blank prompt, a
        generation already in flight, or a torn-down controller.
        """
        if not prompt_text or not prompt_text.strip():
            return None
        if self._in_flight:
            logger.warning("Generation already in flight; submission rejected")
            return None
        if self._closed:
            return None

        self._in_flight = True
        try:
            return await self._generate(prompt_text, context)
        finally:
            self._in_flight = False

    async def _generate(
        self,
        prompt_text: str,
        context: Optional[Dict[str, Any]],
    ) -> Result[GeneratedQuery, GenerationError]:
        logger.info(f"Generating SQL for connection {self._session.id}: {prompt_text[:80]!r}")
        try:
            response = await self._backend.generate(
                prompt_text,
                self._session.id,
                self._session.params,
                context,
            )
        except ApiError as e:
            logger.error(f"Generation failed: {e.message}")
            return self._fail(e.message)

        query = response.query
        if not query.generated_sql or not query.generated_sql.strip():
            # The backend answers a failed AI call with no SQL and the reason as explanation
            logger.error(f"Generation returned no SQL: {query.explanation}")
            return self._fail(query.explanation)

        if self._closed:
            logger.debug("Discarding generation result for torn-down workspace")
            return Result.success(query)

        self._log.append(Role.USER, prompt_text)
        self._log.append(
            Role.ASSISTANT,
            query.explanation or FALLBACK_EXPLANATION,
            sql=query.generated_sql,
        )
        self._draft.replace(query.generated_sql)

        if query.warnings:
            logger.info(f"Generation warnings: {query.warnings}")
        return Result.success(query)

    def _fail(self, reason: Optional[str]) -> Result[GeneratedQuery, GenerationError]:
        error = GenerationError(reason or GENERATION_FAILED_MESSAGE)
        if not self._closed:
            self._log.append(Role.SYSTEM, GENERATION_FAILED_MESSAGE)
        return Result.failure(error)

    def close(self):
        self._closed = True
