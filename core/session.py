# ============================================================
# SQLA - SQL Assistant
# core/session.py - Connection Session & Workspace Lifecycle
# ============================================================
#
# A Workspace is everything that only makes sense while connected:
# schema index, conversation, draft, generation and execution. It is
# built when a session opens and discarded as a whole on reset; a new
# session always gets a fresh Workspace. Results that arrive for a
# discarded Workspace are ignored by its controllers.
# ============================================================

import asyncio
from typing import Optional

from loguru import logger

from core.conversation import ConversationLog, Role
from core.draft import QueryDraft
from core.errors import ApiError, DatabaseConnectionError
from core.execution import ExecutionController
from core.generation import GenerationController
from core.models import ConnectionParams, ConnectionSession, Result
from core.protocols import AssistantBackend
from core.schema_index import SchemaIndex


WELCOME_MESSAGE = (
    "Connected to database! Ask me anything in natural language "
    "and I'll generate SQL queries for you."
)
CONNECTION_FAILED_MESSAGE = "Connection failed"


class Workspace:
    """Controllers bound to one connection session."""

    def __init__(self, backend: AssistantBackend, session: ConnectionSession):
        self.session = session
        self.conversation = ConversationLog()
        self.draft = QueryDraft()
        self.schema = SchemaIndex(backend, session)
        self.generation = GenerationController(backend, session, self.conversation, self.draft)
        self.execution = ExecutionController(backend, session, self.draft)
        self._closed = False

        self.conversation.append(Role.SYSTEM, WELCOME_MESSAGE)

    def mount(self) -> asyncio.Future:
        """Start the one schema fetch this session gets."""
        return self.schema.start_loading()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        self._closed = True
        self.schema.close()
        self.generation.close()
        self.execution.close()
        logger.debug(f"Workspace for {self.session.id} torn down")

    def __repr__(self):
        return f"<Workspace {self.session.id} closed={self._closed}>"


class SessionManager:
    """
    Owns the active connection session. `open` probes connectivity and
    mounts a Workspace; `reset` tears it down and returns to the
    pre-connection state.
    """

    def __init__(self, backend: AssistantBackend):
        self._backend = backend
        self._session: Optional[ConnectionSession] = None
        self._workspace: Optional[Workspace] = None
        self._opening = False

    @property
    def session(self) -> Optional[ConnectionSession]:
        return self._session

    @property
    def workspace(self) -> Optional[Workspace]:
        return self._workspace

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    @property
    def opening(self) -> bool:
        return self._opening

    async def open(
        self, params: ConnectionParams
    ) -> Optional[Result[ConnectionSession, DatabaseConnectionError]]:
        """
        Probe `params` and, on success, replace any current session with
        a new one. Returns None if a probe is already in flight.
        """
        if self._opening:
            logger.warning("Connection probe already in flight; request rejected")
            return None

        self._opening = True
        logger.info(f"Probing {params.kind.value} connection: {params.connection_url()}")
        try:
            response = await self._backend.test_connection(params)
        except ApiError as e:
            logger.error(f"Connection probe failed: {e.message}")
            return Result.failure(DatabaseConnectionError(e.message or CONNECTION_FAILED_MESSAGE))
        finally:
            self._opening = False

        self.reset()

        session = ConnectionSession(id=response.connection_id, params=params)
        self._session = session
        self._workspace = Workspace(self._backend, session)
        self._workspace.mount()
        logger.info(f"Session opened: {session.id} ({params.describe()})")
        return Result.success(session)

    def reset(self):
        """Discard the session and everything mounted for it."""
        if self._workspace is not None:
            self._workspace.close()
        if self._session is not None:
            logger.info(f"Session reset: {self._session.id}")
        self._workspace = None
        self._session = None
