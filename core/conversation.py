# ============================================================
# SQLA - SQL Assistant
# core/conversation.py - Append-only Conversation Log
# ============================================================

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterator, List, Optional, Set

from loguru import logger


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


def new_entry_id() -> str:
    """Random token; two appends in the same clock tick never collide."""
    return f"msg_{uuid.uuid4().hex}"


@dataclass(frozen=True)
class ConversationEntry:
    """A single chat entry. Never mutated after it is appended."""
    id: str
    role: Role
    text: str
    sql: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def has_sql(self) -> bool:
        return self.sql is not None and self.sql.strip() != ""


class ConversationLog:
    """
    Ordered chat history for one session.

    Only `append` mutates the log; there is no delete, edit or reorder.
    Iteration yields entries in insertion order.
    """

    def __init__(self, id_factory: Callable[[], str] = new_entry_id):
        self._entries: List[ConversationEntry] = []
        self._ids: Set[str] = set()
        self._new_id = id_factory

    def append(self, role: Role, text: str, sql: Optional[str] = None) -> ConversationEntry:
        entry = ConversationEntry(id=self._new_id(), role=Role(role), text=text, sql=sql)
        if entry.id in self._ids:
            raise ValueError(f"Duplicate conversation entry id: {entry.id}")

        self._ids.add(entry.id)
        self._entries.append(entry)
        logger.debug(f"Conversation append [{entry.role.value}] id={entry.id}")
        return entry

    def entries(self) -> List[ConversationEntry]:
        return list(self._entries)

    @property
    def last(self) -> Optional[ConversationEntry]:
        return self._entries[-1] if self._entries else None

    def __iter__(self) -> Iterator[ConversationEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self):
        return f"<ConversationLog entries={len(self._entries)}>"
