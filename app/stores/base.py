"""
Conversation store interface.

Every backend (relational, JSON files) honours the same contract: stable ids,
gap-free order_index per session, idempotent append, cascade delete, and
listings ordered by last_active_at (newest first).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from app.core.errors import StoreError
from app.infra.logging_config import get_logger
from app.schemas.session import (
    ImportResult,
    MessageCreate,
    MessageRead,
    SessionImport,
    SessionRead,
    SessionSummary,
    SessionWithMessages,
)
from app.utils.locks import KeyedLock

logger = get_logger("stores")

DEFAULT_TITLE = "New Chat"
DEFAULT_IMPORT_TITLE = "Imported Chat"
DEFAULT_PREVIEW_LENGTH = 100


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_preview(content: Optional[str], length: int = DEFAULT_PREVIEW_LENGTH) -> str:
    """First `length` characters of the latest message, with '...' when cut."""
    content = content or ""
    if len(content) > length:
        return content[:length] + "..."
    return content


def filter_summaries(
    summaries: Iterable[SessionSummary], query: str
) -> List[SessionSummary]:
    """Case-insensitive substring match on title or preview."""
    needle = query.strip().lower()
    if not needle:
        return list(summaries)
    return [
        s
        for s in summaries
        if needle in s.title.lower() or needle in (s.preview or "").lower()
    ]


class ConversationStore(ABC):
    """Durable keeper of sessions and their ordered messages."""

    _import_default_title = DEFAULT_IMPORT_TITLE

    def __init__(
        self,
        default_title: str = DEFAULT_TITLE,
        preview_length: int = DEFAULT_PREVIEW_LENGTH,
    ) -> None:
        self.default_title = default_title
        self.preview_length = preview_length
        self._append_locks = KeyedLock()

    def _title_or_default(self, title: Optional[str], default: Optional[str] = None) -> str:
        title = (title or "").strip()
        return title or default or self.default_title

    @abstractmethod
    def create_session(self, title: Optional[str] = None) -> SessionRead:
        """Create a session with a fresh id; created_at == last_active_at == now."""
        ...

    @abstractmethod
    def get_session(self, session_id: str) -> SessionRead:
        """Return the session or raise NotFoundError."""
        ...

    @abstractmethod
    def append_message(self, session_id: str, message: MessageCreate) -> MessageRead:
        """
        Append a message, assigning order_index = current message count.
        A message id already stored in the session returns the stored message unchanged.
        Raises NotFoundError if the session does not exist.
        """
        ...

    @abstractmethod
    def has_message(self, session_id: str, message_id: str) -> bool:
        ...

    @abstractmethod
    def list_messages(self, session_id: str) -> List[MessageRead]:
        """Messages ordered by order_index. Raises NotFoundError for unknown sessions."""
        ...

    @abstractmethod
    def list_sessions(self) -> List[SessionSummary]:
        """All sessions, most recently active first, with message_count and preview."""
        ...

    def search_sessions(self, query: str) -> List[SessionSummary]:
        return filter_summaries(self.list_sessions(), query)

    @abstractmethod
    def rename_session(self, session_id: str, title: str) -> SessionRead:
        ...

    @abstractmethod
    def touch_session(self, session_id: str) -> SessionRead:
        ...

    @abstractmethod
    def delete_session(self, session_id: str) -> None:
        """Delete the session and every message it owns."""
        ...

    @abstractmethod
    def export_one(self, session_id: str) -> SessionWithMessages:
        ...

    @abstractmethod
    def export_all(self) -> List[SessionWithMessages]:
        """Every session tree, oldest created first."""
        ...

    @abstractmethod
    def _import_one(self, item: SessionImport) -> SessionRead:
        """Store one imported session under fresh ids. All or nothing per session."""
        ...

    def import_sessions(self, sessions: Sequence[SessionImport]) -> ImportResult:
        """Import each session under fresh ids; failures are collected, not raised."""
        result = ImportResult()
        for item in sessions:
            try:
                session = self._import_one(item)
            except StoreError as e:
                label = item.title or "Unknown"
                logger.warning("Import of conversation %r failed: %s", label, e)
                result.errors.append(f"Failed to import conversation: {label}")
                continue
            result.imported_count += 1
            result.message_count += len(item.messages)
            logger.info(
                "Imported conversation %s with %d messages",
                session.id,
                len(item.messages),
            )
        return result

    @staticmethod
    def _import_last_active(item: SessionImport, now: datetime) -> datetime:
        """Source last_active_at (or now), never older than the newest imported message."""
        last_active = item.last_active_at or now
        for m in item.messages:
            stamp = m.created_at or now
            if stamp > last_active:
                last_active = stamp
        return last_active
