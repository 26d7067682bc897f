"""Conversation store backends; one is active per deployment (STORAGE_BACKEND)."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from app.config import Settings, get_settings
from app.stores.base import ConversationStore
from app.stores.json_store import JsonConversationStore
from app.stores.sql_store import SqlConversationStore


def build_store(settings: Optional[Settings] = None) -> ConversationStore:
    """Build the backend selected by settings.storage_backend."""
    settings = settings or get_settings()
    common = {
        "default_title": settings.default_session_title,
        "preview_length": settings.preview_length,
    }
    if settings.storage_backend == "json":
        return JsonConversationStore(settings.json_store_dir, **common)
    from app.db import SessionLocal

    return SqlConversationStore(
        SessionLocal, max_retries=settings.append_max_retries, **common
    )


@lru_cache(maxsize=1)
def get_conversation_store() -> ConversationStore:
    """FastAPI dependency: the process-wide store (its locks must be shared)."""
    return build_store()


__all__ = [
    "ConversationStore",
    "JsonConversationStore",
    "SqlConversationStore",
    "build_store",
    "get_conversation_store",
]
