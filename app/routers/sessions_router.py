"""Conversations API: list, create, get, rename, delete, messages."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi_pagination import Page, Params, paginate

from app.infra.logging_config import get_logger
from app.schemas.conversation import (
    ConversationCreate,
    ConversationRead,
    ConversationUpdate,
    MessageIn,
    MessageOut,
)
from app.schemas.session import SessionRead, SessionSummary
from app.stores import get_conversation_store
from app.stores.base import ConversationStore

logger = get_logger("conversations")

sessions_router = APIRouter(
    prefix="/conversations",
    tags=["conversations"],
    responses={404: {"description": "Not found"}},
)


@sessions_router.get("", response_model=Page[SessionSummary])
def list_sessions(
    params: Params = Depends(),
    q: Optional[str] = Query(None, description="Filter by title or last message"),
    store: ConversationStore = Depends(get_conversation_store),
) -> Page[SessionSummary]:
    """List sessions, most recently active first."""
    summaries = store.search_sessions(q) if q else store.list_sessions()
    return paginate(summaries, params)


@sessions_router.post("", response_model=ConversationRead, status_code=201)
def create_session(
    data: ConversationCreate,
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationRead:
    """Create a session, optionally with its first message."""
    session = store.create_session(data.title)
    messages: List[MessageOut] = []
    if data.first_message is not None:
        stored = store.append_message(session.id, data.first_message.to_create())
        messages.append(MessageOut.from_read(stored))
        session = store.get_session(session.id)
    return ConversationRead(**session.model_dump(), messages=messages)


@sessions_router.get("/{session_id}", response_model=ConversationRead)
def get_session(
    session_id: str,
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationRead:
    """Get a session with all of its messages in order."""
    session = store.get_session(session_id)
    messages = [MessageOut.from_read(m) for m in store.list_messages(session_id)]
    return ConversationRead(**session.model_dump(), messages=messages)


@sessions_router.patch("/{session_id}", response_model=SessionRead)
def rename_session(
    session_id: str,
    data: ConversationUpdate,
    store: ConversationStore = Depends(get_conversation_store),
) -> SessionRead:
    """Rename a session."""
    return store.rename_session(session_id, data.title)


@sessions_router.delete("/{session_id}", status_code=204)
def delete_session(
    session_id: str,
    store: ConversationStore = Depends(get_conversation_store),
) -> None:
    """Delete a session and all of its messages."""
    store.delete_session(session_id)


@sessions_router.get("/{session_id}/messages", response_model=list[MessageOut])
def list_session_messages(
    session_id: str,
    store: ConversationStore = Depends(get_conversation_store),
) -> list[MessageOut]:
    """List a session's messages in order."""
    return [MessageOut.from_read(m) for m in store.list_messages(session_id)]


@sessions_router.post(
    "/{session_id}/messages", response_model=MessageOut, status_code=201
)
def append_session_message(
    session_id: str,
    data: MessageIn,
    store: ConversationStore = Depends(get_conversation_store),
) -> MessageOut:
    """Append a message. Re-sending a stored id returns the stored message."""
    return MessageOut.from_read(store.append_message(session_id, data.to_create()))
