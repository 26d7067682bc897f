"""Chat turn endpoint: records the conversation and streams the assistant reply."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from app.infra.logging_config import get_logger
from app.routers.utils.dependencies import get_chat_service
from app.schemas.conversation import ChatRequest
from app.services.chat_service import ChatService

logger = get_logger("chat_router")

router = APIRouter(prefix="/chat", tags=["chat"])

SESSION_ID_HEADER = "X-Session-Id"
MESSAGE_ID_HEADER = "X-Message-Id"


@router.post("")
def chat(
    body: ChatRequest,
    svc: ChatService = Depends(get_chat_service),
) -> StreamingResponse:
    """
    Resolve or create the session, store unseen inbound messages, then stream the
    reply as plain text. The session id and the id the reply will be stored under
    are returned in headers so the client can send them back on the next turn.
    """
    session, created = svc.resolve_session(body.session_id, body.messages, body.title)
    appended = svc.record_inbound(session.id, body.messages)
    logger.info(
        "Chat turn for session %s (created=%s, new inbound=%d)",
        session.id,
        created,
        appended,
    )
    reply_id = uuid.uuid4().hex
    return StreamingResponse(
        svc.stream_reply(session.id, reply_id),
        media_type="text/plain; charset=utf-8",
        headers={SESSION_ID_HEADER: session.id, MESSAGE_ID_HEADER: reply_id},
    )
