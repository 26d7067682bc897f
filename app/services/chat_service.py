"""Chat turn orchestration: resolve the session, record inbound messages, stream and record the reply."""

from __future__ import annotations

import uuid
from typing import AsyncIterator, List, Optional, Protocol, Tuple

from starlette.concurrency import run_in_threadpool

from app.constants.roles import ExternalRole, MessageRole
from app.core.errors import NotFoundError
from app.core.roles import to_external
from app.infra.logging_config import get_logger
from app.schemas.conversation import MessageIn
from app.schemas.session import MessageCreate, SessionRead
from app.stores.base import ConversationStore

logger = get_logger("chat")

TITLE_MAX_LENGTH = 50


class ReplyStreamer(Protocol):
    def stream(self, history: List[dict[str, str]]) -> AsyncIterator[str]: ...


def title_from_messages(messages: List[MessageIn]) -> Optional[str]:
    """First user message, trimmed to TITLE_MAX_LENGTH characters."""
    for m in messages:
        text = m.content.strip()
        if m.role == ExternalRole.USER and text:
            if len(text) > TITLE_MAX_LENGTH:
                return text[:TITLE_MAX_LENGTH].rstrip() + "..."
            return text
    return None


class ChatService:
    def __init__(self, store: ConversationStore, runner: ReplyStreamer) -> None:
        self.store = store
        self.runner = runner

    def resolve_session(
        self,
        session_id: Optional[str],
        messages: List[MessageIn],
        title: Optional[str] = None,
    ) -> Tuple[SessionRead, bool]:
        """Return (session, created). Unknown or missing ids start a new session."""
        if session_id:
            try:
                return self.store.get_session(session_id), False
            except NotFoundError:
                logger.info("Session %s not found; starting a new one", session_id)
        session = self.store.create_session(title or title_from_messages(messages))
        return session, True

    def record_inbound(self, session_id: str, messages: List[MessageIn]) -> int:
        """
        Append every message not yet stored. Messages carrying an id are matched
        by id; a message without id is only taken when it is the newest user turn.
        Returns the number of messages appended.
        """
        appended = 0
        last = len(messages) - 1
        for position, message in enumerate(messages):
            if message.id is None:
                if position != last or message.role != ExternalRole.USER:
                    continue
            elif self.store.has_message(session_id, message.id):
                continue
            self.store.append_message(session_id, message.to_create())
            appended += 1
        return appended

    def history(self, session_id: str) -> List[dict[str, str]]:
        return [
            {"role": to_external(m.role).value, "content": m.content}
            for m in self.store.list_messages(session_id)
        ]

    async def stream_reply(
        self, session_id: str, reply_id: Optional[str] = None
    ) -> AsyncIterator[str]:
        """
        Yield the model reply chunk by chunk; once the stream is complete the full
        text is appended to the session as an assistant message with reply_id.
        """
        reply_id = reply_id or uuid.uuid4().hex
        history = await run_in_threadpool(self.history, session_id)
        chunks: List[str] = []
        async for chunk in self.runner.stream(history):
            chunks.append(chunk)
            yield chunk
        text = "".join(chunks)
        try:
            await run_in_threadpool(
                self.store.append_message,
                session_id,
                MessageCreate(id=reply_id, role=MessageRole.AI, content=text),
            )
        except Exception:
            logger.exception(
                "Failed to store assistant reply %s for session %s",
                reply_id,
                session_id,
            )
            raise
