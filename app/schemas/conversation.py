"""HTTP-facing conversation schemas. Roles use the external user/assistant vocabulary."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field

from app.constants.roles import ExternalRole
from app.core.roles import to_external, to_internal
from app.schemas.session import MessageCreate, MessageRead, SessionRead


class MessageIn(BaseModel):
    """A message as sent by a client."""

    id: Optional[str] = Field(default=None, min_length=1, max_length=128)
    role: ExternalRole
    content: str = ""
    metadata: Optional[dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("metadata", "toolCalls")
    )

    def to_create(self) -> MessageCreate:
        return MessageCreate(
            id=self.id,
            role=to_internal(self.role),
            content=self.content,
            metadata=self.metadata,
        )


class MessageOut(BaseModel):
    """A stored message as returned to clients."""

    id: str
    role: ExternalRole
    content: str
    order_index: int
    created_at: datetime
    metadata: Optional[dict[str, Any]] = None

    @classmethod
    def from_read(cls, message: MessageRead) -> "MessageOut":
        return cls(
            id=message.id,
            role=to_external(message.role),
            content=message.content,
            order_index=message.order_index,
            created_at=message.created_at,
            metadata=message.metadata,
        )


class ConversationCreate(BaseModel):
    title: Optional[str] = None
    first_message: Optional[MessageIn] = Field(
        default=None, validation_alias=AliasChoices("first_message", "firstMessage")
    )


class ConversationUpdate(BaseModel):
    title: str = Field(min_length=1, max_length=256)


class ConversationRead(SessionRead):
    """Session with its messages in order."""

    messages: list[MessageOut] = Field(default_factory=list)


class ChatRequest(BaseModel):
    """One chat turn: the client's view of the conversation so far."""

    session_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("session_id", "sessionId")
    )
    title: Optional[str] = None
    messages: list[MessageIn] = Field(min_length=1)
