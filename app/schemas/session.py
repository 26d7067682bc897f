"""Pydantic schemas for sessions and their messages, shared by every store backend."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from app.constants.roles import MessageRole


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything we store is UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# -----------------------------------------------------------------------------
# Session schemas
# -----------------------------------------------------------------------------


class SessionRead(BaseModel):
    """A stored session."""

    id: str
    title: str
    created_at: datetime
    last_active_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at", "last_active_at")
    @classmethod
    def ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class SessionSummary(SessionRead):
    """Session row for listings: message count and a preview of the latest message."""

    message_count: int = 0
    preview: Optional[str] = None


# -----------------------------------------------------------------------------
# Message schemas
# -----------------------------------------------------------------------------


class MessageCreate(BaseModel):
    """Input for append_message. id is generated when absent."""

    id: Optional[str] = Field(default=None, min_length=1, max_length=128)
    role: MessageRole
    content: str = ""
    metadata: Optional[dict[str, Any]] = None


class MessageRead(BaseModel):
    """A stored message."""

    id: str
    session_id: str
    role: MessageRole
    content: str
    order_index: int
    created_at: datetime
    metadata: Optional[dict[str, Any]] = None

    model_config = {"from_attributes": True}

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @classmethod
    def from_orm_row(cls, obj) -> "MessageRead":
        # ORM has .extra as DB column; expose as .metadata for schema
        return cls(
            id=obj.id,
            session_id=obj.session_id,
            role=obj.role,
            content=obj.content or "",
            order_index=obj.order_index,
            created_at=obj.created_at,
            metadata=obj.message_metadata,
        )


class SessionWithMessages(SessionRead):
    """Full session tree, messages in order_index order."""

    messages: list[MessageRead] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Import schemas
# -----------------------------------------------------------------------------


class MessageImport(BaseModel):
    """A message to import. Fresh ids are assigned; order comes from list position."""

    role: MessageRole
    content: str = ""
    created_at: Optional[datetime] = None
    metadata: Optional[dict[str, Any]] = None

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class SessionImport(BaseModel):
    """A session to import together with its messages."""

    title: Optional[str] = None
    created_at: Optional[datetime] = None
    last_active_at: Optional[datetime] = None
    messages: list[MessageImport] = Field(default_factory=list)

    @field_validator("created_at", "last_active_at")
    @classmethod
    def ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class ImportResult(BaseModel):
    """Outcome of an import batch. Partial success is reported, not raised."""

    imported_count: int = 0
    message_count: int = 0
    errors: list[str] = Field(default_factory=list)

    def merge(self, other: "ImportResult") -> "ImportResult":
        return ImportResult(
            imported_count=self.imported_count + other.imported_count,
            message_count=self.message_count + other.message_count,
            errors=[*self.errors, *other.errors],
        )
