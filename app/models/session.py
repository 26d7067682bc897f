"""Session model: one row per conversation thread."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from app.db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Session(Base):
    """A conversation. Listings sort on last_active_at, newest first."""

    __tablename__ = "sessions"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    title = Column(String(256), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    last_active_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, index=True
    )

    messages = relationship(
        "SessionMessage",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SessionMessage.order_index",
    )
