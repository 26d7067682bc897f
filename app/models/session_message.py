"""SessionMessage model: one row per human or assistant message in a session."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db import Base


class SessionMessage(Base):
    """One row per message; role is 'human' or 'ai'. order_index is gap-free per session."""

    __tablename__ = "session_messages"
    __table_args__ = (
        UniqueConstraint(
            "session_id", "order_index", name="uq_session_messages_session_order"
        ),
    )

    session_id = Column(
        String(64),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    id = Column(String(128), primary_key=True)
    role = Column(String(16), nullable=False)  # 'human' | 'ai'
    content = Column(Text, nullable=False, default="")
    extra = Column(
        "metadata", JSON, nullable=True
    )  # DB column "metadata"; avoid shadowing Base.metadata
    order_index = Column(Integer, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    session = relationship("Session", back_populates="messages")

    @property
    def message_metadata(self) -> dict | None:
        """Expose DB column 'metadata' for serialization (avoid shadowing Base.metadata)."""
        return self.extra
