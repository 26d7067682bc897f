"""SessionMessage rows: create, lookup, ordered listing, count."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy.orm import Session as DBSession

from app.models.session_message import SessionMessage


class SessionMessageService:
    def __init__(self, db: DBSession) -> None:
        self.db = db

    def create_message(
        self,
        session_id: str,
        message_id: str,
        role: str,
        content: str,
        order_index: int,
        created_at: datetime,
        metadata: Optional[dict[str, Any]] = None,
    ) -> SessionMessage:
        msg = SessionMessage(
            session_id=session_id,
            id=message_id,
            role=role,
            content=content,
            order_index=order_index,
            created_at=created_at,
            extra=metadata,
        )
        self.db.add(msg)
        self.db.flush()
        return msg

    def get_message(self, session_id: str, message_id: str) -> Optional[SessionMessage]:
        return (
            self.db.query(SessionMessage)
            .filter(
                SessionMessage.session_id == session_id,
                SessionMessage.id == message_id,
            )
            .first()
        )

    def get_messages(self, session_id: str) -> List[SessionMessage]:
        return (
            self.db.query(SessionMessage)
            .filter(SessionMessage.session_id == session_id)
            .order_by(SessionMessage.order_index, SessionMessage.created_at)
            .all()
        )

    def delete_messages_for_session(self, session_id: str) -> int:
        deleted = (
            self.db.query(SessionMessage)
            .filter(SessionMessage.session_id == session_id)
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return deleted

    def get_message_count(self, session_id: str) -> int:
        return (
            self.db.query(SessionMessage)
            .filter(SessionMessage.session_id == session_id)
            .count()
        )
