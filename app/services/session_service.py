"""Session rows: lookup, create, rename/touch, delete and the listing aggregate."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session as DBSession, aliased, selectinload

from app.models.session import Session
from app.models.session_message import SessionMessage


class SessionService:
    """Operates inside the caller's transaction: flushes, never commits."""

    def __init__(self, db: DBSession) -> None:
        self.db = db

    def get_session(self, session_id: str) -> Optional[Session]:
        return self.db.query(Session).filter(Session.id == session_id).first()

    def get_session_for_update(self, session_id: str) -> Optional[Session]:
        """Row-locking read where the dialect supports it (no-op on SQLite)."""
        return (
            self.db.query(Session)
            .filter(Session.id == session_id)
            .with_for_update()
            .first()
        )

    def create_session(
        self,
        title: str,
        created_at: datetime,
        last_active_at: Optional[datetime] = None,
    ) -> Session:
        session = Session(
            id=uuid.uuid4().hex,
            title=title,
            created_at=created_at,
            last_active_at=last_active_at or created_at,
        )
        self.db.add(session)
        self.db.flush()
        return session

    def update_session(
        self,
        session: Session,
        last_active_at: datetime,
        title: Optional[str] = None,
    ) -> Session:
        if title is not None:
            session.title = title
        session.last_active_at = last_active_at
        self.db.flush()
        return session

    def delete_session(self, session: Session) -> None:
        self.db.delete(session)
        self.db.flush()

    def get_sessions_with_messages(
        self, session_id: Optional[str] = None
    ) -> List[Session]:
        """Sessions (oldest created first) with their messages eagerly loaded in order."""
        query = self.db.query(Session).options(selectinload(Session.messages))
        if session_id is not None:
            query = query.filter(Session.id == session_id)
        return query.order_by(Session.created_at.asc(), Session.id.asc()).all()

    def get_summaries(
        self, preview_length: int
    ) -> List[Tuple[Session, int, Optional[str]]]:
        """
        One aggregate query: (session, message_count, latest content prefix), newest activity first.
        The prefix is one character longer than preview_length so callers can tell it was cut.
        """
        stats = (
            select(
                SessionMessage.session_id.label("session_id"),
                func.count().label("message_count"),
                func.max(SessionMessage.order_index).label("last_index"),
            )
            .group_by(SessionMessage.session_id)
            .subquery()
        )
        latest = aliased(SessionMessage)
        stmt = (
            select(
                Session,
                func.coalesce(stats.c.message_count, 0),
                func.substr(latest.content, 1, preview_length + 1),
            )
            .outerjoin(stats, stats.c.session_id == Session.id)
            .outerjoin(
                latest,
                and_(
                    latest.session_id == Session.id,
                    latest.order_index == stats.c.last_index,
                ),
            )
            .order_by(
                Session.last_active_at.desc(),
                Session.created_at.desc(),
                Session.id.asc(),
            )
        )
        return [(row[0], int(row[1]), row[2]) for row in self.db.execute(stmt).all()]
