"""Relational conversation store (sessions + session_messages via SQLAlchemy)."""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session as DBSession, sessionmaker

from app.core.errors import NotFoundError, StorageError
from app.db import db_session
from app.infra.logging_config import get_logger
from app.models.session import Session
from app.schemas.session import (
    MessageCreate,
    MessageRead,
    SessionImport,
    SessionRead,
    SessionSummary,
    SessionWithMessages,
)
from app.services.session_message_service import SessionMessageService
from app.services.session_service import SessionService
from app.stores.base import ConversationStore, make_preview, utcnow

logger = get_logger("stores.sql")


class OrderConflict(Exception):
    """Another writer claimed the order_index we computed; recompute and retry."""


def _tree(session: Session) -> SessionWithMessages:
    return SessionWithMessages(
        id=session.id,
        title=session.title,
        created_at=session.created_at,
        last_active_at=session.last_active_at,
        messages=[MessageRead.from_orm_row(m) for m in session.messages],
    )


class SqlConversationStore(ConversationStore):
    """
    Each operation runs in its own short transaction.

    Appends are serialized per session in-process; across processes the unique
    (session_id, order_index) constraint rejects the loser of a race, which
    then retries with a freshly computed index.
    """

    def __init__(
        self,
        session_factory: sessionmaker[DBSession],
        max_retries: int = 5,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._session_factory = session_factory
        self.max_retries = max_retries

    @contextmanager
    def _transaction(self, conflicts_ok: bool = False) -> Iterator[DBSession]:
        try:
            with db_session(self._session_factory) as db:
                yield db
        except IntegrityError as e:
            if conflicts_ok:
                raise OrderConflict(str(e)) from e
            logger.exception("Integrity error in conversation store")
            raise StorageError("Database integrity error") from e
        except SQLAlchemyError as e:
            logger.exception("Database error in conversation store")
            raise StorageError("Database operation failed") from e

    def _require(self, db: DBSession, session_id: str) -> Session:
        session = SessionService(db).get_session(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        return session

    def create_session(self, title: Optional[str] = None) -> SessionRead:
        now = utcnow()
        with self._transaction() as db:
            session = SessionService(db).create_session(
                self._title_or_default(title), created_at=now
            )
            result = SessionRead.model_validate(session)
        logger.info("Created session %s", result.id)
        return result

    def get_session(self, session_id: str) -> SessionRead:
        with self._transaction() as db:
            return SessionRead.model_validate(self._require(db, session_id))

    def append_message(self, session_id: str, message: MessageCreate) -> MessageRead:
        message_id = message.id or uuid.uuid4().hex
        with self._append_locks.hold(session_id):
            for attempt in range(1, self.max_retries + 1):
                try:
                    return self._append_once(session_id, message_id, message)
                except OrderConflict as e:
                    logger.warning(
                        "Append to session %s conflicted (attempt %d/%d): %s",
                        session_id,
                        attempt,
                        self.max_retries,
                        e,
                    )
        raise StorageError(
            f"Could not append to session {session_id} after {self.max_retries} attempts"
        )

    def _append_once(
        self, session_id: str, message_id: str, message: MessageCreate
    ) -> MessageRead:
        with self._transaction(conflicts_ok=True) as db:
            session_svc = SessionService(db)
            session = session_svc.get_session_for_update(session_id)
            if session is None:
                raise NotFoundError("Session", session_id)
            msg_svc = SessionMessageService(db)
            existing = msg_svc.get_message(session_id, message_id)
            if existing is not None:
                logger.debug(
                    "Message %s already stored in session %s", message_id, session_id
                )
                return MessageRead.from_orm_row(existing)
            now = utcnow()
            row = msg_svc.create_message(
                session_id=session_id,
                message_id=message_id,
                role=message.role.value,
                content=message.content,
                order_index=msg_svc.get_message_count(session_id),
                created_at=now,
                metadata=message.metadata,
            )
            session_svc.update_session(session, last_active_at=now)
            result = MessageRead.from_orm_row(row)
        logger.debug(
            "Appended message %s to session %s at index %d",
            result.id,
            session_id,
            result.order_index,
        )
        return result

    def has_message(self, session_id: str, message_id: str) -> bool:
        with self._transaction() as db:
            self._require(db, session_id)
            return SessionMessageService(db).get_message(session_id, message_id) is not None

    def list_messages(self, session_id: str) -> List[MessageRead]:
        with self._transaction() as db:
            self._require(db, session_id)
            rows = SessionMessageService(db).get_messages(session_id)
            return [MessageRead.from_orm_row(m) for m in rows]

    def list_sessions(self) -> List[SessionSummary]:
        with self._transaction() as db:
            rows = SessionService(db).get_summaries(self.preview_length)
            return [
                SessionSummary(
                    id=session.id,
                    title=session.title,
                    created_at=session.created_at,
                    last_active_at=session.last_active_at,
                    message_count=count,
                    preview=make_preview(prefix, self.preview_length)
                    if count
                    else None,
                )
                for session, count, prefix in rows
            ]

    def rename_session(self, session_id: str, title: str) -> SessionRead:
        with self._transaction() as db:
            session = self._require(db, session_id)
            SessionService(db).update_session(
                session,
                last_active_at=utcnow(),
                title=self._title_or_default(title),
            )
            return SessionRead.model_validate(session)

    def touch_session(self, session_id: str) -> SessionRead:
        with self._transaction() as db:
            session = self._require(db, session_id)
            SessionService(db).update_session(session, last_active_at=utcnow())
            return SessionRead.model_validate(session)

    def delete_session(self, session_id: str) -> None:
        with self._append_locks.hold(session_id):
            with self._transaction() as db:
                session = self._require(db, session_id)
                deleted = SessionMessageService(db).delete_messages_for_session(
                    session_id
                )
                SessionService(db).delete_session(session)
        logger.info("Deleted session %s and %d messages", session_id, deleted)

    def export_one(self, session_id: str) -> SessionWithMessages:
        with self._transaction() as db:
            sessions = SessionService(db).get_sessions_with_messages(session_id)
            if not sessions:
                raise NotFoundError("Session", session_id)
            return _tree(sessions[0])

    def export_all(self) -> List[SessionWithMessages]:
        with self._transaction() as db:
            return [_tree(s) for s in SessionService(db).get_sessions_with_messages()]

    def _import_one(self, item: SessionImport) -> SessionRead:
        now = utcnow()
        with self._transaction() as db:
            session = SessionService(db).create_session(
                self._title_or_default(item.title, self._import_default_title),
                created_at=item.created_at or now,
                last_active_at=self._import_last_active(item, now),
            )
            msg_svc = SessionMessageService(db)
            for index, m in enumerate(item.messages):
                msg_svc.create_message(
                    session_id=session.id,
                    message_id=uuid.uuid4().hex,
                    role=m.role.value,
                    content=m.content,
                    order_index=index,
                    created_at=m.created_at or now,
                    metadata=m.metadata,
                )
            return SessionRead.model_validate(session)
