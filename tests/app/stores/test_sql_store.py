"""SqlConversationStore specifics: rows, cascade, ordering conflicts, error wrapping."""

import pytest

from app.constants.roles import MessageRole
from app.core.errors import StorageError
from app.db import Base
from app.models.session import Session
from app.models.session_message import SessionMessage
from app.schemas.session import MessageCreate
from app.services.session_message_service import SessionMessageService


def test_messages_are_stored_with_internal_roles(db, sql_store):
    session = sql_store.create_session("roles")
    sql_store.append_message(
        session.id, MessageCreate(id="m1", role=MessageRole.HUMAN, content="Hi")
    )
    sql_store.append_message(
        session.id, MessageCreate(id="m2", role=MessageRole.AI, content="Hello")
    )
    rows = (
        db.query(SessionMessage)
        .filter(SessionMessage.session_id == session.id)
        .order_by(SessionMessage.order_index)
        .all()
    )
    assert [(r.id, r.role, r.order_index) for r in rows] == [
        ("m1", "human", 0),
        ("m2", "ai", 1),
    ]


def test_delete_leaves_no_message_rows(db, sql_store):
    session = sql_store.create_session("to delete")
    for i in range(3):
        sql_store.append_message(
            session.id, MessageCreate(role=MessageRole.HUMAN, content=str(i))
        )
    sql_store.delete_session(session.id)

    assert db.query(Session).filter(Session.id == session.id).count() == 0
    assert (
        db.query(SessionMessage)
        .filter(SessionMessage.session_id == session.id)
        .count()
        == 0
    )


def test_foreign_key_cascade_on_raw_delete(db, sql_store):
    """The database itself removes messages when a session row goes away."""
    session = sql_store.create_session("fk")
    sql_store.append_message(
        session.id, MessageCreate(role=MessageRole.HUMAN, content="x")
    )
    db.query(Session).filter(Session.id == session.id).delete()
    db.commit()
    assert db.query(SessionMessage).count() == 0


def test_append_retries_after_order_conflict(sql_store, monkeypatch):
    """A stale count (another writer got there first) is retried with a fresh one."""
    session = sql_store.create_session("retry")
    sql_store.append_message(
        session.id, MessageCreate(role=MessageRole.HUMAN, content="first")
    )

    real_count = SessionMessageService.get_message_count
    calls = {"n": 0}

    def stale_count(self, session_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return 0
        return real_count(self, session_id)

    monkeypatch.setattr(SessionMessageService, "get_message_count", stale_count)
    msg = sql_store.append_message(
        session.id, MessageCreate(role=MessageRole.AI, content="second")
    )

    assert calls["n"] == 2
    assert msg.order_index == 1
    assert [m.content for m in sql_store.list_messages(session.id)] == [
        "first",
        "second",
    ]


def test_append_gives_up_after_max_retries(session_factory, monkeypatch):
    from app.stores.sql_store import SqlConversationStore

    store = SqlConversationStore(session_factory, max_retries=3)
    session = store.create_session("stuck")
    store.append_message(session.id, MessageCreate(role=MessageRole.HUMAN, content="a"))
    monkeypatch.setattr(
        SessionMessageService, "get_message_count", lambda self, session_id: 0
    )
    with pytest.raises(StorageError):
        store.append_message(
            session.id, MessageCreate(role=MessageRole.HUMAN, content="b")
        )


def test_database_errors_become_storage_errors(engine, sql_store):
    sql_store.create_session("soon gone")
    Base.metadata.drop_all(bind=engine)
    with pytest.raises(StorageError) as exc_info:
        sql_store.list_sessions()
    assert exc_info.value.__cause__ is not None


def test_summary_counts_per_session(sql_store, faker):
    a = sql_store.create_session("a")
    b = sql_store.create_session("b")
    for _ in range(3):
        sql_store.append_message(
            a.id, MessageCreate(role=MessageRole.HUMAN, content=faker.word())
        )
    sql_store.append_message(b.id, MessageCreate(role=MessageRole.AI, content="last"))
    counts = {s.id: (s.message_count, s.preview) for s in sql_store.list_sessions()}
    assert counts[a.id][0] == 3
    assert counts[b.id] == (1, "last")
