"""Tests for ChatService."""

import pytest

from app.constants.roles import ExternalRole, MessageRole
from app.schemas.conversation import MessageIn
from app.services.chat_service import ChatService, title_from_messages


def user(content, id=None):
    return MessageIn(id=id, role=ExternalRole.USER, content=content)


def assistant(content, id=None):
    return MessageIn(id=id, role=ExternalRole.ASSISTANT, content=content)


@pytest.fixture
def chat_service(store, fake_streamer):
    return ChatService(store, fake_streamer)


def test_title_from_first_user_message():
    messages = [assistant("Halo!"), user("  Libur panjang bulan Mei?  ")]
    assert title_from_messages(messages) == "Libur panjang bulan Mei?"


def test_title_is_truncated():
    title = title_from_messages([user("a" * 80)])
    assert title == "a" * 50 + "..."


def test_title_without_user_message():
    assert title_from_messages([assistant("Halo!")]) is None


def test_resolve_creates_session(chat_service):
    session, created = chat_service.resolve_session(None, [user("Kapan Idul Fitri?")])
    assert created is True
    assert session.title == "Kapan Idul Fitri?"


def test_resolve_existing_session(chat_service, setup_session):
    session, created = chat_service.resolve_session(setup_session.id, [user("hi")])
    assert created is False
    assert session.id == setup_session.id


def test_resolve_unknown_session_starts_new(chat_service):
    session, created = chat_service.resolve_session("missing", [user("hi")], "Custom")
    assert created is True
    assert session.id != "missing"
    assert session.title == "Custom"


def test_record_inbound_skips_stored_ids(chat_service, store, setup_session):
    turn = [user("Hi", id="u1"), assistant("Hello", id="a1"), user("More?", id="u2")]
    assert chat_service.record_inbound(setup_session.id, turn) == 3
    assert chat_service.record_inbound(setup_session.id, turn) == 0
    assert [m.id for m in store.list_messages(setup_session.id)] == ["u1", "a1", "u2"]


def test_record_inbound_without_ids_takes_last_user_turn(chat_service, store, setup_session):
    turn = [user("old"), assistant("older reply"), user("new question")]
    assert chat_service.record_inbound(setup_session.id, turn) == 1
    stored = store.list_messages(setup_session.id)
    assert [(m.role, m.content) for m in stored] == [(MessageRole.HUMAN, "new question")]


def test_history_uses_external_roles(chat_service, setup_conversation):
    session, messages = setup_conversation
    history = chat_service.history(session.id)
    assert [h["role"] for h in history] == ["user", "assistant", "user", "assistant"]
    assert history[0]["content"] == messages[0].content


@pytest.mark.asyncio
async def test_stream_reply_stores_assistant_message(
    chat_service, store, setup_session, fake_streamer
):
    chat_service.record_inbound(setup_session.id, [user("Kapan HUT RI?", id="u1")])

    chunks = [c async for c in chat_service.stream_reply(setup_session.id, "reply-1")]

    assert "".join(chunks) == "Selamat Hari Kemerdekaan!"
    assert fake_streamer.calls == [[{"role": "user", "content": "Kapan HUT RI?"}]]
    stored = store.list_messages(setup_session.id)
    assert [(m.id, m.role, m.content) for m in stored] == [
        ("u1", MessageRole.HUMAN, "Kapan HUT RI?"),
        ("reply-1", MessageRole.AI, "Selamat Hari Kemerdekaan!"),
    ]


@pytest.mark.asyncio
async def test_stream_reply_twice_stores_once(chat_service, store, setup_session):
    for _ in range(2):
        [c async for c in chat_service.stream_reply(setup_session.id, "reply-1")]
    assert len(store.list_messages(setup_session.id)) == 1
