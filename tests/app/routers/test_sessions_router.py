"""Tests for the conversations router."""

import time

from app.core.errors import StorageError


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_list_conversations(client, setup_conversation):
    session, messages = setup_conversation
    r = client.get("/conversations")
    assert r.status_code == 200
    data = r.json()
    assert "items" in data
    assert data["total"] == 1
    item = data["items"][0]
    assert item["id"] == session.id
    assert item["message_count"] == len(messages)


def test_list_conversations_paginates(client, store):
    for i in range(5):
        store.create_session(f"chat {i}")
        time.sleep(0.002)
    r = client.get("/conversations", params={"page": 2, "size": 2})
    assert r.status_code == 200
    data = r.json()
    assert data["total"] == 5
    assert [i["title"] for i in data["items"]] == ["chat 2", "chat 1"]


def test_search_conversations(client, store):
    store.create_session("Tahun Baru Islam")
    store.create_session("Natal")
    r = client.get("/conversations", params={"q": "islam"})
    assert [i["title"] for i in r.json()["items"]] == ["Tahun Baru Islam"]


def test_create_conversation(client):
    r = client.post("/conversations", json={"title": "Cuti bersama"})
    assert r.status_code == 201
    data = r.json()
    assert data["title"] == "Cuti bersama"
    assert data["messages"] == []


def test_create_conversation_default_title(client):
    r = client.post("/conversations", json={})
    assert r.status_code == 201
    assert r.json()["title"] == "New Chat"


def test_create_conversation_with_first_message(client):
    payload = {"title": "Waisak", "firstMessage": {"id": "m1", "role": "user", "content": "Kapan?"}}
    r = client.post("/conversations", json=payload)
    assert r.status_code == 201
    messages = r.json()["messages"]
    assert [(m["id"], m["role"], m["order_index"]) for m in messages] == [("m1", "user", 0)]


def test_get_conversation(client, setup_conversation):
    session, messages = setup_conversation
    r = client.get(f"/conversations/{session.id}")
    assert r.status_code == 200
    data = r.json()
    assert data["id"] == session.id
    assert [m["id"] for m in data["messages"]] == [m.id for m in messages]
    assert data["messages"][1]["role"] == "assistant"


def test_get_conversation_not_found(client):
    r = client.get("/conversations/does-not-exist")
    assert r.status_code == 404
    assert r.json()["detail"] == "Session not found"


def test_rename_conversation(client, setup_session):
    r = client.patch(f"/conversations/{setup_session.id}", json={"title": "Renamed"})
    assert r.status_code == 200
    assert r.json()["title"] == "Renamed"


def test_rename_conversation_empty_title(client, setup_session):
    r = client.patch(f"/conversations/{setup_session.id}", json={"title": ""})
    assert r.status_code == 422


def test_rename_conversation_not_found(client):
    r = client.patch("/conversations/does-not-exist", json={"title": "x"})
    assert r.status_code == 404


def test_delete_conversation(client, setup_conversation):
    session, _ = setup_conversation
    r = client.delete(f"/conversations/{session.id}")
    assert r.status_code == 204
    assert client.get(f"/conversations/{session.id}").status_code == 404
    assert client.get(f"/conversations/{session.id}/messages").status_code == 404


def test_delete_conversation_not_found(client):
    assert client.delete("/conversations/does-not-exist").status_code == 404


def test_append_and_list_messages(client, setup_session):
    url = f"/conversations/{setup_session.id}/messages"
    r = client.post(url, json={"id": "m1", "role": "user", "content": "Hi"})
    assert r.status_code == 201
    r = client.post(url, json={"id": "m2", "role": "assistant", "content": "Hello"})
    assert r.json()["order_index"] == 1

    r = client.get(url)
    assert r.status_code == 200
    assert [(m["id"], m["role"]) for m in r.json()] == [("m1", "user"), ("m2", "assistant")]


def test_append_message_is_idempotent(client, setup_session):
    url = f"/conversations/{setup_session.id}/messages"
    first = client.post(url, json={"id": "m1", "role": "user", "content": "Hi"}).json()
    again = client.post(url, json={"id": "m1", "role": "user", "content": "Hi"}).json()
    assert again["order_index"] == first["order_index"] == 0
    assert len(client.get(url).json()) == 1


def test_append_message_bad_role(client, setup_session):
    r = client.post(
        f"/conversations/{setup_session.id}/messages",
        json={"role": "system", "content": "x"},
    )
    assert r.status_code == 422


def test_append_message_unknown_session(client):
    r = client.post(
        "/conversations/does-not-exist/messages",
        json={"role": "user", "content": "x"},
    )
    assert r.status_code == 404


def test_storage_failure_is_generic_500(client, store, setup_session, monkeypatch):
    def broken(*args, **kwargs):
        raise StorageError("disk error at /var/lib/holiday/secret.db")

    monkeypatch.setattr(store, "append_message", broken)
    monkeypatch.setattr(store, "list_sessions", broken)

    r = client.post(
        f"/conversations/{setup_session.id}/messages",
        json={"role": "user", "content": "Hi"},
    )
    assert r.status_code == 500
    assert r.json() == {"detail": "Internal server error"}
    assert "secret" not in r.text

    r = client.get("/conversations")
    assert r.status_code == 500
    assert r.json() == {"detail": "Internal server error"}


def test_list_conversations_emits_no_pagination_warning(client, setup_session, recwarn):
    r = client.get("/conversations")
    assert r.status_code == 200
    assert not [w for w in recwarn if "Pagination" in type(w.message).__name__]
