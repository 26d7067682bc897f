import os

os.environ["ENV"] = "test"

import pytest
from fastapi.testclient import TestClient

from app.db import Base, build_engine, build_session_factory
from app.main import create_app
from app.routers.utils.dependencies import get_reply_streamer
from app.stores import get_conversation_store
from app.stores.json_store import JsonConversationStore
from app.stores.sql_store import SqlConversationStore

pytest_plugins = [
    "tests.fixtures.session_fixtures",
]


@pytest.fixture(scope="function")
def engine(tmp_path):
    """SQLite database file per test; tables created from the models."""
    import app.models  # noqa: F401

    eng = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def sql_store(session_factory):
    return SqlConversationStore(session_factory)


@pytest.fixture(scope="function")
def json_store(tmp_path):
    return JsonConversationStore(tmp_path / "json-store")


@pytest.fixture(scope="function", params=["sql", "json"])
def store(request):
    """Runs the test once per backend."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def client(store, fake_streamer):
    """Client wired to the parametrized store and a canned reply streamer."""
    app = create_app(testing=True)
    app.dependency_overrides[get_conversation_store] = lambda: store
    app.dependency_overrides[get_reply_streamer] = lambda: fake_streamer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
