"""Database engine, session factory and helpers."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.config import get_settings


class Base(DeclarativeBase):
    pass


def build_engine(database_url: Optional[str] = None) -> Engine:
    """Create an engine; SQLite connections get foreign keys and thread sharing enabled."""
    url = database_url or get_settings().database_url
    connect_args = {}
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        connect_args = {"check_same_thread": False, "timeout": 30}
    engine = create_engine(url, connect_args=connect_args, future=True)
    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )


engine = build_engine()
SessionLocal = build_session_factory(engine)


@contextmanager
def db_session(factory: Optional[sessionmaker[Session]] = None) -> Iterator[Session]:
    """Context manager: commit on success, roll back on error."""
    db = (factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(target: Optional[Engine] = None) -> None:
    """Create all tables. Migrations (alembic) are the normal path outside tests."""
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=target or engine)
