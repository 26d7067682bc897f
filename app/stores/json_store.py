"""
File-per-conversation JSON store.

Layout under the root directory:

    conversations/<session_id>.json   full session tree (SessionWithMessages)
    index.json                        one summary row per session, newest activity first

Every file is replaced atomically, so readers never see a partial write. The
index belongs to this store: it is updated under a lock on every write and
rebuilt from the conversation files when missing or unreadable. Locks are
in-process only; two processes sharing a directory are not coordinated.
"""

from __future__ import annotations

import os
import re
import tempfile
import uuid
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from app.core.errors import NotFoundError, StorageError
from app.infra.logging_config import get_logger
from app.schemas.session import (
    MessageCreate,
    MessageRead,
    SessionImport,
    SessionRead,
    SessionSummary,
    SessionWithMessages,
)
from app.stores.base import ConversationStore, make_preview, utcnow

logger = get_logger("stores.json")

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


class SessionIndex(BaseModel):
    """Contents of index.json."""

    sessions: list[SessionSummary] = Field(default_factory=list)
    last_updated: Optional[datetime] = None


def _sort_summaries(sessions: list[SessionSummary]) -> list[SessionSummary]:
    return sorted(
        sessions, key=lambda s: (s.last_active_at, s.created_at), reverse=True
    )


class JsonConversationStore(ConversationStore):
    def __init__(self, root: str | os.PathLike, **kwargs) -> None:
        super().__init__(**kwargs)
        self.root = Path(root)
        self.conversations_dir = self.root / "conversations"
        self.index_path = self.root / "index.json"
        self._index_lock = Lock()
        try:
            self.conversations_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.exception("Cannot create JSON store directory %s", self.root)
            raise StorageError("Conversation storage is unavailable") from e

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------

    def _path_for(self, session_id: str) -> Path:
        return self.conversations_dir / f"{session_id}.json"

    def _atomic_write(self, path: Path, text: str) -> None:
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(text)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            logger.exception("Failed writing %s", path)
            raise StorageError("Failed to write conversation storage") from e

    def _read_tree(self, session_id: str) -> Optional[SessionWithMessages]:
        if not _SAFE_ID.match(session_id or ""):
            return None
        path = self._path_for(session_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.exception("Failed reading %s", path)
            raise StorageError("Failed to read conversation storage") from e
        try:
            return SessionWithMessages.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.exception("Corrupt conversation file %s", path)
            raise StorageError("Conversation file is corrupt") from e

    def _require_tree(self, session_id: str) -> SessionWithMessages:
        tree = self._read_tree(session_id)
        if tree is None:
            raise NotFoundError("Session", session_id)
        return tree

    def _summary(self, tree: SessionWithMessages) -> SessionSummary:
        preview = None
        if tree.messages:
            preview = make_preview(tree.messages[-1].content, self.preview_length)
        return SessionSummary(
            id=tree.id,
            title=tree.title,
            created_at=tree.created_at,
            last_active_at=tree.last_active_at,
            message_count=len(tree.messages),
            preview=preview,
        )

    def _save_tree(self, tree: SessionWithMessages) -> None:
        self._atomic_write(self._path_for(tree.id), tree.model_dump_json(indent=2))
        summary = self._summary(tree)
        with self._index_lock:
            index = self._load_index_locked()
            index.sessions = [s for s in index.sessions if s.id != tree.id]
            index.sessions.append(summary)
            self._save_index_locked(index)

    def _all_trees(self, skip_corrupt: bool = False) -> List[SessionWithMessages]:
        trees = []
        for path in sorted(self.conversations_dir.glob("*.json")):
            try:
                tree = self._read_tree(path.stem)
            except StorageError:
                if not skip_corrupt:
                    raise
                logger.warning("Skipping unreadable conversation file %s", path)
                continue
            if tree is not None:
                trees.append(tree)
        return trees

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    def _load_index_locked(self) -> SessionIndex:
        try:
            return SessionIndex.model_validate_json(
                self.index_path.read_text(encoding="utf-8")
            )
        except FileNotFoundError:
            return self._rebuild_index_locked()
        except PydanticValidationError:
            logger.warning("Index file %s is unreadable; rebuilding", self.index_path)
            return self._rebuild_index_locked()
        except OSError as e:
            logger.exception("Failed reading %s", self.index_path)
            raise StorageError("Failed to read conversation index") from e

    def _save_index_locked(self, index: SessionIndex) -> None:
        index.sessions = _sort_summaries(index.sessions)
        index.last_updated = utcnow()
        self._atomic_write(self.index_path, index.model_dump_json(indent=2))

    def _rebuild_index_locked(self) -> SessionIndex:
        index = SessionIndex(
            sessions=[self._summary(t) for t in self._all_trees(skip_corrupt=True)]
        )
        self._save_index_locked(index)
        logger.info("Rebuilt conversation index with %d sessions", len(index.sessions))
        return index

    def rebuild_index(self) -> int:
        """Regenerate index.json from the conversation files. Returns the session count."""
        with self._index_lock:
            return len(self._rebuild_index_locked().sessions)

    # ------------------------------------------------------------------
    # ConversationStore
    # ------------------------------------------------------------------

    def create_session(self, title: Optional[str] = None) -> SessionRead:
        now = utcnow()
        tree = SessionWithMessages(
            id=uuid.uuid4().hex,
            title=self._title_or_default(title),
            created_at=now,
            last_active_at=now,
        )
        self._save_tree(tree)
        logger.info("Created session %s", tree.id)
        return SessionRead.model_validate(tree.model_dump(exclude={"messages"}))

    def get_session(self, session_id: str) -> SessionRead:
        tree = self._require_tree(session_id)
        return SessionRead.model_validate(tree.model_dump(exclude={"messages"}))

    def append_message(self, session_id: str, message: MessageCreate) -> MessageRead:
        message_id = message.id or uuid.uuid4().hex
        with self._append_locks.hold(session_id):
            tree = self._require_tree(session_id)
            for stored in tree.messages:
                if stored.id == message_id:
                    logger.debug(
                        "Message %s already stored in session %s",
                        message_id,
                        session_id,
                    )
                    return stored
            now = utcnow()
            new_message = MessageRead(
                id=message_id,
                session_id=session_id,
                role=message.role,
                content=message.content,
                order_index=len(tree.messages),
                created_at=now,
                metadata=message.metadata,
            )
            tree.messages.append(new_message)
            tree.last_active_at = now
            self._save_tree(tree)
        logger.debug(
            "Appended message %s to session %s at index %d",
            message_id,
            session_id,
            new_message.order_index,
        )
        return new_message

    def has_message(self, session_id: str, message_id: str) -> bool:
        tree = self._require_tree(session_id)
        return any(m.id == message_id for m in tree.messages)

    def list_messages(self, session_id: str) -> List[MessageRead]:
        tree = self._require_tree(session_id)
        return sorted(tree.messages, key=lambda m: (m.order_index, m.created_at))

    def list_sessions(self) -> List[SessionSummary]:
        try:
            index = SessionIndex.model_validate_json(
                self.index_path.read_text(encoding="utf-8")
            )
        except (FileNotFoundError, PydanticValidationError):
            with self._index_lock:
                index = self._load_index_locked()
        except OSError as e:
            logger.exception("Failed reading %s", self.index_path)
            raise StorageError("Failed to read conversation index") from e
        return _sort_summaries(index.sessions)

    def rename_session(self, session_id: str, title: str) -> SessionRead:
        with self._append_locks.hold(session_id):
            tree = self._require_tree(session_id)
            tree.title = self._title_or_default(title)
            tree.last_active_at = utcnow()
            self._save_tree(tree)
        return SessionRead.model_validate(tree.model_dump(exclude={"messages"}))

    def touch_session(self, session_id: str) -> SessionRead:
        with self._append_locks.hold(session_id):
            tree = self._require_tree(session_id)
            tree.last_active_at = utcnow()
            self._save_tree(tree)
        return SessionRead.model_validate(tree.model_dump(exclude={"messages"}))

    def delete_session(self, session_id: str) -> None:
        with self._append_locks.hold(session_id):
            tree = self._require_tree(session_id)
            try:
                self._path_for(session_id).unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.exception("Failed deleting session file %s", session_id)
                raise StorageError("Failed to delete conversation") from e
            with self._index_lock:
                index = self._load_index_locked()
                index.sessions = [s for s in index.sessions if s.id != session_id]
                self._save_index_locked(index)
        logger.info(
            "Deleted session %s and %d messages", session_id, len(tree.messages)
        )

    def export_one(self, session_id: str) -> SessionWithMessages:
        tree = self._require_tree(session_id)
        tree.messages = self.list_messages(session_id)
        return tree

    def export_all(self) -> List[SessionWithMessages]:
        trees = self._all_trees()
        for tree in trees:
            tree.messages.sort(key=lambda m: (m.order_index, m.created_at))
        return sorted(trees, key=lambda t: (t.created_at, t.id))

    def _import_one(self, item: SessionImport) -> SessionRead:
        now = utcnow()
        session_id = uuid.uuid4().hex
        tree = SessionWithMessages(
            id=session_id,
            title=self._title_or_default(item.title, self._import_default_title),
            created_at=item.created_at or now,
            last_active_at=self._import_last_active(item, now),
            messages=[
                MessageRead(
                    id=uuid.uuid4().hex,
                    session_id=session_id,
                    role=m.role,
                    content=m.content,
                    order_index=index,
                    created_at=m.created_at or now,
                    metadata=m.metadata,
                )
                for index, m in enumerate(item.messages)
            ],
        )
        self._save_tree(tree)
        return SessionRead.model_validate(tree.model_dump(exclude={"messages"}))
