"""Versioned export/import of conversations (backup and restore)."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import ValidationError as PydanticValidationError

from app.config import get_settings
from app.core.errors import ValidationError
from app.core.roles import parse_role, to_external
from app.infra.logging_config import get_logger
from app.schemas.backup import (
    ExportDocument,
    ExportedConversation,
    ExportedMessage,
    ImportedConversation,
)
from app.schemas.session import (
    ImportResult,
    MessageImport,
    SessionImport,
    SessionWithMessages,
)
from app.stores.base import ConversationStore, utcnow

logger = get_logger("backup")


def _export_conversation(tree: SessionWithMessages) -> ExportedConversation:
    return ExportedConversation(
        id=tree.id,
        title=tree.title,
        created_at=tree.created_at,
        updated_at=tree.last_active_at,
        messages=[
            ExportedMessage(
                id=m.id,
                role=to_external(m.role),
                content=m.content,
                timestamp=m.created_at,
                metadata=m.metadata,
            )
            for m in tree.messages
        ],
    )


def _to_session_import(raw: Any) -> SessionImport:
    """Parse one conversation of an import file. Raises ValidationError when malformed."""
    try:
        conv = ImportedConversation.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(f"Malformed conversation: {e.error_count()} errors") from e
    return SessionImport(
        title=conv.title,
        created_at=conv.created_at,
        last_active_at=conv.updated_at,
        messages=[
            MessageImport(
                role=parse_role(m.role),
                content=m.content or "",
                created_at=m.timestamp,
                metadata=m.metadata,
            )
            for m in conv.messages or []
        ],
    )


def _label(raw: Any) -> str:
    if isinstance(raw, dict) and raw.get("title"):
        return str(raw["title"])
    return "Unknown"


class BackupService:
    def __init__(self, store: ConversationStore, version: Optional[str] = None) -> None:
        settings = get_settings()
        self.store = store
        self.version = version or settings.export_version
        self.exported_by = settings.exported_by

    def export(self, session_id: Optional[str] = None) -> ExportDocument:
        """Export one session (NotFoundError if absent) or all of them."""
        if session_id is not None:
            trees = [self.store.export_one(session_id)]
        else:
            trees = self.store.export_all()
        conversations = [_export_conversation(t) for t in trees]
        return ExportDocument(
            export_date=utcnow(),
            version=self.version,
            export_type="single" if session_id is not None else "all",
            conversations=conversations,
            total_conversations=len(conversations),
            total_messages=sum(len(c.messages) for c in conversations),
            exported_by=self.exported_by,
        )

    def import_document(self, payload: Any) -> ImportResult:
        """
        Validate the document envelope, then import conversation by conversation.
        A bad envelope (not an object, no conversations list, unknown version) is
        rejected before anything is stored. Bad conversations are reported in errors.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Invalid import format: expected a JSON object")
        conversations = payload.get("conversations")
        if not isinstance(conversations, list):
            raise ValidationError("Invalid import format: missing conversations array")
        if payload.get("version") != self.version:
            raise ValidationError("Unsupported export version")

        parsed: List[SessionImport] = []
        errors: List[str] = []
        for raw in conversations:
            try:
                parsed.append(_to_session_import(raw))
            except ValidationError as e:
                label = _label(raw)
                logger.warning("Skipping conversation %r: %s", label, e)
                errors.append(f"Failed to import conversation: {label}")
        result = self.store.import_sessions(parsed)
        result = ImportResult(errors=errors).merge(result)
        logger.info(
            "Import finished: %d conversations, %d messages, %d errors",
            result.imported_count,
            result.message_count,
            len(result.errors),
        )
        return result
