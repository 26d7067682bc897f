"""Export/import document schemas. Keys are camelCase on the wire."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.constants.roles import ExternalRole


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExportedMessage(CamelModel):
    id: str
    role: ExternalRole
    content: str
    timestamp: datetime
    metadata: Optional[dict[str, Any]] = None


class ExportedConversation(CamelModel):
    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    messages: list[ExportedMessage] = Field(default_factory=list)


class ExportDocument(CamelModel):
    export_date: datetime
    version: str
    export_type: Literal["single", "all"]
    conversations: list[ExportedConversation]
    total_conversations: int
    total_messages: int
    exported_by: str


class ImportedMessage(CamelModel):
    """Lenient message shape: role may use either vocabulary, content may be missing."""

    role: str
    content: Optional[str] = None
    timestamp: Optional[datetime] = None
    metadata: Optional[dict[str, Any]] = None


class ImportedConversation(CamelModel):
    title: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    messages: Optional[list[ImportedMessage]] = None


class ImportCounts(BaseModel):
    conversations: int
    messages: int


class ImportResponse(BaseModel):
    success: bool
    imported: ImportCounts
    errors: Optional[list[str]] = None
