"""Export and import of conversations."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query

from app.routers.utils.dependencies import get_backup_service
from app.schemas.backup import ExportDocument, ImportCounts, ImportResponse
from app.services.backup_service import BackupService

router = APIRouter(prefix="", tags=["backup"])


@router.get("/export", response_model=ExportDocument)
def export_conversations(
    conversation: Optional[str] = Query(None, description="Export only this session"),
    svc: BackupService = Depends(get_backup_service),
) -> ExportDocument:
    """Export one conversation or all of them as a versioned JSON document."""
    return svc.export(conversation)


@router.post("/import", response_model=ImportResponse)
def import_conversations(
    payload: Any = Body(...),
    svc: BackupService = Depends(get_backup_service),
) -> ImportResponse:
    """Import conversations from an export document. Each gets fresh ids."""
    result = svc.import_document(payload)
    return ImportResponse(
        success=not result.errors,
        imported=ImportCounts(
            conversations=result.imported_count, messages=result.message_count
        ),
        errors=result.errors or None,
    )
