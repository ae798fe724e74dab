"""Workspace export and import endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from shelfmark.server.deps import DbSession
from shelfmark.server.errors import ImportFormatError, ParentNotFoundError
from shelfmark.server.managers.transfer import export_workspace, import_workspace
from shelfmark.server.models.transfer import ExportDocument, ImportRequest, ImportResponse

router = APIRouter(tags=["transfer"])


@router.get("/export", response_model=ExportDocument)
async def export_data(db: DbSession, workspace_id: str = Query(alias="workspaceId", min_length=1)) -> ExportDocument:
    """Snapshot a workspace as a portable JSON document."""
    document = await export_workspace(db, workspace_id)
    if document is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Workspace '{workspace_id}' not found.")
    return document


@router.post("/import", response_model=ImportResponse)
async def import_data(body: ImportRequest, db: DbSession) -> ImportResponse:
    """Merge an exported document into a workspace under fresh ids."""
    try:
        counts = await import_workspace(db, body.workspace_id, body.import_data)
    except ImportFormatError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from None
    except ParentNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc)) from None
    return ImportResponse(message="Data imported successfully", imported=counts)
