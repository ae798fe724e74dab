"""Workspace endpoints.

Workspaces are identified by an opaque, client-chosen id (the "magic link"),
so creation is get-or-create: posting an id that already exists returns the
existing row with 200 instead of 201.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response, status

from shelfmark.server.db.tables import Workspace
from shelfmark.server.deps import DbSession
from shelfmark.server.managers import workspaces as workspaces_mgr
from shelfmark.server.models.api import WorkspaceCreate, WorkspaceResponse

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@router.post("", response_model=WorkspaceResponse, status_code=status.HTTP_201_CREATED)
async def create_workspace(body: WorkspaceCreate, db: DbSession, response: Response) -> Workspace:
    """Get or create a workspace by id."""
    workspace, created = await workspaces_mgr.get_or_create_workspace(db, body.id)
    if not created:
        response.status_code = status.HTTP_200_OK
    return workspace


@router.get("/{workspace_id}", response_model=WorkspaceResponse)
async def get_workspace(workspace_id: str, db: DbSession) -> Workspace:
    workspace = await workspaces_mgr.get_workspace(db, workspace_id)
    if workspace is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Workspace '{workspace_id}' not found.")
    return workspace
