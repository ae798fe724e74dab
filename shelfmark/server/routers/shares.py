"""Share endpoints.

A share hands out read-only access to a workspace through its ``viewKey``.
Lookups by key treat expired shares as missing.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from shelfmark.server.db.tables import Share
from shelfmark.server.deps import DbSession
from shelfmark.server.errors import ParentNotFoundError
from shelfmark.server.managers import shares as shares_mgr
from shelfmark.server.managers.transfer import export_workspace
from shelfmark.server.models.api import ShareCreate, ShareResponse, ShareUpdate
from shelfmark.server.models.transfer import ExportDocument

router = APIRouter(prefix="/shares", tags=["shares"])


def _not_found(share_id: str) -> HTTPException:
    return HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Share '{share_id}' not found.")


_VIEW_NOT_FOUND = "Share not found or expired."


@router.get("", response_model=list[ShareResponse])
async def list_shares(db: DbSession, workspace_id: str = Query(alias="workspaceId", min_length=1)) -> list[Share]:
    return await shares_mgr.list_shares(db, workspace_id)


@router.post("", response_model=ShareResponse, status_code=status.HTTP_201_CREATED)
async def create_share(body: ShareCreate, db: DbSession) -> Share:
    """Create a share; the view key is generated server-side."""
    try:
        return await shares_mgr.create_share(db, body)
    except ParentNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc)) from None


@router.get("/view/{view_key}", response_model=ShareResponse)
async def get_share_by_view_key(view_key: str, db: DbSession) -> Share:
    share = await shares_mgr.get_share_by_view_key(db, view_key)
    if share is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=_VIEW_NOT_FOUND)
    return share


@router.get("/view/{view_key}/content", response_model=ExportDocument)
async def get_shared_content(view_key: str, db: DbSession) -> ExportDocument:
    """The shared workspace's tree, in export format."""
    share = await shares_mgr.get_share_by_view_key(db, view_key)
    if share is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=_VIEW_NOT_FOUND)
    document = await export_workspace(db, share.workspace_id)
    if document is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=_VIEW_NOT_FOUND)
    return document


@router.get("/{share_id}", response_model=ShareResponse)
async def get_share(share_id: str, db: DbSession) -> Share:
    share = await shares_mgr.get_share(db, share_id)
    if share is None:
        raise _not_found(share_id)
    return share


@router.put("/{share_id}", response_model=ShareResponse)
async def update_share(share_id: str, body: ShareUpdate, db: DbSession) -> Share:
    share = await shares_mgr.update_share(db, share_id, body)
    if share is None:
        raise _not_found(share_id)
    return share


@router.delete("/{share_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_share(share_id: str, db: DbSession) -> None:
    if not await shares_mgr.delete_share(db, share_id):
        raise _not_found(share_id)
