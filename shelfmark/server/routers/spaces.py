"""Space CRUD endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from shelfmark.server.db.tables import Space
from shelfmark.server.deps import DbSession
from shelfmark.server.errors import ParentNotFoundError
from shelfmark.server.managers import spaces as spaces_mgr
from shelfmark.server.models.api import SpaceCreate, SpaceResponse, SpaceUpdate

router = APIRouter(prefix="/spaces", tags=["spaces"])


def _not_found(space_id: str) -> HTTPException:
    return HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Space '{space_id}' not found.")


@router.get("", response_model=list[SpaceResponse])
async def list_spaces(db: DbSession, workspace_id: str = Query(alias="workspaceId", min_length=1)) -> list[Space]:
    """List a workspace's spaces in display order."""
    return await spaces_mgr.list_spaces(db, workspace_id)


@router.post("", response_model=SpaceResponse, status_code=status.HTTP_201_CREATED)
async def create_space(body: SpaceCreate, db: DbSession) -> Space:
    try:
        return await spaces_mgr.create_space(db, body)
    except ParentNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc)) from None


@router.get("/{space_id}", response_model=SpaceResponse)
async def get_space(space_id: str, db: DbSession) -> Space:
    space = await spaces_mgr.get_space(db, space_id)
    if space is None:
        raise _not_found(space_id)
    return space


@router.put("/{space_id}", response_model=SpaceResponse)
async def update_space(space_id: str, body: SpaceUpdate, db: DbSession) -> Space:
    """Partially update a space."""
    space = await spaces_mgr.update_space(db, space_id, body)
    if space is None:
        raise _not_found(space_id)
    return space


@router.delete("/{space_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_space(space_id: str, db: DbSession) -> None:
    """Delete a space together with its collections and their bookmarks."""
    if not await spaces_mgr.delete_space(db, space_id):
        raise _not_found(space_id)
