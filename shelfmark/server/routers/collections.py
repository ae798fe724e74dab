"""Collection CRUD endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from shelfmark.server.db.tables import Collection
from shelfmark.server.deps import DbSession
from shelfmark.server.errors import ParentNotFoundError
from shelfmark.server.managers import collections as collections_mgr
from shelfmark.server.models.api import CollectionCreate, CollectionResponse, CollectionUpdate

router = APIRouter(prefix="/collections", tags=["collections"])


def _not_found(collection_id: str) -> HTTPException:
    return HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Collection '{collection_id}' not found.")


@router.get("", response_model=list[CollectionResponse])
async def list_collections(
    db: DbSession,
    space_id: str | None = Query(None, alias="spaceId"),
    workspace_id: str | None = Query(None, alias="workspaceId"),
) -> list[Collection]:
    """List collections of a space, of a workspace, or (with no filter) all of them.

    ``spaceId`` takes precedence when both filters are given.
    """
    if space_id:
        return await collections_mgr.list_collections(db, space_id)
    return await collections_mgr.list_all_collections(db, workspace_id or None)


@router.post("", response_model=CollectionResponse, status_code=status.HTTP_201_CREATED)
async def create_collection(body: CollectionCreate, db: DbSession) -> Collection:
    try:
        return await collections_mgr.create_collection(db, body)
    except ParentNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc)) from None


@router.get("/{collection_id}", response_model=CollectionResponse)
async def get_collection(collection_id: str, db: DbSession) -> Collection:
    collection = await collections_mgr.get_collection(db, collection_id)
    if collection is None:
        raise _not_found(collection_id)
    return collection


@router.put("/{collection_id}", response_model=CollectionResponse)
async def update_collection(collection_id: str, body: CollectionUpdate, db: DbSession) -> Collection:
    """Partially update a collection; a new ``spaceId`` moves it."""
    try:
        collection = await collections_mgr.update_collection(db, collection_id, body)
    except ParentNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc)) from None
    if collection is None:
        raise _not_found(collection_id)
    return collection


@router.delete("/{collection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_collection(collection_id: str, db: DbSession) -> None:
    """Delete a collection and its bookmarks."""
    if not await collections_mgr.delete_collection(db, collection_id):
        raise _not_found(collection_id)
