"""Bookmark CRUD, queries and manual reordering.

Static paths (``/search``, ``/pinned``, ``/recent``, ``/reorder``) are
registered before ``/{bookmark_id}`` so they are not captured as ids.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from shelfmark.server.db.tables import Bookmark
from shelfmark.server.deps import DbSession
from shelfmark.server.errors import InvalidMembershipError, ParentNotFoundError, ReorderConflictError
from shelfmark.server.managers import bookmarks as bookmarks_mgr
from shelfmark.server.models.api import BookmarkCreate, BookmarkResponse, BookmarkUpdate, ReorderRequest

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


def _not_found(bookmark_id: str) -> HTTPException:
    return HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Bookmark '{bookmark_id}' not found.")


@router.get("", response_model=list[BookmarkResponse])
async def list_bookmarks(
    db: DbSession,
    collection_id: str | None = Query(None, alias="collectionId"),
    space_id: str | None = Query(None, alias="spaceId"),
) -> list[Bookmark]:
    """List bookmarks in manual order, filtered by collection, else by space."""
    return await bookmarks_mgr.list_bookmarks(db, collection_id=collection_id or None, space_id=space_id or None)


@router.post("", response_model=BookmarkResponse, status_code=status.HTTP_201_CREATED)
async def create_bookmark(body: BookmarkCreate, db: DbSession) -> Bookmark:
    try:
        return await bookmarks_mgr.create_bookmark(db, body)
    except ParentNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc)) from None


@router.get("/search", response_model=list[BookmarkResponse])
async def search_bookmarks(db: DbSession, q: str = Query("", description="Whitespace-separated search terms.")) -> list[Bookmark]:
    try:
        return await bookmarks_mgr.search_bookmarks(db, q)
    except ValueError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from None


@router.get("/pinned", response_model=list[BookmarkResponse])
async def list_pinned(db: DbSession) -> list[Bookmark]:
    return await bookmarks_mgr.list_pinned(db)


@router.get("/recent", response_model=list[BookmarkResponse])
async def list_recent(
    db: DbSession,
    limit: int = Query(bookmarks_mgr.RECENT_DEFAULT_LIMIT, ge=1, le=100),
) -> list[Bookmark]:
    """Most recently updated bookmarks across all collections."""
    return await bookmarks_mgr.list_recent(db, limit)


@router.post("/reorder", response_model=list[BookmarkResponse])
async def reorder_bookmarks(body: ReorderRequest, db: DbSession) -> list[Bookmark]:
    """Rewrite a collection's manual order; returns its bookmarks in the new order."""
    try:
        bookmarks = await bookmarks_mgr.reorder_bookmarks(db, body.collection_id, body.bookmark_ids)
    except InvalidMembershipError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from None
    except ReorderConflictError as exc:
        raise HTTPException(status.HTTP_409_CONFLICT, detail=str(exc)) from None
    if bookmarks is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Collection '{body.collection_id}' not found.")
    return bookmarks


@router.get("/{bookmark_id}", response_model=BookmarkResponse)
async def get_bookmark(bookmark_id: str, db: DbSession) -> Bookmark:
    bookmark = await bookmarks_mgr.get_bookmark(db, bookmark_id)
    if bookmark is None:
        raise _not_found(bookmark_id)
    return bookmark


@router.put("/{bookmark_id}", response_model=BookmarkResponse)
async def update_bookmark(bookmark_id: str, body: BookmarkUpdate, db: DbSession) -> Bookmark:
    """Partially update a bookmark; a new ``collectionId`` moves it."""
    try:
        bookmark = await bookmarks_mgr.update_bookmark(db, bookmark_id, body)
    except ParentNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=str(exc)) from None
    if bookmark is None:
        raise _not_found(bookmark_id)
    return bookmark


@router.delete("/{bookmark_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bookmark(bookmark_id: str, db: DbSession) -> None:
    if not await bookmarks_mgr.delete_bookmark(db, bookmark_id):
        raise _not_found(bookmark_id)
