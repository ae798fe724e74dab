"""Workspace export and import.

Export produces a denormalized snapshot (see ``models/transfer.py``) in which
every collection carries its space's name and every bookmark its
collection's name.  Import replays such a document into a target workspace
with fresh ids, resolving parents by those names:

1. every space entry becomes a new space, remembered by its name;
2. a collection is attached to the new space whose name equals its
   ``spaceName``, or skipped if there is none;
3. a bookmark is attached to the new collection whose name equals its
   ``collectionName``, or skipped.

When names repeat, the first space (or collection) created under that name
wins.  Each entity is written inside its own savepoint, so a malformed entry
or a rejected row is skipped without aborting the batch; the returned counts
only include rows that were actually created.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shelfmark.server.db.tables import Collection, Space, Workspace
from shelfmark.server.errors import ImportFormatError, ParentNotFoundError
from shelfmark.server.managers import storage_errors
from shelfmark.server.managers.bookmarks import create_bookmark, list_bookmarks
from shelfmark.server.managers.collections import create_collection, list_all_collections
from shelfmark.server.managers.spaces import create_space, list_spaces
from shelfmark.server.models.api import (
    BookmarkCreate,
    BookmarkResponse,
    CollectionCreate,
    CollectionResponse,
    SpaceCreate,
    SpaceResponse,
)
from shelfmark.server.models.transfer import (
    UNKNOWN_COLLECTION,
    UNKNOWN_SPACE,
    ExportDocument,
    ExportedBookmark,
    ExportedCollection,
    ImportCounts,
    ImportedBookmark,
    ImportedCollection,
    ImportedSpace,
)

_SECTIONS = ("spaces", "collections", "bookmarks")

EntryT = TypeVar("EntryT", bound=BaseModel)

# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


async def export_workspace(db: AsyncSession, workspace_id: str) -> ExportDocument | None:
    """Snapshot a workspace's tree.  Returns ``None`` if the workspace does not exist."""
    async with storage_errors(db, "export workspace"):
        if await db.get(Workspace, workspace_id) is None:
            return None

    spaces = await list_spaces(db, workspace_id)
    space_names = {space.id: space.name for space in spaces}
    # Collections in space display order, then their own order.
    collections: list[Collection] = []
    all_collections = await list_all_collections(db, workspace_id)
    for space in spaces:
        collections.extend(c for c in all_collections if c.space_id == space.id)
    collection_names = {collection.id: collection.name for collection in collections}

    bookmarks = []
    for collection in collections:
        bookmarks.extend(await list_bookmarks(db, collection_id=collection.id))

    document = ExportDocument(
        spaces=[SpaceResponse.model_validate(space) for space in spaces],
        collections=[
            ExportedCollection(
                **CollectionResponse.model_validate(collection).model_dump(),
                space_name=space_names.get(collection.space_id, UNKNOWN_SPACE),
            )
            for collection in collections
        ],
        bookmarks=[
            ExportedBookmark(
                **BookmarkResponse.model_validate(bookmark).model_dump(),
                collection_name=collection_names.get(bookmark.collection_id, UNKNOWN_COLLECTION),
            )
            for bookmark in bookmarks
        ],
        export_date=datetime.now(UTC),
    )
    logger.info(
        "Workspace exported: {} (spaces={}, collections={}, bookmarks={})",
        workspace_id,
        len(document.spaces),
        len(document.collections),
        len(document.bookmarks),
    )
    return document


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def validate_document(document: Any) -> dict[str, list]:
    """Check the top-level shape of an import document.

    Raises ``ImportFormatError`` unless ``spaces``, ``collections`` and
    ``bookmarks`` are all present as lists.
    """
    if not isinstance(document, dict):
        msg = "Invalid import file format: expected a JSON object"
        raise ImportFormatError(msg)
    missing = [key for key in _SECTIONS if not isinstance(document.get(key), list)]
    if missing:
        msg = f"Invalid import file format: missing or invalid {', '.join(missing)}"
        raise ImportFormatError(msg)
    return {key: document[key] for key in _SECTIONS}


async def import_workspace(db: AsyncSession, workspace_id: str, document: Any) -> ImportCounts:
    """Merge an exported document into *workspace_id* under fresh ids.

    Raises ``ImportFormatError`` for a malformed document and
    ``ParentNotFoundError`` if the target workspace does not exist.  Entries
    whose parent name cannot be resolved, or that fail validation or
    insertion, are skipped.
    """
    sections = validate_document(document)
    counts = ImportCounts()

    async with storage_errors(db, "import data"):
        if await db.get(Workspace, workspace_id) is None:
            raise ParentNotFoundError("Workspace", workspace_id)

        new_spaces: dict[str, Space] = {}
        for index, raw in enumerate(sections["spaces"]):
            entry = _parse_entry(ImportedSpace, raw, "space", index)
            if entry is None:
                continue
            space = await _create_in_savepoint(
                db,
                "space",
                index,
                lambda e=entry: create_space(db, SpaceCreate(workspace_id=workspace_id, **e.model_dump()), commit=False),
            )
            if space is None:
                continue
            new_spaces.setdefault(entry.name, space)
            counts.spaces += 1

        new_collections: dict[str, Collection] = {}
        for index, raw in enumerate(sections["collections"]):
            entry = _parse_entry(ImportedCollection, raw, "collection", index)
            if entry is None:
                continue
            parent = new_spaces.get(entry.space_name)
            if parent is None:
                logger.warning("Import: collection #{} '{}' skipped, no space named '{}'", index, entry.name, entry.space_name)
                continue
            collection = await _create_in_savepoint(
                db,
                "collection",
                index,
                lambda e=entry, p=parent: create_collection(
                    db, CollectionCreate(space_id=p.id, **e.model_dump(exclude={"space_name"})), commit=False
                ),
            )
            if collection is None:
                continue
            new_collections.setdefault(entry.name, collection)
            counts.collections += 1

        for index, raw in enumerate(sections["bookmarks"]):
            entry = _parse_entry(ImportedBookmark, raw, "bookmark", index)
            if entry is None:
                continue
            parent = new_collections.get(entry.collection_name)
            if parent is None:
                logger.warning(
                    "Import: bookmark #{} '{}' skipped, no collection named '{}'",
                    index,
                    entry.title,
                    entry.collection_name,
                )
                continue
            bookmark = await _create_in_savepoint(
                db,
                "bookmark",
                index,
                lambda e=entry, p=parent: create_bookmark(
                    db, BookmarkCreate(collection_id=p.id, **e.model_dump(exclude={"collection_name"})), commit=False
                ),
            )
            if bookmark is not None:
                counts.bookmarks += 1

        await db.commit()

    logger.info(
        "Workspace import into {}: spaces={}, collections={}, bookmarks={}",
        workspace_id,
        counts.spaces,
        counts.collections,
        counts.bookmarks,
    )
    return counts


def _parse_entry(model: type[EntryT], raw: Any, kind: str, index: int) -> EntryT | None:
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Import: {} #{} skipped, invalid entry ({} errors)", kind, index, exc.error_count())
        return None


async def _create_in_savepoint(db: AsyncSession, kind: str, index: int, create: Callable[[], Any]) -> Any:
    """Run one row creation inside a SAVEPOINT; return ``None`` if it was rolled back."""
    try:
        async with db.begin_nested():
            return await create()
    except (SQLAlchemyError, ValidationError, ParentNotFoundError) as exc:
        logger.warning("Import: {} #{} skipped ({})", kind, index, type(exc).__name__)
        return None
