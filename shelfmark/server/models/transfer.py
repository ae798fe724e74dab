"""Import/export document schemas.

The export document is a denormalized snapshot of one workspace::

    {
      "spaces": [...],
      "collections": [{..., "spaceName": "Work"}],
      "bookmarks": [{..., "collectionName": "Docs"}],
      "exportDate": "2025-01-01T00:00:00+00:00",
      "version": "1.0"
    }

Parentage is carried by *name* because import never reuses ids.  The
``Imported*`` schemas read entries back leniently: unknown keys (ids,
timestamps, ...) are ignored and both camelCase and snake_case are accepted,
so documents written by older clients import unchanged.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from shelfmark.server.models.api import (
    ApiModel,
    BookmarkResponse,
    CollectionResponse,
    LinkPreview,
    SpaceResponse,
)
from shelfmark.server.models.enums import ViewMode

EXPORT_VERSION = "1.0"
UNKNOWN_SPACE = "Unknown Space"
UNKNOWN_COLLECTION = "Unknown Collection"

# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


class ExportedCollection(CollectionResponse):
    space_name: str


class ExportedBookmark(BookmarkResponse):
    collection_name: str


class ExportDocument(ApiModel):
    spaces: list[SpaceResponse]
    collections: list[ExportedCollection]
    bookmarks: list[ExportedBookmark]
    export_date: datetime
    version: str = EXPORT_VERSION


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


class _ImportedEntry(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ImportedSpace(_ImportedEntry):
    name: str = Field(min_length=1)
    description: str | None = None
    icon: str = "folder"
    order_index: int = 0


class ImportedCollection(_ImportedEntry):
    space_name: str
    name: str = Field(min_length=1)
    description: str | None = None
    icon: str = "folder"
    order_index: int = 0
    view_mode: ViewMode = ViewMode.GRID


class ImportedBookmark(_ImportedEntry):
    collection_name: str
    title: str = Field(min_length=1)
    url: str = Field(min_length=1)
    description: str | None = None
    favicon: str | None = None
    preview: LinkPreview | None = None
    tags: list[str] = Field(default_factory=list)
    is_pinned: bool = False
    order_index: int | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def none_to_empty(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("is_pinned", mode="before")
    @classmethod
    def none_to_false(cls, value: object) -> object:
        return False if value is None else value


class ImportCounts(ApiModel):
    spaces: int = 0
    collections: int = 0
    bookmarks: int = 0


class ImportRequest(ApiModel):
    workspace_id: str = Field(min_length=1)
    import_data: dict


class ImportResponse(ApiModel):
    message: str
    imported: ImportCounts
