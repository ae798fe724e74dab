"""API request / response schemas for CRUD endpoints.

These thin schemas sit between HTTP and the ORM layer:

- **Create** schemas validate user input and provide defaults.
- **Update** schemas allow partial updates via ``exclude_unset``.
- **Response** schemas serialize ORM rows via ``from_attributes``.

Field names are snake_case in Python and camelCase on the wire
(``order_index`` <-> ``orderIndex``).  Both spellings are accepted on input.
``orderIndex`` is an integer; string-encoded integers such as ``"0"`` are
coerced for compatibility with older clients.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from shelfmark.server.models.enums import ViewMode


class ApiModel(BaseModel):
    """Base for all wire schemas: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RowModel(ApiModel):
    """Base for response schemas built from ORM rows."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _reject_null(value: object) -> object:
    if value is None:
        msg = "may not be null"
        raise ValueError(msg)
    return value


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


class WorkspaceCreate(ApiModel):
    """Get-or-create input; the id doubles as the workspace's magic link."""

    id: str = Field(min_length=1, max_length=200)


class WorkspaceResponse(RowModel):
    id: str
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Space
# ---------------------------------------------------------------------------


class SpaceCreate(ApiModel):
    workspace_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    icon: str = "folder"
    order_index: int = 0


class SpaceUpdate(ApiModel):
    """Partial space update.  Moving a space between workspaces is not supported."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    icon: str | None = None
    order_index: int | None = None

    check_not_null = field_validator("name", "icon", "order_index")(_reject_null)


class SpaceResponse(RowModel):
    id: str
    workspace_id: str
    name: str
    description: str | None = None
    icon: str
    order_index: int
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


class CollectionCreate(ApiModel):
    space_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    icon: str = "folder"
    order_index: int = 0
    view_mode: ViewMode = ViewMode.GRID


class CollectionUpdate(ApiModel):
    """Partial collection update.  ``spaceId`` moves the collection."""

    space_id: str | None = Field(default=None, min_length=1)
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    icon: str | None = None
    order_index: int | None = None
    view_mode: ViewMode | None = None

    check_not_null = field_validator("space_id", "name", "icon", "order_index", "view_mode")(_reject_null)


class CollectionResponse(RowModel):
    id: str
    space_id: str
    name: str
    description: str | None = None
    icon: str
    order_index: int
    view_mode: str
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Bookmark
# ---------------------------------------------------------------------------


class LinkPreview(ApiModel):
    """Cached title/description/image triple describing a bookmark's target."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    title: str | None = None
    description: str | None = None
    image: str | None = None


def _tags_or_empty(value: object) -> object:
    return [] if value is None else value


class BookmarkCreate(ApiModel):
    collection_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    url: str = Field(min_length=1)
    description: str | None = None
    favicon: str | None = None
    preview: LinkPreview | None = None
    tags: list[str] = Field(default_factory=list)
    is_pinned: bool = False
    order_index: int | None = Field(default=None, description="Appended to the collection if omitted.")

    default_tags = field_validator("tags", mode="before")(_tags_or_empty)


class BookmarkUpdate(ApiModel):
    """Partial bookmark update.  ``collectionId`` moves the bookmark."""

    collection_id: str | None = Field(default=None, min_length=1)
    title: str | None = Field(default=None, min_length=1)
    url: str | None = Field(default=None, min_length=1)
    description: str | None = None
    favicon: str | None = None
    preview: LinkPreview | None = None
    tags: list[str] | None = None
    is_pinned: bool | None = None
    order_index: int | None = None

    default_tags = field_validator("tags", mode="before")(_tags_or_empty)
    check_not_null = field_validator("collection_id", "title", "url", "is_pinned", "order_index")(_reject_null)


class BookmarkResponse(RowModel):
    id: str
    collection_id: str
    title: str
    url: str
    description: str | None = None
    favicon: str | None = None
    preview: LinkPreview | None = None
    tags: list[str] = Field(default_factory=list)
    is_pinned: bool
    order_index: int
    created_at: datetime
    updated_at: datetime

    default_tags = field_validator("tags", mode="before")(_tags_or_empty)


class ReorderRequest(ApiModel):
    """New manual order for a collection; position ``i`` receives ``orderIndex = i``."""

    collection_id: str = Field(min_length=1)
    bookmark_ids: list[str]


# ---------------------------------------------------------------------------
# Share
# ---------------------------------------------------------------------------


def _assume_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class ShareCreate(ApiModel):
    """Input for a new share.  The view key is generated server-side.

    A naive ``expiresAt`` is taken to be UTC.
    """

    workspace_id: str = Field(min_length=1)
    name: str | None = None
    description: str | None = None
    expires_at: datetime | None = None

    expires_utc = field_validator("expires_at")(_assume_utc)


class ShareUpdate(ApiModel):
    name: str | None = None
    description: str | None = None
    expires_at: datetime | None = None

    expires_utc = field_validator("expires_at")(_assume_utc)


class ShareResponse(RowModel):
    id: str
    workspace_id: str
    view_key: str
    name: str | None = None
    description: str | None = None
    created_at: datetime
    expires_at: datetime | None = None


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(ApiModel):
    status: str
    timestamp: datetime
    service: str
    uptime: float
    environment: str
