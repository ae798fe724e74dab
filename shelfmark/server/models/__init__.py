"""Wire schemas for the bookmark server."""

from shelfmark.server.models.api import (
    BookmarkCreate,
    BookmarkResponse,
    BookmarkUpdate,
    CollectionCreate,
    CollectionResponse,
    CollectionUpdate,
    HealthResponse,
    LinkPreview,
    ReorderRequest,
    ShareCreate,
    ShareResponse,
    ShareUpdate,
    SpaceCreate,
    SpaceResponse,
    SpaceUpdate,
    WorkspaceCreate,
    WorkspaceResponse,
)
from shelfmark.server.models.enums import ViewMode
from shelfmark.server.models.transfer import (
    ExportDocument,
    ExportedBookmark,
    ExportedCollection,
    ImportCounts,
    ImportedBookmark,
    ImportedCollection,
    ImportedSpace,
    ImportRequest,
    ImportResponse,
)

__all__ = [
    # Bookmark
    "BookmarkCreate",
    "BookmarkResponse",
    "BookmarkUpdate",
    # Collection
    "CollectionCreate",
    "CollectionResponse",
    "CollectionUpdate",
    # Transfer
    "ExportDocument",
    "ExportedBookmark",
    "ExportedCollection",
    "HealthResponse",
    "ImportCounts",
    "ImportRequest",
    "ImportResponse",
    "ImportedBookmark",
    "ImportedCollection",
    "ImportedSpace",
    "LinkPreview",
    "ReorderRequest",
    # Share
    "ShareCreate",
    "ShareResponse",
    "ShareUpdate",
    # Space
    "SpaceCreate",
    "SpaceResponse",
    "SpaceUpdate",
    # Enums
    "ViewMode",
    # Workspace
    "WorkspaceCreate",
    "WorkspaceResponse",
]
