"""Link preview endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Query

from shelfmark.server.deps import PreviewFetcherDep
from shelfmark.server.models.api import LinkPreview

router = APIRouter(tags=["preview"])


@router.get("/bookmark-preview", response_model=LinkPreview)
async def bookmark_preview(fetcher: PreviewFetcherDep, url: str = Query(min_length=1)) -> LinkPreview:
    """Title, description and image for *url*; degrades instead of failing."""
    return await fetcher.fetch(url)
