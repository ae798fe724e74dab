"""Liveness endpoint."""

from __future__ import annotations

import time
from datetime import UTC, datetime

from fastapi import APIRouter

from shelfmark.server.models.api import HealthResponse
from shelfmark.server.settings import get_settings

SERVICE_NAME = "shelfmark"

_STARTED = time.monotonic()

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        service=SERVICE_NAME,
        uptime=round(time.monotonic() - _STARTED, 3),
        environment=get_settings().environment,
    )
