"""Request-scoped log context."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from httpx import AsyncClient
from loguru import logger

from shelfmark.server.log import REQUEST_ID_HEADER, request_context


@pytest.fixture
def records() -> Iterator[list[dict]]:
    captured: list[dict] = []
    sink_id = logger.add(lambda message: captured.append(message.record), level="DEBUG", format="{message}")
    yield captured
    logger.remove(sink_id)


def test_request_context_binds_id(records: list[dict]) -> None:
    with request_context("abc123") as request_id:
        logger.info("inside")
    logger.info("outside")

    assert request_id == "abc123"
    inside, outside = records
    assert inside["extra"]["request_id"] == "abc123"
    assert "request_id" not in outside["extra"] or outside["extra"]["request_id"] != "abc123"


def test_request_context_generates_id() -> None:
    with request_context() as first, request_context() as second:
        pass
    assert first and second and first != second


async def test_api_request_line_carries_inbound_id(client: AsyncClient, records: list[dict]) -> None:
    resp = await client.get("/api/health", headers={REQUEST_ID_HEADER: "req-42"})

    assert resp.headers[REQUEST_ID_HEADER] == "req-42"
    (line,) = [r for r in records if r["message"].startswith("GET /api/health 200")]
    assert line["extra"]["request_id"] == "req-42"


async def test_api_response_gets_fresh_id(client: AsyncClient) -> None:
    first = await client.get("/api/health")
    second = await client.get("/api/workspaces/nope")

    assert second.status_code == 404
    assert first.headers[REQUEST_ID_HEADER] != second.headers[REQUEST_ID_HEADER]
