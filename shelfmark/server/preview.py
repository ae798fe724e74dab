"""Best-effort link previews scraped from Open Graph / meta tags.

One GET per call, bounded end to end by ``timeout`` seconds (the request is
cancelled when the bound is hit).  Metadata is looked up in order:

- title: ``og:title`` -> ``twitter:title`` -> ``<title>`` -> hostname
- description: ``og:description`` -> ``twitter:description`` ->
  ``<meta name="description">`` -> ``""``
- image: ``og:image`` -> ``twitter:image``, resolved against the final URL

Blocked responses (403/429), other HTTP errors, network failures, timeouts
and pages without any metadata all degrade to the hostname plus a favicon
image from an external service.  :meth:`PreviewFetcher.fetch` never raises
and never retries.
"""

from __future__ import annotations

import re
from urllib.parse import urljoin, urlparse

import anyio
import httpx
from bs4 import BeautifulSoup
from loguru import logger

from shelfmark.server.models.api import LinkPreview

DEFAULT_TIMEOUT = 5.0
DEFAULT_FAVICON_SERVICE = "https://www.google.com/s2/favicons?domain={host}&sz=128"
MAX_BODY_BYTES = 2 * 1024 * 1024

RESTRICTED_DESCRIPTION = "Preview unavailable: access restricted by site"
UNREACHABLE_DESCRIPTION = "Preview unavailable: site could not be reached"
NO_METADATA_DESCRIPTION = "Preview unavailable: no page metadata found"

_BLOCKED_STATUSES = frozenset({403, 429})
_WHITESPACE = re.compile(r"\s+")


class PreviewFetcher:
    """Fetch :class:`LinkPreview` triples over a shared ``httpx.AsyncClient``.

    The client is owned by the caller (created in the app lifespan) so
    connections are pooled across requests.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        favicon_service: str = DEFAULT_FAVICON_SERVICE,
        user_agent: str | None = None,
    ) -> None:
        self._client = client
        self._timeout = timeout
        self._favicon_service = favicon_service
        self._headers = {"Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8"}
        if user_agent:
            self._headers["User-Agent"] = user_agent

    async def fetch(self, url: str) -> LinkPreview:
        host = _hostname(url)
        if not host:
            logger.debug("Preview skipped for unparsable URL {!r}", url)
            return LinkPreview(title=url, description=UNREACHABLE_DESCRIPTION, image=None)

        try:
            with anyio.fail_after(self._timeout):
                async with self._client.stream("GET", url, headers=self._headers, follow_redirects=True) as response:
                    status_code = response.status_code
                    final_url = str(response.url)
                    body = await _read_capped(response, MAX_BODY_BYTES) if status_code < 400 else b""
        except TimeoutError:
            logger.info("Preview timed out after {}s: {}", self._timeout, url)
            return self._fallback(host, UNREACHABLE_DESCRIPTION)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.info("Preview fetch failed for {}: {}", url, type(exc).__name__)
            return self._fallback(host, UNREACHABLE_DESCRIPTION)

        if status_code in _BLOCKED_STATUSES:
            logger.info("Preview blocked ({}) for {}", status_code, url)
            return self._fallback(host, RESTRICTED_DESCRIPTION)
        if status_code >= 400:
            logger.info("Preview got HTTP {} for {}", status_code, url)
            return self._fallback(host, UNREACHABLE_DESCRIPTION)

        preview = parse_preview(body, final_url)
        if preview is None:
            return self._fallback(host, NO_METADATA_DESCRIPTION)
        if not preview.title:
            preview.title = host
        return preview

    def favicon_url(self, host: str) -> str:
        return self._favicon_service.format(host=host)

    def _fallback(self, host: str, description: str) -> LinkPreview:
        return LinkPreview(title=host, description=description, image=self.favicon_url(host))


def parse_preview(html: bytes | str, page_url: str) -> LinkPreview | None:
    """Extract a preview from *html*; ``None`` if the page has no usable metadata.

    ``title`` is left empty when only a description or image was found; the
    caller substitutes the hostname.
    """
    soup = BeautifulSoup(html, "html.parser")

    title = _meta(soup, "og:title") or _meta(soup, "twitter:title")
    if not title and soup.title and soup.title.string:
        title = _clean(soup.title.string)
    description = (
        _meta(soup, "og:description") or _meta(soup, "twitter:description") or _meta(soup, "description")
    )
    image = _meta(soup, "og:image") or _meta(soup, "og:image:url") or _meta(soup, "twitter:image")

    if not (title or description or image):
        return None
    return LinkPreview(
        title=title or None,
        description=description or "",
        image=urljoin(page_url, image) if image else None,
    )


def _meta(soup: BeautifulSoup, key: str) -> str:
    """Content of ``<meta property=key>`` or ``<meta name=key>``, cleaned."""
    for attr in ("property", "name"):
        tag = soup.find("meta", attrs={attr: key})
        if tag is not None:
            content = tag.get("content")
            if isinstance(content, str) and content.strip():
                return _clean(content)
    return ""


def _clean(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _hostname(url: str) -> str:
    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError:
        return ""
    if parsed.scheme not in ("http", "https"):
        return ""
    return host or ""


async def _read_capped(response: httpx.Response, limit: int) -> bytes:
    """Read at most *limit* bytes of the body, then stop pulling from the socket."""
    chunks: list[bytes] = []
    size = 0
    async for chunk in response.aiter_bytes():
        chunks.append(chunk)
        size += len(chunk)
        if size >= limit:
            break
    return b"".join(chunks)[:limit]
