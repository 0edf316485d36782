"""Sitemap resolution: turn a sitemap URL into an ordered list of page URLs.

Follows ``<sitemapindex>`` files recursively up to ``sitemap_max_depth``
levels below the root. Every sitemap URL is fetched at most once per
resolution, gzip bodies are decompressed, and sitemap-looking URLs are kept
out of the page list.

Documents are parsed with ElementTree and matched on local tag names, so
namespaced and bare sitemaps read the same and child order inside
``<url>``/``<sitemap>`` does not matter.

A failure fetching or parsing the root sitemap propagates as FetchError. A
failure in a nested sitemap is logged and that branch contributes nothing.
"""

import gzip
import time
import xml.etree.ElementTree as ET

import httpx

from page_optimizer.core.config import get_settings
from page_optimizer.core.exceptions import FetchError
from page_optimizer.core.logging import get_logger, pipeline_logger

logger = get_logger(__name__)

_GZIP_MAGIC = b"\x1f\x8b"


def is_sitemap_url(url: str) -> bool:
    """True for URLs that point at sitemap files rather than pages."""
    lowered = url.lower()
    return (
        "sitemap" in lowered
        or lowered.endswith(".xml")
        or lowered.endswith(".xml.gz")
    )


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1].lower()


def parse_sitemap(xml_text: str) -> ET.Element:
    """Root element of a sitemap document.

    Raises:
        FetchError: The body is not well-formed XML.
    """
    try:
        return ET.fromstring(xml_text.strip())
    except ET.ParseError as e:
        raise FetchError(f"Invalid sitemap XML: {e}") from e


def _entry_locs(root: ET.Element, entry_tag: str) -> list[str]:
    locs: list[str] = []
    for entry in root.iter():
        if _local(entry.tag) != entry_tag:
            continue
        loc = next((child for child in entry if _local(child.tag) == "loc"), None)
        if loc is not None and loc.text and loc.text.strip():
            locs.append(loc.text.strip())
    return locs


def _is_index(root: ET.Element) -> bool:
    return _local(root.tag) == "sitemapindex" or any(
        _local(el.tag) == "sitemap" for el in root.iter()
    )


def _page_locs(root: ET.Element) -> list[str]:
    locs = _entry_locs(root, "url")
    if not locs:
        locs = [
            el.text.strip()
            for el in root.iter()
            if _local(el.tag) == "loc" and el.text and el.text.strip()
        ]
    return [loc for loc in locs if not is_sitemap_url(loc)]


def is_sitemap_index(xml_text: str) -> bool:
    return _is_index(parse_sitemap(xml_text))


def extract_sitemap_locs(xml_text: str) -> list[str]:
    """Child sitemap URLs listed by a sitemap index."""
    return _entry_locs(parse_sitemap(xml_text), "sitemap")


def extract_page_locs(xml_text: str) -> list[str]:
    """Page URLs of a urlset, falling back to bare ``<loc>`` entries."""
    return _page_locs(parse_sitemap(xml_text))


def truncate(urls: list[str], limit: int) -> list[str]:
    """First ``limit`` URLs; all of them when ``limit`` is 0."""
    if limit <= 0:
        return list(urls)
    return urls[:limit]


class SitemapResolver:
    """Resolves a (possibly nested) sitemap into page URLs."""

    def __init__(
        self,
        max_depth: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._max_depth = settings.sitemap_max_depth if max_depth is None else max_depth
        self._timeout = settings.sitemap_timeout
        self._user_agent = settings.sitemap_user_agent
        self._transport = transport

    async def resolve(self, url: str) -> list[str]:
        """Ordered, deduplicated page URLs reachable from ``url``.

        Raises:
            FetchError: The root sitemap could not be fetched or parsed.
        """
        start_time = time.monotonic()
        visited: set[str] = set()
        async with httpx.AsyncClient(
            headers={
                "Accept": "application/xml, text/xml, */*",
                "User-Agent": self._user_agent,
            },
            timeout=self._timeout,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            found = await self._resolve(client, url, 0, visited)

        urls = list(dict.fromkeys(found))
        pipeline_logger.sitemap_resolved(url, len(visited), len(urls))
        logger.debug(
            "Sitemap resolution finished",
            extra={
                "url": url,
                "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return urls

    async def _resolve(
        self,
        client: httpx.AsyncClient,
        url: str,
        depth: int,
        visited: set[str],
    ) -> list[str]:
        if depth > self._max_depth or url in visited:
            return []
        visited.add(url)

        root = parse_sitemap(await self._fetch(client, url))

        if not _is_index(root):
            return _page_locs(root)

        urls: list[str] = []
        for child in _entry_locs(root, "sitemap"):
            try:
                urls.extend(await self._resolve(client, child, depth + 1, visited))
            except FetchError as e:
                pipeline_logger.sitemap_branch_failed(child, depth + 1, e)
        return urls

    async def _fetch(self, client: httpx.AsyncClient, url: str) -> str:
        try:
            response = await client.get(url)
        except httpx.RequestError as e:
            raise FetchError(f"Failed to fetch sitemap {url}: {e}", url=url) from e

        if response.status_code >= 400:
            raise FetchError(
                f"Failed to fetch sitemap: {response.status_code}",
                url=url,
                status_code=response.status_code,
            )

        body = response.content
        if url.lower().endswith(".gz") and body.startswith(_GZIP_MAGIC):
            try:
                body = gzip.decompress(body)
            except OSError as e:
                raise FetchError(f"Invalid gzip sitemap {url}: {e}", url=url) from e
        return body.decode("utf-8-sig", errors="replace")
