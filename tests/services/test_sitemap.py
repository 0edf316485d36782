"""Tests for SitemapResolver.

Covers:
- flat urlsets and nested sitemap indexes
- depth limit and the visited set
- gzip bodies
- nested branch failures vs root failures
- truncation
- <loc> read in any child position, CDATA, malformed XML
"""

import gzip

import httpx
import pytest

from page_optimizer.core.exceptions import FetchError
from page_optimizer.services.sitemap import (
    SitemapResolver,
    extract_page_locs,
    extract_sitemap_locs,
    is_sitemap_index,
    is_sitemap_url,
    truncate,
)

ROOT = "https://shop.example.com/sitemap.xml"


def urlset(*urls: str) -> str:
    entries = "".join(f"<url><loc>{u}</loc></url>" for u in urls)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</urlset>'
    )


def sitemapindex(*urls: str) -> str:
    entries = "".join(f"<sitemap><loc>{u}</loc></sitemap>" for u in urls)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</sitemapindex>'
    )


def resolver_for(pages: dict[str, str | bytes | int], max_depth: int = 3):
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        requested.append(url)
        body = pages.get(url)
        if body is None:
            return httpx.Response(404)
        if isinstance(body, int):
            return httpx.Response(body)
        return httpx.Response(200, content=body)

    resolver = SitemapResolver(max_depth=max_depth, transport=httpx.MockTransport(handler))
    return resolver, requested


class TestSitemapHelpers:
    def test_is_sitemap_url(self) -> None:
        assert is_sitemap_url("https://x.com/post-sitemap.xml") is True
        assert is_sitemap_url("https://x.com/feed.xml.gz") is True
        assert is_sitemap_url("https://x.com/blog/boots/") is False

    def test_extract_page_locs_unescapes_and_filters(self) -> None:
        xml = urlset(
            "https://x.com/a?x=1&amp;y=2",
            "  https://x.com/b  ",
            "https://x.com/page-sitemap.xml",
        )

        assert extract_page_locs(xml) == ["https://x.com/a?x=1&y=2", "https://x.com/b"]

    def test_extract_page_locs_falls_back_to_bare_loc(self) -> None:
        xml = "<urlset><loc>https://x.com/a</loc></urlset>"

        assert extract_page_locs(xml) == ["https://x.com/a"]

    def test_loc_read_regardless_of_child_order(self) -> None:
        xml = (
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
            "<url><loc>https://a.com/one</loc></url>"
            "<url><lastmod>2024-01-01</lastmod><loc>https://a.com/two</loc></url>"
            "<url><loc><![CDATA[https://a.com/three]]></loc><priority>0.5</priority></url>"
            "</urlset>"
        )

        assert extract_page_locs(xml) == [
            "https://a.com/one",
            "https://a.com/two",
            "https://a.com/three",
        ]

    def test_index_entries_with_lastmod_first(self) -> None:
        xml = (
            "<sitemapindex>"
            "<sitemap><lastmod>2024-01-01</lastmod>"
            "<loc>https://a.com/post-sitemap.xml</loc></sitemap>"
            "</sitemapindex>"
        )

        assert is_sitemap_index(xml) is True
        assert extract_sitemap_locs(xml) == ["https://a.com/post-sitemap.xml"]

    def test_malformed_xml_is_fetch_error(self) -> None:
        with pytest.raises(FetchError, match="Invalid sitemap XML"):
            extract_page_locs("<urlset><url><loc>https://a.com</url>")

    def test_truncate(self) -> None:
        urls = ["a", "b", "c"]

        assert truncate(urls, 0) == urls
        assert truncate(urls, 2) == ["a", "b"]
        assert truncate(urls, 10) == urls


class TestSitemapResolver:
    @pytest.mark.asyncio
    async def test_flat_urlset(self) -> None:
        resolver, _ = resolver_for(
            {ROOT: urlset("https://shop.example.com/a", "https://shop.example.com/b")}
        )

        urls = await resolver.resolve(ROOT)

        assert urls == ["https://shop.example.com/a", "https://shop.example.com/b"]

    @pytest.mark.asyncio
    async def test_nested_index_in_order_without_duplicates(self) -> None:
        posts = "https://shop.example.com/post-sitemap.xml"
        pages = "https://shop.example.com/page-sitemap.xml"
        resolver, _ = resolver_for(
            {
                ROOT: sitemapindex(posts, pages),
                posts: urlset("https://shop.example.com/a", "https://shop.example.com/b"),
                pages: urlset("https://shop.example.com/b", "https://shop.example.com/c"),
            }
        )

        urls = await resolver.resolve(ROOT)

        assert urls == [
            "https://shop.example.com/a",
            "https://shop.example.com/b",
            "https://shop.example.com/c",
        ]

    @pytest.mark.asyncio
    async def test_each_sitemap_fetched_once(self) -> None:
        child = "https://shop.example.com/child-sitemap.xml"
        resolver, requested = resolver_for(
            {
                ROOT: sitemapindex(child, child, ROOT),
                child: urlset("https://shop.example.com/a"),
            }
        )

        urls = await resolver.resolve(ROOT)

        assert urls == ["https://shop.example.com/a"]
        assert requested == [ROOT, child]

    @pytest.mark.asyncio
    async def test_depth_limit(self) -> None:
        level1 = "https://shop.example.com/l1-sitemap.xml"
        level2 = "https://shop.example.com/l2-sitemap.xml"
        resolver, requested = resolver_for(
            {
                ROOT: sitemapindex(level1),
                level1: sitemapindex(level2),
                level2: urlset("https://shop.example.com/deep"),
            },
            max_depth=1,
        )

        urls = await resolver.resolve(ROOT)

        assert urls == []
        assert level2 not in requested

    @pytest.mark.asyncio
    async def test_gzip_body(self) -> None:
        gz_url = "https://shop.example.com/sitemap.xml.gz"
        resolver, _ = resolver_for(
            {gz_url: gzip.compress(urlset("https://shop.example.com/a").encode())}
        )

        assert await resolver.resolve(gz_url) == ["https://shop.example.com/a"]

    @pytest.mark.asyncio
    async def test_nested_failure_skips_branch(self) -> None:
        broken = "https://shop.example.com/broken-sitemap.xml"
        good = "https://shop.example.com/good-sitemap.xml"
        resolver, _ = resolver_for(
            {
                ROOT: sitemapindex(broken, good),
                broken: 500,
                good: urlset("https://shop.example.com/a"),
            }
        )

        assert await resolver.resolve(ROOT) == ["https://shop.example.com/a"]

    @pytest.mark.asyncio
    async def test_root_failure_raises(self) -> None:
        resolver, _ = resolver_for({ROOT: 503})

        with pytest.raises(FetchError) as exc_info:
            await resolver.resolve(ROOT)

        assert exc_info.value.status_code == 503
        assert "503" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_index_with_lastmod_before_loc(self) -> None:
        posts = "https://shop.example.com/post-sitemap.xml"
        index = (
            '<?xml version="1.0" encoding="UTF-8"?>'
            '<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
            f"<sitemap><lastmod>2024-05-01T00:00:00+00:00</lastmod><loc>{posts}</loc></sitemap>"
            "</sitemapindex>"
        )
        resolver, _ = resolver_for({ROOT: index, posts: urlset("https://shop.example.com/a")})

        assert await resolver.resolve(ROOT) == ["https://shop.example.com/a"]

    @pytest.mark.asyncio
    async def test_malformed_nested_sitemap_skips_branch(self) -> None:
        broken = "https://shop.example.com/broken-sitemap.xml"
        good = "https://shop.example.com/good-sitemap.xml"
        resolver, _ = resolver_for(
            {
                ROOT: sitemapindex(broken, good),
                broken: "<html><body>Maintenance</body>",
                good: urlset("https://shop.example.com/a"),
            }
        )

        assert await resolver.resolve(ROOT) == ["https://shop.example.com/a"]
