"""Tests for the sitemap crawl endpoint."""

from unittest.mock import patch

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from page_optimizer.models import ActivityLog, ActivityType, Page
from page_optimizer.services.sitemap import SitemapResolver

SITE = "https://shop.example.com"


def _resolver(status: int = 200) -> SitemapResolver:
    urls = [f"{SITE}/guide-{i}/" for i in range(4)]
    body = "<urlset>" + "".join(f"<url><loc>{u}</loc></url>" for u in urls) + "</urlset>"

    def handler(request: httpx.Request) -> httpx.Response:
        if status != 200:
            return httpx.Response(status)
        return httpx.Response(200, text=body)

    return SitemapResolver(transport=httpx.MockTransport(handler))


class TestCrawlEndpoint:
    @pytest.mark.asyncio
    async def test_crawl_persists_pages(
        self,
        async_client: AsyncClient,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        resolver = _resolver()
        with patch(
            "page_optimizer.services.sitemap_crawl.SitemapResolver",
            return_value=resolver,
        ):
            response = await async_client.post(
                "/api/v1/sitemap/crawl",
                json={"site_url": SITE, "max_pages": 3},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["sitemap_url"] == f"{SITE}/sitemap.xml"
        assert body["total_found"] == 4
        assert body["pages_added"] == 3

        async with async_session_factory() as session:
            pages = (await session.execute(select(Page))).scalars().all()
            assert len(pages) == 3
            assert {p.site_id for p in pages} == {body["site_id"]}

    @pytest.mark.asyncio
    async def test_unreachable_sitemap_returns_502(
        self,
        async_client: AsyncClient,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        resolver = _resolver(status=500)
        with patch(
            "page_optimizer.services.sitemap_crawl.SitemapResolver",
            return_value=resolver,
        ):
            response = await async_client.post(
                "/api/v1/sitemap/crawl", json={"site_url": SITE}
            )

        assert response.status_code == 502
        assert response.json()["detail"] == "Failed to fetch sitemap: 500"

        async with async_session_factory() as session:
            events = (await session.execute(select(ActivityLog))).scalars().all()
            assert [e.type for e in events] == [ActivityType.ERROR.value]

    @pytest.mark.asyncio
    async def test_missing_site_url_returns_422(self, async_client: AsyncClient) -> None:
        response = await async_client.post("/api/v1/sitemap/crawl", json={})

        assert response.status_code == 422
