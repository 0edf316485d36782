"""Sitemap crawl: resolve a site's sitemap and store page candidates.

With ``replace_existing`` the site's non-completed pages are deleted first;
completed pages are always kept and their URLs are never re-added. Without
it, URLs already stored for the site are skipped. New rows are inserted in
batches of ``sitemap_insert_batch_size`` with a URL-based quick score.
"""

import time
from dataclasses import dataclass, field
from urllib.parse import urlparse

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from page_optimizer.core.config import get_settings
from page_optimizer.core.exceptions import FetchError
from page_optimizer.core.logging import get_logger
from page_optimizer.models.activity_log import ActivityLog, ActivityType
from page_optimizer.models.page import Page, PageStatus
from page_optimizer.models.site import Site
from page_optimizer.services.scoring import quick_score
from page_optimizer.services.sitemap import SitemapResolver, truncate

logger = get_logger(__name__)


@dataclass
class CrawlResult:
    """Outcome of one sitemap crawl."""

    site_id: str
    sitemap_url: str
    total_found: int = 0
    pages_added: int = 0
    pages_kept: int = 0
    pages_deleted: int = 0
    urls: list[str] = field(default_factory=list)


def normalize_site_url(site_url: str) -> str:
    normalized = site_url.strip().rstrip("/")
    if not normalized.startswith(("http://", "https://")):
        normalized = "https://" + normalized
    return normalized


def build_sitemap_url(site_url: str, sitemap_path: str) -> str:
    """Absolute sitemap URL from a site URL and a path (or absolute URL)."""
    if sitemap_path.startswith(("http://", "https://")):
        return sitemap_path
    path = sitemap_path if sitemap_path.startswith("/") else "/" + sitemap_path
    return normalize_site_url(site_url) + path


def slug_from_url(url: str) -> str:
    """Last path segment of ``url``, or 'home' for the site root."""
    parts = [p for p in urlparse(url).path.split("/") if p]
    return parts[-1] if parts else "home"


def title_from_slug(slug: str) -> str:
    return slug.replace("-", " ").replace("_", " ").title()


async def get_or_create_site(
    session: AsyncSession, site_url: str, site_id: str | None
) -> Site:
    if site_id:
        site = await session.get(Site, site_id)
        if site is not None:
            return site
    result = await session.execute(select(Site).where(Site.site_url == site_url))
    site = result.scalar_one_or_none()
    if site is None:
        site = Site(name=urlparse(site_url).netloc or site_url, site_url=site_url)
        session.add(site)
        await session.flush()
    return site


async def crawl_sitemap(
    session: AsyncSession,
    site_url: str,
    sitemap_path: str = "/sitemap.xml",
    max_pages: int = 0,
    replace_existing: bool = True,
    site_id: str | None = None,
    resolver: SitemapResolver | None = None,
) -> CrawlResult:
    """Discover page candidates for a site and persist them.

    Raises:
        FetchError: The root sitemap could not be fetched. An error activity
            event is recorded before the error propagates.
    """
    start_time = time.monotonic()
    settings = get_settings()
    normalized_url = normalize_site_url(site_url)
    sitemap_url = build_sitemap_url(normalized_url, sitemap_path)
    site = await get_or_create_site(session, normalized_url, site_id)
    site.sitemap_url = sitemap_url

    logger.info(
        "Starting sitemap crawl",
        extra={
            "site_id": site.id,
            "sitemap_url": sitemap_url,
            "max_pages": max_pages,
            "replace_existing": replace_existing,
        },
    )

    resolver = resolver or SitemapResolver()
    try:
        all_urls = await resolver.resolve(sitemap_url)
    except FetchError as e:
        session.add(
            ActivityLog(
                site_id=site.id,
                type=ActivityType.ERROR.value,
                message=f"Failed to fetch sitemap: {e}",
                details={"sitemap_url": sitemap_url},
            )
        )
        await session.flush()
        raise

    result = CrawlResult(
        site_id=site.id, sitemap_url=sitemap_url, total_found=len(all_urls)
    )
    urls = truncate(all_urls, max_pages)

    if replace_existing:
        kept = await session.execute(
            select(func.count(Page.id)).where(
                Page.site_id == site.id,
                Page.status == PageStatus.COMPLETED.value,
            )
        )
        result.pages_kept = int(kept.scalar_one())
        deleted = await session.execute(
            delete(Page).where(
                Page.site_id == site.id,
                Page.status != PageStatus.COMPLETED.value,
            )
        )
        result.pages_deleted = int(deleted.rowcount or 0)

    # After a replace only completed rows remain, so this covers both modes
    existing = await session.execute(select(Page.url).where(Page.site_id == site.id))
    skip = set(existing.scalars().all())

    new_urls = [url for url in urls if url not in skip]
    batch_size = settings.sitemap_insert_batch_size
    for offset in range(0, len(new_urls), batch_size):
        batch = new_urls[offset : offset + batch_size]
        session.add_all(
            [
                Page(
                    site_id=site.id,
                    url=url,
                    slug=slug_from_url(url),
                    title=title_from_slug(slug_from_url(url)),
                    status=PageStatus.PENDING.value,
                    score_before=quick_score(url),
                )
                for url in batch
            ]
        )
        await session.flush()
        result.pages_added += len(batch)

    result.urls = new_urls
    session.add(
        ActivityLog(
            site_id=site.id,
            type=ActivityType.SUCCESS.value,
            message=(
                f"Sitemap crawl found {result.total_found} URLs, "
                f"added {result.pages_added} pages"
            ),
            details={
                "sitemap_url": sitemap_url,
                "total_found": result.total_found,
                "pages_added": result.pages_added,
                "pages_kept": result.pages_kept,
                "pages_deleted": result.pages_deleted,
            },
        )
    )
    await session.flush()

    logger.info(
        "Sitemap crawl finished",
        extra={
            "site_id": site.id,
            "total_found": result.total_found,
            "pages_added": result.pages_added,
            "pages_kept": result.pages_kept,
            "pages_deleted": result.pages_deleted,
            "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
        },
    )
    return result
