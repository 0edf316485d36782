"""Sitemap crawl API router."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from page_optimizer.core.database import get_session
from page_optimizer.core.exceptions import FetchError
from page_optimizer.core.logging import get_logger
from page_optimizer.schemas.sitemap import CrawlRequest, CrawlResponse
from page_optimizer.services.sitemap_crawl import crawl_sitemap

logger = get_logger(__name__)

router = APIRouter(prefix="/sitemap", tags=["Sitemap"])


@router.post("/crawl", response_model=CrawlResponse)
async def crawl(
    data: CrawlRequest,
    db: AsyncSession = Depends(get_session),
) -> CrawlResponse:
    """Discover page candidates from a site's sitemap.

    Returns 502 when the root sitemap cannot be fetched.
    """
    try:
        result = await crawl_sitemap(
            db,
            site_url=data.site_url,
            sitemap_path=data.sitemap_path,
            max_pages=data.max_pages,
            replace_existing=data.replace_existing,
        )
    except FetchError as e:
        # Keep the error activity event
        await db.commit()
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message) from e

    return CrawlResponse(
        site_id=result.site_id,
        sitemap_url=result.sitemap_url,
        total_found=result.total_found,
        pages_added=result.pages_added,
        pages_kept=result.pages_kept,
        pages_deleted=result.pages_deleted,
    )
