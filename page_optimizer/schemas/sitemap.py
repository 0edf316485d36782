"""Pydantic schemas for sitemap crawl endpoints."""

from pydantic import BaseModel, Field


class CrawlRequest(BaseModel):
    """Request to discover page candidates from a site's sitemap."""

    site_url: str = Field(..., min_length=1, examples=["https://example.com"])
    sitemap_path: str = Field(
        default="/sitemap.xml",
        description="Path relative to site_url, or an absolute sitemap URL",
    )
    max_pages: int = Field(default=0, ge=0, description="0 keeps every discovered page")
    replace_existing: bool = Field(
        default=True,
        description="Delete the site's non-completed pages before inserting",
    )


class CrawlResponse(BaseModel):
    site_id: str
    sitemap_url: str
    total_found: int
    pages_added: int
    pages_kept: int
    pages_deleted: int
