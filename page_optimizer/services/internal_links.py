"""InternalLinkCatalog: other known pages the generator may link to.

A lookup failure never fails a job; it is logged and yields no links.
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from page_optimizer.core.config import get_settings
from page_optimizer.core.logging import get_logger
from page_optimizer.models.page import Page

logger = get_logger(__name__)


@dataclass(frozen=True)
class InternalLink:
    url: str
    slug: str
    title: str


class InternalLinkCatalog:
    """Reads link candidates from stored page rows."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list(
        self,
        exclude_page_id: str | None,
        limit: int | None = None,
        site_id: str | None = None,
    ) -> list[InternalLink]:
        """Pages other than ``exclude_page_id``, ordered by title."""
        limit = get_settings().internal_link_limit if limit is None else limit
        if limit <= 0:
            return []

        stmt = select(Page).order_by(Page.title, Page.url).limit(limit)
        if exclude_page_id:
            stmt = stmt.where(Page.id != exclude_page_id)
        if site_id:
            stmt = stmt.where(Page.site_id == site_id)

        try:
            result = await self.session.execute(stmt)
            pages = result.scalars().all()
        except SQLAlchemyError as e:
            logger.warning(
                "Internal link lookup failed, continuing without links",
                extra={
                    "exclude_page_id": exclude_page_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            return []

        return [
            InternalLink(url=page.url, slug=page.slug, title=page.title or page.slug)
            for page in pages
        ]
