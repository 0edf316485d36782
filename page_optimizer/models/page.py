"""Page model for page candidates discovered from a sitemap.

A page row is produced once per crawl and is immutable apart from its
lifecycle fields: ``status``, ``score_after``, ``post_id``/``post_type`` and
``retry_count`` change as optimization jobs run against it.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from page_optimizer.core.database import Base


class PageStatus(str, Enum):
    """Lifecycle of a page candidate."""

    PENDING = "pending"
    OPTIMIZING = "optimizing"
    COMPLETED = "completed"
    FAILED = "failed"
    PUBLISHED = "published"


class Page(Base):
    """A page candidate.

    Attributes:
        id: UUID primary key
        site_id: Owning site (nullable for ad-hoc optimize requests)
        url: Absolute page URL as listed in the sitemap
        slug: Last path segment, or 'home' for the site root
        title: Title derived from the slug until the host title is fetched
        word_count: Word count of the current host content
        categories: Host category names
        tags: Host tag names
        featured_image: Featured image URL
        status: pending, optimizing, completed, failed or published
        score_before: Quick score computed at discovery
        score_after: Scores of the last completed optimization
        post_id: Host id of the post/page
        post_type: 'posts' or 'pages'
        retry_count: Failed optimization attempts
    """

    __tablename__ = "pages"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    site_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("sites.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    url: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    slug: Mapped[str] = mapped_column(String(500), nullable=False)

    title: Mapped[str | None] = mapped_column(Text, nullable=True)

    word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    categories: Mapped[list[Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
    )

    tags: Mapped[list[Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
    )

    featured_image: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=PageStatus.PENDING.value,
        index=True,
    )

    score_before: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    score_after: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    post_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    post_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        return f"<Page(id={self.id!r}, url={self.url!r}, status={self.status!r})>"
