"""Site model for a connected content host.

Application passwords are never stored; they are supplied with each
request that needs to talk to the host.
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import DateTime, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from page_optimizer.core.database import Base


class Site(Base):
    """A WordPress site whose sitemap feeds page candidates.

    Attributes:
        id: UUID primary key
        name: Display name
        site_url: Base URL of the site (no trailing slash)
        username: WordPress user that owns the application password
        sitemap_url: Last sitemap URL crawled for this site
        created_at: Timestamp when record was created
        updated_at: Timestamp when record was last updated
    """

    __tablename__ = "sites"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    site_url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        unique=True,
    )

    username: Mapped[str | None] = mapped_column(String(255), nullable=True)

    sitemap_url: Mapped[str | None] = mapped_column(Text, nullable=True)

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
        return f"<Site(id={self.id!r}, site_url={self.site_url!r})>"
