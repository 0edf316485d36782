"""ActivityLog model: operator-facing event feed for crawls, jobs and publishes."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import DateTime, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from page_optimizer.core.database import Base


class ActivityType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ActivityLog(Base):
    """One activity event.

    Attributes:
        id: UUID primary key
        site_id: Related site, if any
        page_id: Related page, if any
        job_id: Related job, if any
        type: info, success, warning or error
        message: Short human-readable message
        details: Structured context
        created_at: When the event was recorded
    """

    __tablename__ = "activity_log"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    site_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), nullable=True, index=True
    )

    page_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), nullable=True, index=True
    )

    job_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False), nullable=True, index=True
    )

    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ActivityType.INFO.value
    )

    message: Mapped[str] = mapped_column(Text, nullable=False)

    details: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    def __repr__(self) -> str:
        return f"<ActivityLog(id={self.id!r}, type={self.type!r})>"
