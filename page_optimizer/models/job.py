"""Job model for one run of the optimization pipeline.

A job row is created pending when the optimize request arrives and is then
written only by the orchestrator. Once ``status`` is completed or failed the
row is final: exactly one of ``result`` and ``error_message`` is set, and
``progress`` is 100 only for completed jobs.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from page_optimizer.core.database import Base


class JobStatus(str, Enum):
    """Job lifecycle states."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class Job(Base):
    """Optimization job.

    Attributes:
        id: UUID primary key
        page_id: Page candidate being optimized (optional)
        status: pending, running, completed or failed
        progress: 0-100, never decreases
        current_step: Label of the last checkpoint
        result: ContentBundle JSON once completed
        error_message: Failure message once failed
        tokens_used: Tokens reported by the generative provider
        created_at: When the request created the job
        started_at: When the background task picked it up
        completed_at: When it reached a terminal state
    """

    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    page_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("pages.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=JobStatus.PENDING.value,
        index=True,
    )

    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    current_step: Mapped[str | None] = mapped_column(String(100), nullable=True)

    result: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_terminal(self) -> bool:
        return JobStatus(self.status).is_terminal

    def __repr__(self) -> str:
        return (
            f"<Job(id={self.id!r}, status={self.status!r}, "
            f"progress={self.progress!r})>"
        )
