"""JobRepository: the only writer of job rows.

Handles job lifecycle writes for the orchestrator. Terminal jobs are final:
every mutation on a completed or failed job is refused with a warning and
leaves the row untouched. Checkpoints store ``max(old, new)`` so progress
never decreases.
"""

import time
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from page_optimizer.core.logging import db_logger, get_logger
from page_optimizer.models.job import Job, JobStatus

logger = get_logger(__name__)


class JobRepository:
    """Repository for Job reads and lifecycle transitions."""

    TABLE_NAME = "jobs"
    SLOW_OPERATION_THRESHOLD_MS = 1000

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, page_id: str | None = None) -> Job:
        """Create a pending job."""
        start_time = time.monotonic()
        try:
            job = Job(
                page_id=page_id,
                status=JobStatus.PENDING.value,
                progress=0,
                current_step="queued",
            )
            self.session.add(job)
            await self.session.flush()
            await self.session.refresh(job)
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context=f"Creating job for page_id={page_id}"
            )
            raise

        duration_ms = (time.monotonic() - start_time) * 1000
        if duration_ms > self.SLOW_OPERATION_THRESHOLD_MS:
            db_logger.slow_query(
                query="INSERT INTO jobs", duration_ms=duration_ms, table=self.TABLE_NAME
            )
        logger.info("Job created", extra={"job_id": job.id, "page_id": page_id})
        return job

    async def get(self, job_id: str) -> Job | None:
        result = await self.session.execute(select(Job).where(Job.id == job_id))
        return result.scalar_one_or_none()

    async def _get_mutable(self, job_id: str, action: str) -> Job | None:
        job = await self.get(job_id)
        if job is None:
            logger.warning(
                "Job not found", extra={"job_id": job_id, "action": action}
            )
            return None
        if job.is_terminal:
            logger.warning(
                "Refusing to modify terminal job",
                extra={"job_id": job_id, "status": job.status, "action": action},
            )
            return None
        return job

    async def mark_running(self, job_id: str) -> Job | None:
        job = await self._get_mutable(job_id, "mark_running")
        if job is None:
            return None
        job.status = JobStatus.RUNNING.value
        job.started_at = datetime.now(UTC)
        await self.session.flush()
        logger.info(
            "Job state transition",
            extra={"job_id": job_id, "from_status": "pending", "to_status": "running"},
        )
        return job

    async def checkpoint(self, job_id: str, step: str, progress: int) -> Job | None:
        """Record a step label and raise progress (never lowers it)."""
        job = await self._get_mutable(job_id, "checkpoint")
        if job is None:
            return None
        job.current_step = step
        job.progress = max(job.progress or 0, min(progress, 99))
        await self.session.flush()
        return job

    async def complete(
        self, job_id: str, result: dict[str, Any], tokens_used: int = 0
    ) -> Job | None:
        job = await self._get_mutable(job_id, "complete")
        if job is None:
            return None
        job.status = JobStatus.COMPLETED.value
        job.progress = 100
        job.current_step = "completed"
        job.result = result
        job.error_message = None
        job.tokens_used = tokens_used
        job.completed_at = datetime.now(UTC)
        await self.session.flush()
        logger.info(
            "Job state transition",
            extra={"job_id": job_id, "to_status": "completed"},
        )
        return job

    async def fail(self, job_id: str, error_message: str) -> Job | None:
        job = await self._get_mutable(job_id, "fail")
        if job is None:
            return None
        job.status = JobStatus.FAILED.value
        job.result = None
        job.error_message = error_message
        job.completed_at = datetime.now(UTC)
        await self.session.flush()
        logger.info(
            "Job state transition",
            extra={
                "job_id": job_id,
                "to_status": "failed",
                "step": job.current_step,
            },
        )
        return job
