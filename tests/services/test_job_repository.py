"""Tests for JobRepository lifecycle writes."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from page_optimizer.models import JobStatus
from page_optimizer.repositories.job import JobRepository


class TestJobRepository:
    @pytest.mark.asyncio
    async def test_create_pending(self, db_session: AsyncSession) -> None:
        job = await JobRepository(db_session).create()

        assert job.status == JobStatus.PENDING.value
        assert job.progress == 0
        assert job.current_step == "queued"
        assert job.result is None and job.error_message is None

    @pytest.mark.asyncio
    async def test_checkpoint_never_lowers_progress(self, db_session: AsyncSession) -> None:
        repo = JobRepository(db_session)
        job = await repo.create()
        await repo.mark_running(job.id)

        await repo.checkpoint(job.id, "generating-content", 50)
        await repo.checkpoint(job.id, "late", 30)

        assert job.progress == 50
        assert job.current_step == "late"

    @pytest.mark.asyncio
    async def test_checkpoint_below_completion(self, db_session: AsyncSession) -> None:
        repo = JobRepository(db_session)
        job = await repo.create()

        await repo.checkpoint(job.id, "saving", 100)

        assert job.progress == 99

    @pytest.mark.asyncio
    async def test_complete_sets_result(self, db_session: AsyncSession) -> None:
        repo = JobRepository(db_session)
        job = await repo.create()
        await repo.mark_running(job.id)

        await repo.complete(job.id, {"title": "x"}, tokens_used=42)

        assert job.status == JobStatus.COMPLETED.value
        assert job.progress == 100
        assert job.result == {"title": "x"}
        assert job.error_message is None
        assert job.tokens_used == 42
        assert job.completed_at is not None

    @pytest.mark.asyncio
    async def test_terminal_jobs_refuse_changes(self, db_session: AsyncSession) -> None:
        repo = JobRepository(db_session)
        job = await repo.create()
        await repo.fail(job.id, "boom")

        assert await repo.checkpoint(job.id, "fetching-content", 10) is None
        assert await repo.complete(job.id, {"title": "x"}) is None
        assert await repo.mark_running(job.id) is None
        assert job.status == JobStatus.FAILED.value
        assert job.error_message == "boom"
        assert job.result is None
        assert job.progress == 0

    @pytest.mark.asyncio
    async def test_unknown_job(self, db_session: AsyncSession) -> None:
        assert await JobRepository(db_session).checkpoint("missing", "x", 10) is None
