"""Optimization job API router.

REST endpoints for starting an optimization job, polling its progress and
publishing a completed job's content to the host.
"""

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    Header,
    HTTPException,
    Request,
    status,
)
from sqlalchemy.ext.asyncio import AsyncSession

from page_optimizer.core.database import get_session
from page_optimizer.core.exceptions import AuthError, PublishError
from page_optimizer.core.logging import get_logger
from page_optimizer.core.request_guard import (
    RequestGuard,
    build_idempotency_key,
    get_request_guard,
)
from page_optimizer.models.job import JobStatus
from page_optimizer.models.page import Page
from page_optimizer.repositories.job import JobRepository
from page_optimizer.schemas.job import (
    JobResponse,
    OptimizeRequest,
    OptimizeResponse,
    PublishRequest,
    PublishResponse,
)
from page_optimizer.services.job_orchestrator import (
    get_job_orchestrator,
    run_optimization_job,
)
from page_optimizer.services.publish import PublishAdapter

logger = get_logger(__name__)

router = APIRouter(tags=["Optimization"])


@router.post(
    "/optimize",
    response_model=OptimizeResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def optimize_page(
    data: OptimizeRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_session),
    guard: RequestGuard = Depends(get_request_guard),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
) -> OptimizeResponse:
    """Start optimizing a page and return the job id immediately.

    A repeat of the same request within the idempotency window returns the
    job it already created, unless that job failed; a failed job is replaced
    by a new one. The derived key covers page, URL, provider, model and
    keyword. Returns 429 when the client is over its rate
    limit and 404 when ``page_id`` is unknown.
    """
    client_key = request.client.host if request.client else "unknown"
    if not await guard.rate_limiter.check(client_key):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many optimize requests",
        )

    key = idempotency_key or build_idempotency_key(
        data.page_id, data.url, data.ai.provider, data.ai.model, data.keyword
    )
    repo = JobRepository(db)
    existing_id = await guard.idempotency.get(key)
    if existing_id:
        existing = await repo.get(existing_id)
        if existing is not None and existing.status != JobStatus.FAILED.value:
            logger.info(
                "Duplicate optimize request",
                extra={"job_id": existing.id, "page_id": data.page_id},
            )
            return OptimizeResponse(
                job_id=existing.id,
                status=existing.status,
                progress=existing.progress,
                duplicate=True,
            )

    if data.page_id and await db.get(Page, data.page_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Page {data.page_id} not found",
        )

    job = await get_job_orchestrator().create_job(db, data)
    # Committed before dispatch so the background task can read it
    await db.commit()
    await guard.idempotency.put(key, job.id)

    background_tasks.add_task(run_optimization_job, job.id, data)

    logger.info(
        "Optimization job dispatched",
        extra={
            "job_id": job.id,
            "page_id": data.page_id,
            "provider": data.ai.provider,
        },
    )
    return OptimizeResponse(job_id=job.id, status=job.status, progress=job.progress)


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: str,
    db: AsyncSession = Depends(get_session),
) -> JobResponse:
    """Current snapshot of a job. Returns 404 when unknown."""
    job = await JobRepository(db).get(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found",
        )
    return JobResponse.model_validate(job)


@router.post("/jobs/{job_id}/publish", response_model=PublishResponse)
async def publish_job(
    job_id: str,
    data: PublishRequest,
    db: AsyncSession = Depends(get_session),
) -> PublishResponse:
    """Push a completed job's content to the host.

    Returns 404 for unknown jobs, 409 when the job is not completed, 422 when
    the content fails the readiness checks and 502 when the host fails.
    """
    adapter = PublishAdapter(db)
    try:
        result = await adapter.publish(
            job_id,
            data.credentials.username,
            data.credentials.application_password,
            status=data.status,
            site_url=data.site_url,
            force=data.force,
            min_quality_score=data.min_quality_score,
        )
    except AuthError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message) from e
    except PublishError as e:
        raise HTTPException(
            status_code=e.status_code if e.status_code in (400, 404, 409, 422) else 502,
            detail=e.message,
        ) from e

    return PublishResponse(
        job_id=job_id,
        post_id=result.post_id,
        link=result.link,
        status=result.status,
    )
