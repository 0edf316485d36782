"""JobOrchestrator: runs one optimization job from fetch to stored result.

State machine: pending -> running -> completed | failed. Each stage writes a
checkpoint (step label, progress) in its own short transaction so pollers
see progress while the job runs:

    fetching-content 10, deriving-keyword 15, fetching-links 20,
    fetching-insights 25, waiting-insights 27..45, generating-content 50,
    processing-response 80, validating 90, saving 95, completed 100

Any exception aborts the job. The failure is written in a fresh session
because the stage's session may be unusable, and a failure of that write is
logged, never raised. Insight and internal-link problems degrade instead of
failing the job; validation issues are carried in the result.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from urllib.parse import urlparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from page_optimizer.core.config import get_settings
from page_optimizer.core.database import db_manager
from page_optimizer.core.exceptions import PipelineError
from page_optimizer.core.logging import get_logger, pipeline_logger
from page_optimizer.integrations.generative import (
    GenerativeProvider,
    get_generative_provider,
)
from page_optimizer.models.activity_log import ActivityLog, ActivityType
from page_optimizer.models.job import Job
from page_optimizer.models.page import Page, PageStatus
from page_optimizer.models.site import Site
from page_optimizer.repositories.job import JobRepository
from page_optimizer.schemas.job import InsightConfig, OptimizeRequest
from page_optimizer.services.bundle import assemble_bundle
from page_optimizer.services.content_fetcher import ContentFetcher
from page_optimizer.services.insights import InsightProvider, Insights
from page_optimizer.services.internal_links import InternalLinkCatalog
from page_optimizer.services.keyword import resolve_keyword
from page_optimizer.services.prompt_builder import PromptBuilder
from page_optimizer.services.quality import DEFAULT_REQUIRED_BLOCKS
from page_optimizer.services.response_parser import parse

logger = get_logger(__name__)

INSIGHTS_START_PROGRESS = 25
INSIGHTS_POLL_STEP = 2
INSIGHTS_MAX_PROGRESS = 45


@dataclass
class PageTarget:
    """Where the page being optimized lives."""

    page_id: str | None
    site_id: str | None
    site_url: str
    slug: str
    title: str | None = None


InsightProviderFactory = Callable[[str, str], InsightProvider]


class JobOrchestrator:
    """Creates jobs and runs them as background tasks."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        fetcher: ContentFetcher | None = None,
        generator: GenerativeProvider | None = None,
        prompt_builder: PromptBuilder | None = None,
        insight_provider_factory: InsightProviderFactory = InsightProvider,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        generation_timeout_ms: int | None = None,
    ) -> None:
        settings = get_settings()
        self._session_factory = session_factory
        self._fetcher = fetcher or ContentFetcher()
        self._generator = generator
        self._prompt_builder = prompt_builder or PromptBuilder()
        self._insight_provider_factory = insight_provider_factory
        self._sleep = sleep
        self._generation_timeout_ms = (
            generation_timeout_ms or settings.generation_timeout_ms
        )
        self._poll_attempts = settings.insights_poll_attempts
        self._poll_interval = settings.insights_poll_interval

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory or db_manager.session_factory

    @property
    def generator(self) -> GenerativeProvider:
        return self._generator or get_generative_provider()

    # ------------------------------------------------------------------
    # Job creation
    # ------------------------------------------------------------------

    async def create_job(self, session: AsyncSession, request: OptimizeRequest) -> Job:
        """Persist a pending job for ``request``."""
        job = await JobRepository(session).create(page_id=request.page_id)
        session.add(
            ActivityLog(
                page_id=request.page_id,
                job_id=job.id,
                type=ActivityType.INFO.value,
                message="Optimization job queued",
                details={"url": request.url, "provider": request.ai.provider},
            )
        )
        await session.flush()
        return job

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    async def _checkpoint(self, job_id: str, step: str, progress: int) -> None:
        async with self.session_factory() as session:
            await JobRepository(session).checkpoint(job_id, step, progress)
            await session.commit()
        pipeline_logger.step(job_id, step, progress)

    async def _start(self, job_id: str, request: OptimizeRequest) -> PageTarget | None:
        async with self.session_factory() as session:
            job = await JobRepository(session).mark_running(job_id)
            if job is None:
                return None

            page = await session.get(Page, request.page_id) if request.page_id else None
            site = await session.get(Site, page.site_id) if page and page.site_id else None
            if page is not None:
                page.status = PageStatus.OPTIMIZING.value
            await session.commit()

        site_url = request.site_url or (site.site_url if site else None)
        if not site_url and page is not None:
            parsed = urlparse(page.url)
            site_url = f"{parsed.scheme}://{parsed.netloc}"
        slug = request.slug or (page.slug if page else None)
        if not site_url or not slug:
            raise PipelineError("Cannot determine the page's host URL and slug")

        return PageTarget(
            page_id=page.id if page else None,
            site_id=page.site_id if page else None,
            site_url=site_url,
            slug=slug,
            title=page.title if page else None,
        )

    async def run_job(self, job_id: str, request: OptimizeRequest) -> None:
        """Background entrypoint. Never raises."""
        start_time = time.monotonic()
        step = "starting"
        page_id = request.page_id
        settings = get_settings()

        try:
            target = await self._start(job_id, request)
            if target is None:
                return
            pipeline_logger.job_started(job_id, target.page_id, request.ai.provider)

            step = "fetching-content"
            await self._checkpoint(job_id, step, 10)
            fetched = await self._fetcher.fetch(
                target.site_url,
                target.slug,
                request.credentials.username,
                request.credentials.application_password,
            )
            if target.page_id:
                async with self.session_factory() as session:
                    page = await session.get(Page, target.page_id)
                    if page is not None:
                        page.post_id = fetched.host_id
                        page.post_type = fetched.post_type
                        page.word_count = fetched.word_count
                        page.categories = fetched.categories
                        page.tags = fetched.tags
                        page.featured_image = fetched.featured_image
                        await session.commit()

            step = "deriving-keyword"
            await self._checkpoint(job_id, step, 15)
            keyword = resolve_keyword(request.keyword, fetched.title, target.slug)

            step = "fetching-links"
            await self._checkpoint(job_id, step, 20)
            async with self.session_factory() as session:
                links = await InternalLinkCatalog(session).list(
                    exclude_page_id=target.page_id, site_id=target.site_id
                )

            insights: Insights | None = None
            if request.insights is not None:
                step = "fetching-insights"
                await self._checkpoint(job_id, step, INSIGHTS_START_PROGRESS)
                insights = await self._fetch_insights(job_id, keyword, request.insights)
            else:
                pipeline_logger.insights_skipped(job_id, "not configured")

            min_words = request.target_word_count_min or settings.target_word_count_min
            max_words = max(
                min_words, request.target_word_count_max or settings.target_word_count_max
            )
            required_blocks = request.required_blocks or list(DEFAULT_REQUIRED_BLOCKS)

            step = "generating-content"
            await self._checkpoint(job_id, step, 50)
            prompt = self._prompt_builder.build(
                (min_words, max_words),
                required_blocks,
                fetched.content,
                keyword,
                links,
                insights,
            )
            generation = await self.generator.generate(
                request.ai.provider,
                request.ai.api_key,
                request.ai.model,
                prompt.system_prompt,
                prompt.user_prompt,
                timeout_ms=self._generation_timeout_ms,
            )

            step = "processing-response"
            await self._checkpoint(job_id, step, 80)
            candidate = parse(generation.text)

            step = "validating"
            await self._checkpoint(job_id, step, 90)
            bundle, validation = assemble_bundle(
                candidate,
                keyword,
                min_words,
                required_blocks,
                insights_used=insights is not None,
                site_url=target.site_url,
            )

            step = "saving"
            await self._checkpoint(job_id, step, 95)
            async with self.session_factory() as session:
                job = await JobRepository(session).complete(
                    job_id,
                    bundle.model_dump(mode="json", by_alias=True),
                    tokens_used=generation.tokens_used,
                )
                if job is None:
                    return
                if target.page_id:
                    page = await session.get(Page, target.page_id)
                    if page is not None:
                        page.status = PageStatus.COMPLETED.value
                        page.score_after = {
                            "overall": bundle.quality_score,
                            "seo": bundle.seo_score,
                            "readability": bundle.readability_score,
                            "validation": validation.score,
                        }
                session.add(
                    ActivityLog(
                        site_id=target.site_id,
                        page_id=target.page_id,
                        job_id=job_id,
                        type=ActivityType.SUCCESS.value,
                        message=f"Optimized '{bundle.title}' (score {bundle.quality_score})",
                        details={
                            "quality_score": bundle.quality_score,
                            "word_count": bundle.word_count,
                            "tokens_used": generation.tokens_used,
                            "valid": validation.valid,
                        },
                    )
                )
                await session.commit()

            pipeline_logger.job_completed(
                job_id,
                bundle.quality_score,
                bundle.word_count,
                (time.monotonic() - start_time) * 1000,
            )

        except Exception as exc:
            pipeline_logger.job_failed(job_id, step, exc)
            await self._fail(job_id, page_id, exc)

    async def _fetch_insights(
        self, job_id: str, keyword: str, config: InsightConfig
    ) -> Insights | None:
        """Look up insights, polling while the query is processing.

        Returns None when the query never becomes ready or the tool fails.
        """
        try:
            provider = self._insight_provider_factory(config.api_key, config.project_id)
            lookup = await provider.get_insights(keyword)
            attempt = 0
            while lookup.status != "ready" and attempt < self._poll_attempts:
                attempt += 1
                await self._sleep(self._poll_interval)
                lookup = await provider.poll(lookup.query_id, keyword)
                pipeline_logger.insight_poll(
                    job_id, lookup.query_id, attempt, self._poll_attempts, lookup.status
                )
                await self._checkpoint(
                    job_id,
                    "waiting-insights",
                    min(
                        INSIGHTS_START_PROGRESS + INSIGHTS_POLL_STEP * attempt,
                        INSIGHTS_MAX_PROGRESS,
                    ),
                )
        except (PipelineError, ValueError) as e:
            pipeline_logger.insights_skipped(job_id, f"{type(e).__name__}: {e}")
            return None

        if lookup.status != "ready" or lookup.insights is None:
            pipeline_logger.insights_skipped(
                job_id, f"not ready after {self._poll_attempts} polls"
            )
            return None
        return lookup.insights

    async def _fail(self, job_id: str, page_id: str | None, exc: Exception) -> None:
        """Mark job (and page) failed in a new session; log if that fails too."""
        try:
            async with self.session_factory() as session:
                job = await JobRepository(session).fail(job_id, str(exc))
                if job is None:
                    return
                site_id: str | None = None
                if page_id:
                    page = await session.get(Page, page_id)
                    if page is not None:
                        page.status = PageStatus.FAILED.value
                        page.retry_count = (page.retry_count or 0) + 1
                        site_id = page.site_id
                session.add(
                    ActivityLog(
                        site_id=site_id,
                        page_id=page_id,
                        job_id=job_id,
                        type=ActivityType.ERROR.value,
                        message=f"Optimization failed: {exc}",
                        details={"error_type": type(exc).__name__},
                    )
                )
                await session.commit()
        except Exception:
            logger.error(
                "Failed to mark job as failed after pipeline error",
                extra={"job_id": job_id, "page_id": page_id},
                exc_info=True,
            )


_orchestrator: JobOrchestrator | None = None


def get_job_orchestrator() -> JobOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = JobOrchestrator()
    return _orchestrator


async def run_optimization_job(job_id: str, request: OptimizeRequest) -> None:
    """Background task wrapper used by the optimize endpoint."""
    await get_job_orchestrator().run_job(job_id, request)
