"""Tests for section rendering and PublishAdapter."""

import json

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import full_sections, make_words
from page_optimizer.core.exceptions import AuthError, PublishError
from page_optimizer.models import ActivityLog, Job, JobStatus, Page, PageStatus, Site
from page_optimizer.schemas.content import SECTION_TYPES, ContentBundle
from page_optimizer.services.publish import (
    SECTION_RENDERERS,
    PublishAdapter,
    publishable_content,
    render_sections,
)

SITE = "https://blog.example.com"
TITLE = "Best Hiking Boots for Beginners in the Mountains Today"
META = (
    "Choose hiking boots that fit well, support your ankles and keep water out. "
    "This guide covers fit, materials and care so your first trail goes well today."
)


def _bundle(**overrides) -> ContentBundle:
    values = {
        "title": TITLE,
        "meta_description": META,
        "h1": "Best Hiking Boots for Beginners",
        "headings": ["Fit", "Materials", "Support", "Care"],
        "keyword": "hiking boots",
        "excerpt": "A short guide.",
        "body_sections": full_sections(),
        "optimized_content": f"<p>{make_words(100)}</p>",
        "word_count": 2600,
        "readability_score": 65,
        "quality_score": 90,
    }
    values.update(overrides)
    return ContentBundle(**values)


class TestRenderSections:
    def test_every_section_type_has_renderer(self) -> None:
        assert set(SECTION_RENDERERS) == set(SECTION_TYPES)

    def test_renders_blocks_in_order(self) -> None:
        html = render_sections(_bundle().body_sections)

        assert html.startswith('<article class="optimized-content">')
        assert html.index('class="tldr"') < html.index('class="key-takeaways"')
        assert "<h2>Why it matters</h2>" in html
        assert "<cite>A. Carpenter</cite>" in html
        assert html.count('class="faq-item"') == 3
        assert "<th>Plan</th>" in html and "<td>$10</td>" in html
        assert 'href="https://example.com/signup">Sign up</a>' in html
        assert '<div class="summary">' in html

    def test_escapes_plain_text_fields(self) -> None:
        bundle = _bundle(
            body_sections=[{"type": "checklist", "data": ["<b>one</b>"]}]
        )

        html = render_sections(bundle.body_sections)

        assert "&lt;b&gt;one&lt;/b&gt;" in html

    def test_empty_sections(self) -> None:
        assert render_sections([]) == ""

    def test_publishable_content_prefers_html_body(self) -> None:
        assert publishable_content(_bundle()).startswith("<p>content")
        assert publishable_content(_bundle(optimized_content="")).startswith("<article")


async def _completed_job(
    session: AsyncSession,
    bundle: ContentBundle | None = None,
    post_id: int | None = None,
    with_page: bool = True,
    status: str = JobStatus.COMPLETED.value,
) -> Job:
    page_id = None
    if with_page:
        site = Site(name="blog", site_url=SITE)
        session.add(site)
        await session.flush()
        page = Page(site_id=site.id, url=f"{SITE}/hiking-boots/", slug="hiking-boots",
                    post_id=post_id, post_type="posts" if post_id else None,
                    status=PageStatus.COMPLETED.value)
        session.add(page)
        await session.flush()
        page_id = page.id
    job = Job(
        page_id=page_id,
        status=status,
        progress=100 if status == JobStatus.COMPLETED.value else 50,
        result=(bundle or _bundle()).model_dump(mode="json", by_alias=True)
        if status == JobStatus.COMPLETED.value
        else None,
    )
    session.add(job)
    await session.flush()
    return job


def _transport(captured: dict, status: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(status, json={"id": 77, "link": f"{SITE}/?p=77"})

    return httpx.MockTransport(handler)


class TestPublishAdapter:
    @pytest.mark.asyncio
    async def test_updates_existing_post(self, db_session: AsyncSession) -> None:
        job = await _completed_job(db_session, post_id=42)
        captured: dict = {}

        result = await PublishAdapter(db_session, _transport(captured)).publish(
            job.id, "admin", "secret", status="publish"
        )

        assert captured["path"] == "/wp-json/wp/v2/posts/42"
        assert captured["body"]["title"] == TITLE
        assert captured["body"]["status"] == "publish"
        assert captured["body"]["meta"] == {
            "_yoast_wpseo_metadesc": META,
            "_yoast_wpseo_focuskw": "hiking boots",
        }
        assert result.post_id == 77
        page = await db_session.get(Page, job.page_id)
        assert page.status == PageStatus.PUBLISHED.value
        assert page.post_id == 77

    @pytest.mark.asyncio
    async def test_creates_draft_without_host_post(self, db_session: AsyncSession) -> None:
        job = await _completed_job(db_session)
        captured: dict = {}

        result = await PublishAdapter(db_session, _transport(captured)).publish(
            job.id, "admin", "secret"
        )

        assert captured["path"] == "/wp-json/wp/v2/posts"
        assert result.status == "draft"
        page = await db_session.get(Page, job.page_id)
        assert page.status == PageStatus.COMPLETED.value
        events = (await db_session.execute(select(ActivityLog))).scalars().all()
        assert events[-1].message == f"Saved draft '{TITLE}'"

    @pytest.mark.asyncio
    async def test_job_without_page_needs_site_url(self, db_session: AsyncSession) -> None:
        job = await _completed_job(db_session, with_page=False)
        captured: dict = {}
        adapter = PublishAdapter(db_session, _transport(captured))

        with pytest.raises(PublishError) as exc_info:
            await adapter.publish(job.id, "admin", "secret")
        assert exc_info.value.status_code == 400

        result = await adapter.publish(job.id, "admin", "secret", site_url=SITE)
        assert result.post_id == 77

    @pytest.mark.asyncio
    async def test_unknown_job(self, db_session: AsyncSession) -> None:
        with pytest.raises(PublishError) as exc_info:
            await PublishAdapter(db_session).publish("missing", "admin", "secret")

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_running_job_conflicts(self, db_session: AsyncSession) -> None:
        job = await _completed_job(db_session, status=JobStatus.RUNNING.value)

        with pytest.raises(PublishError) as exc_info:
            await PublishAdapter(db_session).publish(job.id, "admin", "secret")

        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_short_content_rejected(self, db_session: AsyncSession) -> None:
        job = await _completed_job(
            db_session, bundle=_bundle(optimized_content="<p>hi</p>")
        )

        with pytest.raises(PublishError) as exc_info:
            await PublishAdapter(db_session).publish(job.id, "admin", "secret")

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_host_rejects_credentials(self, db_session: AsyncSession) -> None:
        job = await _completed_job(db_session)

        with pytest.raises(AuthError):
            await PublishAdapter(db_session, _transport({}, status=401)).publish(
                job.id, "admin", "wrong"
            )

    @pytest.mark.asyncio
    async def test_unready_content_blocked(self, db_session: AsyncSession) -> None:
        job = await _completed_job(
            db_session, bundle=_bundle(title="Boots", h1="", quality_score=40)
        )

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no write expected")

        with pytest.raises(PublishError) as exc_info:
            await PublishAdapter(db_session, httpx.MockTransport(handler)).publish(
                job.id, "admin", "secret"
            )

        assert exc_info.value.status_code == 422
        assert "Title Length" in exc_info.value.message
        assert "H1 Present" in exc_info.value.message
        assert "Quality Score" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_quality_below_requested_minimum_blocked(
        self, db_session: AsyncSession
    ) -> None:
        job = await _completed_job(db_session)

        with pytest.raises(PublishError) as exc_info:
            await PublishAdapter(db_session, _transport({})).publish(
                job.id, "admin", "secret", min_quality_score=95
            )

        assert exc_info.value.status_code == 422
        assert exc_info.value.message.endswith("Quality Score")

    @pytest.mark.asyncio
    async def test_force_skips_readiness(self, db_session: AsyncSession) -> None:
        job = await _completed_job(db_session, bundle=_bundle(title="Boots", h1=""))
        captured: dict = {}

        result = await PublishAdapter(db_session, _transport(captured)).publish(
            job.id, "admin", "secret", force=True
        )

        assert result.post_id == 77
        assert captured["body"]["title"] == "Boots"
