"""PublishAdapter: push a completed job's bundle to the WordPress host.

When the bundle carries no HTML body, its sections are rendered with one
renderer per section type. The page's existing host post is updated when
known; otherwise a new post is created.
"""

import html
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from page_optimizer.core.exceptions import PublishError
from page_optimizer.core.logging import get_logger
from page_optimizer.integrations.wordpress import WordPressClient
from page_optimizer.models.activity_log import ActivityLog, ActivityType
from page_optimizer.models.job import JobStatus
from page_optimizer.models.page import Page, PageStatus
from page_optimizer.models.site import Site
from page_optimizer.repositories.job import JobRepository
from page_optimizer.schemas.content import ContentBundle, Section
from page_optimizer.services.readiness import check_publish_readiness

logger = get_logger(__name__)

MIN_PUBLISH_LENGTH = 50


@dataclass
class PublishResult:
    post_id: int
    link: str | None
    status: str


# =============================================================================
# SECTION RENDERERS
# =============================================================================


def _esc(text: str | None) -> str:
    return html.escape(text or "")


def _items(items: list[str], css_class: str, ordered: bool = False) -> str:
    tag = "ol" if ordered else "ul"
    lis = "".join(f"<li>{_esc(item)}</li>" for item in items)
    return f'<{tag} class="{css_class}">{lis}</{tag}>'


def render_tldr(section: Any) -> str:
    return f'<div class="tldr"><strong>TL;DR:</strong> {section.content}</div>'


def render_takeaways(section: Any) -> str:
    return (
        '<div class="key-takeaways"><h3>Key Takeaways</h3>'
        f"{_items(section.data, 'takeaways-list')}</div>"
    )


def render_heading(section: Any) -> str:
    level = section.data.level
    return f"<h{level}>{_esc(section.content)}</h{level}>"


def render_paragraph(section: Any) -> str:
    content = section.content.strip()
    return content if content.startswith("<") else f"<p>{content}</p>"


def render_quote(section: Any) -> str:
    attribution = ", ".join(
        _esc(part) for part in (section.data.author, section.data.source) if part
    )
    cite = f"<cite>{attribution}</cite>" if attribution else ""
    return f"<blockquote><p>{_esc(section.content)}</p>{cite}</blockquote>"


def render_callout(section: Any) -> str:
    return f'<div class="callout callout-{section.data.style}">{section.content}</div>'


def render_checklist(section: Any) -> str:
    return _items(section.data, "checklist")


def render_faq(section: Any) -> str:
    entries = "".join(
        f'<div class="faq-item"><h3>{_esc(item.question)}</h3><p>{_esc(item.answer)}</p></div>'
        for item in section.data
    )
    return f'<div class="faq"><h2>Frequently Asked Questions</h2>{entries}</div>'


def render_table(section: Any) -> str:
    caption = f"<caption>{_esc(section.content)}</caption>" if section.content else ""
    head = "".join(f"<th>{_esc(h)}</th>" for h in section.data.headers)
    rows = "".join(
        "<tr>" + "".join(f"<td>{_esc(cell)}</td>" for cell in row) + "</tr>"
        for row in section.data.rows
    )
    return f"<table>{caption}<thead><tr>{head}</tr></thead><tbody>{rows}</tbody></table>"


def render_cta(section: Any) -> str:
    button = ""
    if section.data.url:
        label = _esc(section.data.label or "Learn more")
        button = f' <a class="cta-button" href="{_esc(section.data.url)}">{label}</a>'
    return f'<div class="cta"><p>{section.content}</p>{button}</div>'


def render_summary(section: Any) -> str:
    return f'<div class="summary"><h2>Summary</h2><p>{section.content}</p></div>'


SECTION_RENDERERS: dict[str, Callable[[Any], str]] = {
    "tldr": render_tldr,
    "takeaways": render_takeaways,
    "heading": render_heading,
    "paragraph": render_paragraph,
    "quote": render_quote,
    "callout": render_callout,
    "checklist": render_checklist,
    "faq": render_faq,
    "table": render_table,
    "cta": render_cta,
    "summary": render_summary,
}


def render_sections(sections: list[Section]) -> str:
    body = "\n".join(SECTION_RENDERERS[section.type](section) for section in sections)
    return f'<article class="optimized-content">\n{body}\n</article>' if body else ""


def publishable_content(bundle: ContentBundle) -> str:
    return bundle.optimized_content or render_sections(bundle.body_sections)


# =============================================================================
# PUBLISH
# =============================================================================


class PublishAdapter:
    """Publishes completed jobs to their host."""

    def __init__(
        self,
        session: AsyncSession,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.session = session
        self._transport = transport

    async def _resolve_site_url(self, page: Page | None, site_url: str | None) -> str:
        if site_url:
            return site_url
        if page is not None and page.site_id:
            site = await self.session.get(Site, page.site_id)
            if site is not None:
                return site.site_url
        if page is not None:
            parsed = urlparse(page.url)
            return f"{parsed.scheme}://{parsed.netloc}"
        raise PublishError("site_url is required for jobs without a page", status_code=400)

    async def publish(
        self,
        job_id: str,
        username: str,
        application_password: str,
        status: str = "draft",
        site_url: str | None = None,
        force: bool = False,
        min_quality_score: int | None = None,
    ) -> PublishResult:
        """Publish a completed job's bundle.

        Unless ``force`` is set, the bundle must pass the readiness checks.

        Raises:
            PublishError: Unknown job (404), job not completed (409), content
                too short (400), content not ready (422) or the host rejected
                the write.
            AuthError: The host rejected the credentials.
        """
        job = await JobRepository(self.session).get(job_id)
        if job is None:
            raise PublishError(f"Job {job_id} not found", status_code=404)
        if job.status != JobStatus.COMPLETED.value or not job.result:
            raise PublishError(
                f"Job {job_id} is {job.status}; only completed jobs can be published",
                status_code=409,
            )

        bundle = ContentBundle.model_validate(job.result)
        content = publishable_content(bundle)
        if len(content.strip()) < MIN_PUBLISH_LENGTH:
            raise PublishError("Content is too short to publish", status_code=400)

        page = await self.session.get(Page, job.page_id) if job.page_id else None
        host = await self._resolve_site_url(page, site_url)

        readiness = check_publish_readiness(
            bundle, content=content, min_quality_score=min_quality_score, site_url=host
        )
        if not readiness.can_publish and not force:
            reasons = [
                c.name
                for c in readiness.checks
                if not c.passed and (c.severity == "error" or c.name == "Quality Score")
            ]
            logger.warning(
                "Publish blocked by readiness checks",
                extra={
                    "job_id": job_id,
                    "overall_score": readiness.overall_score,
                    "failed_checks": reasons,
                },
            )
            raise PublishError(
                f"Content is not ready to publish: {', '.join(reasons)}",
                status_code=422,
            )

        payload: dict[str, Any] = {
            "title": bundle.title,
            "content": content,
            "status": status,
            "excerpt": bundle.excerpt,
            "meta": {
                "_yoast_wpseo_metadesc": bundle.meta_description,
                "_yoast_wpseo_focuskw": bundle.keyword,
            },
        }

        async with WordPressClient(
            host, username, application_password, transport=self._transport
        ) as client:
            if page is not None and page.post_id:
                post = await client.update_post(
                    page.post_id, payload, post_type=page.post_type or "posts"
                )
            else:
                post = await client.create_post(payload)

        post_id = int(post["id"])
        link = post.get("link")
        if page is not None:
            page.post_id = post_id
            page.status = (
                PageStatus.PUBLISHED.value if status == "publish" else PageStatus.COMPLETED.value
            )
        self.session.add(
            ActivityLog(
                site_id=page.site_id if page else None,
                page_id=page.id if page else None,
                job_id=job_id,
                type=ActivityType.SUCCESS.value,
                message=f"{'Published' if status == 'publish' else 'Saved draft'} '{bundle.title}'",
                details={"post_id": post_id, "link": link, "status": status},
            )
        )
        await self.session.flush()

        logger.info(
            "Job content pushed to host",
            extra={"job_id": job_id, "post_id": post_id, "status": status},
        )
        return PublishResult(post_id=post_id, link=link, status=status)
