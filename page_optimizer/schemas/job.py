"""Pydantic schemas for optimization job endpoints.

- OptimizeRequest: target page, host credentials and AI configuration
- OptimizeResponse: job id returned immediately (202)
- JobResponse: pollable job snapshot
- PublishRequest / PublishResponse: push a completed bundle to the host

Credentials and API keys are accepted per request and never persisted.
"""

from datetime import datetime
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, model_validator


class HostCredentials(BaseModel):
    """WordPress application-password credentials."""

    username: str = Field(..., min_length=1)
    application_password: str = Field(..., min_length=1)


class AIConfig(BaseModel):
    """Generative provider selection, passed through to the provider call."""

    provider: str = Field(
        ...,
        description="anthropic, openai, groq, openrouter or google",
        examples=["anthropic"],
    )
    api_key: str = Field(default="", description="Provider API key")
    model: str | None = Field(
        default=None, description="Model id; provider default when omitted"
    )


class InsightConfig(BaseModel):
    """Keyword insight tool (NeuronWriter) configuration."""

    api_key: str = Field(..., min_length=1)
    project_id: str = Field(..., min_length=1)


class OptimizeRequest(BaseModel):
    """Request to optimize one page.

    Either ``page_id`` (a stored page candidate) or ``url`` must be given.
    ``site_url`` and ``slug`` are derived from ``url`` when omitted.
    """

    page_id: str | None = None
    url: str | None = None
    site_url: str | None = None
    slug: str | None = None
    keyword: str | None = Field(
        default=None, description="Target keyword; derived from title/slug when omitted"
    )
    credentials: HostCredentials
    ai: AIConfig
    insights: InsightConfig | None = None
    target_word_count_min: int | None = Field(default=None, ge=300)
    target_word_count_max: int | None = Field(default=None, ge=300)
    required_blocks: list[str] | None = None

    @model_validator(mode="after")
    def _fill_from_url(self) -> "OptimizeRequest":
        if not self.page_id and not self.url:
            raise ValueError("Either page_id or url is required")
        if self.url:
            parsed = urlparse(self.url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError("url must be an absolute http(s) URL")
            if not self.site_url:
                self.site_url = f"{parsed.scheme}://{parsed.netloc}"
            if not self.slug:
                parts = [p for p in parsed.path.split("/") if p]
                self.slug = parts[-1] if parts else None
        if (
            self.target_word_count_min
            and self.target_word_count_max
            and self.target_word_count_min > self.target_word_count_max
        ):
            raise ValueError("target_word_count_min must not exceed target_word_count_max")
        return self


class OptimizeResponse(BaseModel):
    job_id: str
    status: str
    progress: int = 0
    duplicate: bool = Field(
        default=False, description="True when an identical recent request already created this job"
    )


class JobResponse(BaseModel):
    """Job snapshot returned to pollers."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    page_id: str | None = None
    status: str
    progress: int
    current_step: str | None = None
    result: dict[str, Any] | None = None
    error_message: str | None = None
    tokens_used: int = 0
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None


class PublishRequest(BaseModel):
    credentials: HostCredentials
    site_url: str | None = Field(
        default=None, description="Host base URL; taken from the job's page when omitted"
    )
    status: Literal["draft", "publish"] = "draft"
    force: bool = Field(
        default=False, description="Publish even when readiness checks fail"
    )
    min_quality_score: int | None = Field(
        default=None, ge=0, le=100, description="Defaults to publish_min_quality_score"
    )


class PublishResponse(BaseModel):
    job_id: str
    post_id: int
    link: str | None = None
    status: str
