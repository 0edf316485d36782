"""Pydantic schemas for the pre-flight check endpoints.

- WordPress connection check: reachability, user, capabilities
- Provider key check: one-token request against the chosen model
- Content check: publish-readiness report with a ``can_publish`` gate

A check that runs and fails is reported in the body (``success: false`` and
an ``error_code``), not as an HTTP error.
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from page_optimizer.integrations.generative import PROVIDERS
from page_optimizer.schemas.content import ContentBundle


class WordPressCheckRequest(BaseModel):
    site_url: str = Field(..., min_length=1, examples=["https://blog.example.com"])
    username: str = Field(..., min_length=1)
    application_password: str = Field(..., min_length=1)


class WordPressSiteInfo(BaseModel):
    name: str
    description: str = ""
    url: str


class WordPressUserInfo(BaseModel):
    id: int
    name: str
    email: str = ""
    roles: list[str] = Field(default_factory=list)
    capabilities: list[str] = Field(default_factory=list)


class WordPressCapabilities(BaseModel):
    can_edit: bool
    can_publish: bool
    can_manage_options: bool


class WordPressCheckResponse(BaseModel):
    success: bool
    message: str
    site_id: str | None = None
    site_info: WordPressSiteInfo | None = None
    user_info: WordPressUserInfo | None = None
    capabilities: WordPressCapabilities | None = None
    error_code: str | None = None


class ProviderCheckRequest(BaseModel):
    provider: str = Field(..., examples=["anthropic"])
    api_key: str = Field(..., min_length=1)
    model: str | None = Field(
        default=None, description="Model id; provider default when omitted"
    )

    @field_validator("provider")
    @classmethod
    def _known_provider(cls, value: str) -> str:
        provider = value.strip().lower()
        if provider not in PROVIDERS:
            raise ValueError(
                f"Unsupported provider '{value}'. Supported: {', '.join(sorted(PROVIDERS))}"
            )
        return provider


class ProviderCheckResponse(BaseModel):
    success: bool
    message: str
    provider: str
    model: str
    error_code: str | None = None


class ReadinessCheck(BaseModel):
    """One pre-publish check; only failed ``error`` checks block publishing."""

    name: str
    passed: bool
    actual: str | int | float
    expected: str
    severity: Literal["error", "warning", "info"]


class ReadinessSummary(BaseModel):
    errors: int
    warnings: int
    passed: int


class PublishReadiness(BaseModel):
    can_publish: bool
    overall_score: int = Field(..., ge=0, le=100)
    checks: list[ReadinessCheck]
    summary: ReadinessSummary

    def blocking(self) -> list[ReadinessCheck]:
        return [c for c in self.checks if not c.passed and c.severity == "error"]


class ContentCheckRequest(BaseModel):
    bundle: ContentBundle
    target_keyword: str | None = Field(
        default=None, description="Defaults to the bundle's keyword"
    )
    min_quality_score: int | None = Field(default=None, ge=0, le=100)
    site_url: str | None = Field(
        default=None, description="Host used to recognise internal links"
    )
