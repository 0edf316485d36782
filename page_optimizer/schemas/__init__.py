"""Pydantic schemas for API requests, responses and pipeline artifacts."""

from page_optimizer.schemas.content import (
    SECTION_TYPES,
    ContentBundle,
    ContentBundleCandidate,
    Section,
    ValidationResult,
)
from page_optimizer.schemas.job import (
    AIConfig,
    HostCredentials,
    InsightConfig,
    JobResponse,
    OptimizeRequest,
    OptimizeResponse,
    PublishRequest,
    PublishResponse,
)
from page_optimizer.schemas.sitemap import CrawlRequest, CrawlResponse
from page_optimizer.schemas.validation import (
    ContentCheckRequest,
    ProviderCheckRequest,
    ProviderCheckResponse,
    PublishReadiness,
    ReadinessCheck,
    WordPressCheckRequest,
    WordPressCheckResponse,
)

__all__ = [
    "AIConfig",
    "ContentBundle",
    "ContentBundleCandidate",
    "ContentCheckRequest",
    "CrawlRequest",
    "CrawlResponse",
    "HostCredentials",
    "InsightConfig",
    "JobResponse",
    "OptimizeRequest",
    "OptimizeResponse",
    "ProviderCheckRequest",
    "ProviderCheckResponse",
    "PublishReadiness",
    "PublishRequest",
    "PublishResponse",
    "ReadinessCheck",
    "SECTION_TYPES",
    "Section",
    "ValidationResult",
    "WordPressCheckRequest",
    "WordPressCheckResponse",
]
