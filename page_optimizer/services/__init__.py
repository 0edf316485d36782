"""Services layer - pipeline stages and their orchestration."""

from page_optimizer.services.content_fetcher import ContentFetcher, FetchedContent
from page_optimizer.services.insights import InsightLookup, InsightProvider, Insights
from page_optimizer.services.internal_links import InternalLink, InternalLinkCatalog
from page_optimizer.services.job_orchestrator import JobOrchestrator
from page_optimizer.services.prompt_builder import Prompt, PromptBuilder
from page_optimizer.services.publish import PublishAdapter, PublishResult
from page_optimizer.services.quality import QualityValidator, ScoreCalculator
from page_optimizer.services.readiness import check_publish_readiness
from page_optimizer.services.sitemap import SitemapResolver

__all__ = [
    "ContentFetcher",
    "FetchedContent",
    "InsightLookup",
    "InsightProvider",
    "Insights",
    "InternalLink",
    "InternalLinkCatalog",
    "JobOrchestrator",
    "Prompt",
    "PromptBuilder",
    "PublishAdapter",
    "PublishResult",
    "QualityValidator",
    "ScoreCalculator",
    "SitemapResolver",
    "check_publish_readiness",
]
