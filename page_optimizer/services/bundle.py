"""Turn a parsed candidate into a scored ContentBundle."""

import re
from collections.abc import Sequence

from page_optimizer.schemas.content import (
    ContentBundle,
    ContentBundleCandidate,
    ValidationResult,
)
from page_optimizer.services.quality import (
    DEFAULT_REQUIRED_BLOCKS,
    QualityValidator,
    ScoreCalculator,
)
from page_optimizer.services.scoring import readability_score, seo_score
from page_optimizer.utils.html_text import count_words, html_to_text

_HEADING_TAG_RE = re.compile(r"<h[23][^>]*>(.*?)</h[23]>", re.IGNORECASE | re.DOTALL)


def collect_headings(candidate: ContentBundleCandidate) -> list[str]:
    """Declared headings, else heading sections, else h2/h3 tags in the body."""
    if candidate.headings:
        return list(candidate.headings)
    from_sections = [
        s.content for s in candidate.sections if s.type == "heading" and s.content
    ]
    if from_sections:
        return from_sections
    return [
        text
        for text in (html_to_text(m) for m in _HEADING_TAG_RE.findall(candidate.optimized_content))
        if text
    ]


def assemble_bundle(
    candidate: ContentBundleCandidate,
    keyword: str,
    min_word_count: int,
    required_blocks: Sequence[str] = DEFAULT_REQUIRED_BLOCKS,
    insights_used: bool = False,
    site_url: str | None = None,
    validator: QualityValidator | None = None,
    calculator: ScoreCalculator | None = None,
) -> tuple[ContentBundle, ValidationResult]:
    """Build the bundle, validate it and fill in every score.

    ``quality_score`` is the rounded mean of the validation score and the
    calculator score.
    """
    bundle = ContentBundle(
        title=candidate.title,
        meta_description=candidate.meta_description,
        headings=collect_headings(candidate),
        body_sections=list(candidate.sections),
        word_count=count_words(candidate.optimized_content),
        keyword=keyword,
        h1=candidate.h1 or candidate.title,
        excerpt=candidate.excerpt,
        optimized_content=candidate.optimized_content,
        insights_used=insights_used,
    )

    validation = (validator or QualityValidator()).validate(
        bundle, min_word_count, required_blocks
    )
    calculated = (calculator or ScoreCalculator()).score(
        bundle, min_word_count, required_blocks
    )

    bundle.quality_score = round((validation.score + calculated) / 2)
    bundle.seo_score = seo_score(bundle, keyword, site_url)
    bundle.readability_score = readability_score(bundle.optimized_content)
    bundle.validation_issues = list(validation.issues)
    if candidate.dropped_sections:
        bundle.validation_issues.append(
            f"Dropped {candidate.dropped_sections} malformed section(s)"
        )
    return bundle, validation
