"""Pre-publish readiness checks for a content bundle.

Each check has a severity. A failed ``error`` check blocks publishing, and so
does a quality score below the minimum. Warnings and info only lower
``overall_score``: a passed check earns 10 points, a failed warning 5, and
the total is scaled to 0-100.
"""

from page_optimizer.core.config import get_settings
from page_optimizer.schemas.content import ContentBundle
from page_optimizer.schemas.validation import (
    PublishReadiness,
    ReadinessCheck,
    ReadinessSummary,
)
from page_optimizer.services.scoring import count_internal_links, keyword_density
from page_optimizer.utils.html_text import count_words, html_to_text

TITLE_RANGE = (50, 60)
TITLE_HARD_RANGE = (40, 70)
META_RANGE = (150, 160)
META_HARD_RANGE = (120, 180)
HEADING_RANGE = (3, 7)
MIN_WORDS = 1500
MIN_WORDS_HARD = 1000
MIN_READABILITY = 60
MIN_READABILITY_HARD = 40
DENSITY_RANGE = (0.5, 2.5)
MAX_DENSITY_HARD = 3.0
MIN_INTERNAL_LINKS = 2
QUALITY_FLOOR = 50


def _within(value: float, bounds: tuple[float, float]) -> bool:
    return bounds[0] <= value <= bounds[1]


def _check(
    name: str,
    passed: bool,
    actual: str | int | float,
    expected: str,
    severity: str,
) -> ReadinessCheck:
    return ReadinessCheck(
        name=name, passed=passed, actual=actual, expected=expected, severity=severity
    )


def check_publish_readiness(
    bundle: ContentBundle,
    content: str | None = None,
    keyword: str | None = None,
    min_quality_score: int | None = None,
    site_url: str | None = None,
) -> PublishReadiness:
    """Run every readiness check against ``bundle``.

    Args:
        bundle: The completed job's bundle.
        content: HTML that will be published; defaults to the bundle's body.
        keyword: Target keyword; defaults to the bundle's keyword.
        min_quality_score: Defaults to ``publish_min_quality_score``.
        site_url: Host used to recognise internal links.
    """
    if min_quality_score is None:
        min_quality_score = get_settings().publish_min_quality_score
    keyword = (keyword if keyword is not None else bundle.keyword).strip()
    html = content if content is not None else bundle.optimized_content
    text = html_to_text(html)

    title_len = len(bundle.title)
    meta_len = len(bundle.meta_description)
    heading_count = len(bundle.headings)
    word_count = bundle.word_count or count_words(text)
    readability = bundle.readability_score
    quality = bundle.quality_score

    checks = [
        _check(
            "Title Length",
            _within(title_len, TITLE_RANGE),
            title_len,
            "50-60 characters",
            "warning" if _within(title_len, TITLE_HARD_RANGE) else "error",
        )
    ]
    if keyword:
        in_title = keyword.lower() in bundle.title.lower()
        checks.append(
            _check(
                "Title Contains Keyword",
                in_title,
                "Yes" if in_title else "No",
                "Keyword in title",
                "warning",
            )
        )
    checks += [
        _check(
            "Meta Description Length",
            _within(meta_len, META_RANGE),
            meta_len,
            "150-160 characters",
            "warning" if _within(meta_len, META_HARD_RANGE) else "error",
        ),
        _check(
            "H1 Present",
            bool(bundle.h1.strip()),
            "Yes" if bundle.h1.strip() else "No",
            "H1 heading required",
            "error",
        ),
        _check(
            "H2 Subheadings",
            _within(heading_count, HEADING_RANGE),
            heading_count,
            "3-7 subheadings",
            "error" if heading_count == 0 else "warning",
        ),
        _check(
            "Word Count",
            word_count >= MIN_WORDS,
            word_count,
            f">={MIN_WORDS} words",
            "error" if word_count < MIN_WORDS_HARD else "warning",
        ),
        _check(
            "Readability Score",
            readability >= MIN_READABILITY,
            readability,
            f">={MIN_READABILITY} (Flesch reading ease)",
            "error" if readability < MIN_READABILITY_HARD else "warning",
        ),
    ]
    if keyword:
        density = round(keyword_density(text, keyword), 2)
        checks.append(
            _check(
                "Keyword Density",
                _within(density, DENSITY_RANGE),
                f"{density}%",
                "0.5-2.5%",
                "error" if density > MAX_DENSITY_HARD else "warning",
            )
        )
    links = count_internal_links(html, site_url)
    checks += [
        _check(
            "Internal Links",
            links >= MIN_INTERNAL_LINKS,
            links,
            f">={MIN_INTERNAL_LINKS} internal links",
            "warning",
        ),
        _check(
            "Quality Score",
            quality >= min_quality_score,
            quality,
            f">={min_quality_score}",
            "error"
            if quality < QUALITY_FLOOR
            else "warning"
            if quality < min_quality_score
            else "info",
        ),
    ]

    errors = sum(1 for c in checks if not c.passed and c.severity == "error")
    warnings = sum(1 for c in checks if not c.passed and c.severity == "warning")
    passed = sum(1 for c in checks if c.passed)
    earned = sum(10 if c.passed else 5 if c.severity == "warning" else 0 for c in checks)

    return PublishReadiness(
        can_publish=errors == 0 and quality >= min_quality_score,
        overall_score=round(earned / (len(checks) * 10) * 100),
        checks=checks,
        summary=ReadinessSummary(errors=errors, warnings=warnings, passed=passed),
    )
