"""Structural quality checks and scoring for generated bundles.

QualityValidator reports what a bundle is missing; ScoreCalculator rewards
what it has. Neither raises: a poor bundle is still a result.
"""

from collections.abc import Sequence

from page_optimizer.core.logging import get_logger
from page_optimizer.schemas.content import ContentBundle, ValidationResult

logger = get_logger(__name__)

DEFAULT_REQUIRED_BLOCKS: tuple[str, ...] = (
    "tldr",
    "takeaways",
    "quote",
    "faq",
    "table",
    "cta",
    "summary",
)

# Points lost when a required block type is absent
BLOCK_PENALTIES: dict[str, int] = {
    "tldr": 15,
    "summary": 12,
    "takeaways": 10,
    "faq": 10,
    "table": 8,
    "quote": 7,
    "cta": 5,
    "checklist": 5,
    "callout": 5,
}
DEFAULT_BLOCK_PENALTY = 5

SHORT_CONTENT_RATIO = 0.8
SHORT_CONTENT_PENALTY = 30
MIN_HEADINGS = 4
FEW_HEADINGS_PENALTY = 10
VALID_SCORE_THRESHOLD = 50

BASE_SCORE = 50
MAX_BLOCK_BONUS = 15


class QualityValidator:
    """Checks a bundle's length, required blocks and heading structure."""

    def validate(
        self,
        bundle: ContentBundle,
        min_word_count: int,
        required_blocks: Sequence[str] = DEFAULT_REQUIRED_BLOCKS,
    ) -> ValidationResult:
        score = 100
        issues: list[str] = []

        if bundle.word_count < min_word_count * SHORT_CONTENT_RATIO:
            score -= SHORT_CONTENT_PENALTY
            issues.append(
                f"Word count {bundle.word_count} is below 80% of the "
                f"{min_word_count}-word minimum"
            )

        present = bundle.section_types()
        for block in required_blocks:
            if block not in present:
                score -= BLOCK_PENALTIES.get(block, DEFAULT_BLOCK_PENALTY)
                issues.append(f"Missing required block: {block}")

        if len(bundle.headings) < MIN_HEADINGS:
            score -= FEW_HEADINGS_PENALTY
            issues.append(
                f"Only {len(bundle.headings)} headings (at least {MIN_HEADINGS} expected)"
            )

        score = max(0, score)
        result = ValidationResult(
            valid=score >= VALID_SCORE_THRESHOLD, issues=issues, score=score
        )
        logger.debug(
            "Bundle validated",
            extra={"score": score, "valid": result.valid, "issue_count": len(issues)},
        )
        return result


class ScoreCalculator:
    """Additive content score from base 50."""

    def score(
        self,
        bundle: ContentBundle,
        min_word_count: int,
        required_blocks: Sequence[str] = DEFAULT_REQUIRED_BLOCKS,
    ) -> int:
        score = BASE_SCORE
        present = bundle.section_types()

        if bundle.word_count >= min_word_count:
            score += 10
        elif bundle.word_count >= min_word_count * SHORT_CONTENT_RATIO:
            score += 5

        if "summary" in present or "tldr" in present:
            score += 8
        if "quote" in present:
            score += 5

        faq_items = sum(len(s.data) for s in bundle.sections_of("faq"))
        if faq_items >= 3:
            score += 5
        takeaways = sum(len(s.data) for s in bundle.sections_of("takeaways"))
        if takeaways >= 3:
            score += 5

        block_bonus = 2 * sum(1 for block in required_blocks if block in present)
        score += min(block_bonus, MAX_BLOCK_BONUS)

        return max(0, min(100, score))
