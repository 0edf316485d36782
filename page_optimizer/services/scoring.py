"""Deterministic scores: discovery quick score, readability and on-page SEO.

None of these make network calls. The quick score only looks at the URL so
that freshly crawled pages can be ranked before any content is fetched.
"""

import re
from typing import Any
from urllib.parse import urlparse

from page_optimizer.schemas.content import ContentBundle
from page_optimizer.utils.html_text import extract_links, html_to_text

_YEAR_RE = re.compile(r"(?<!\d)(19|20)\d{2}(?!\d)")
_VOWEL_GROUP_RE = re.compile(r"[aeiouy]+", re.IGNORECASE)
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_WORD_RE = re.compile(r"[A-Za-z0-9']+")
_GUIDE_TOKENS = ("guide", "how-to", "tutorial", "tips", "best")


def _clamp(value: float, low: int = 0, high: int = 100) -> int:
    return int(max(low, min(high, round(value))))


# =============================================================================
# QUICK SCORE
# =============================================================================


def quick_score(url: str) -> dict[str, Any]:
    """Score a page from its URL shape alone, in [25, 75]."""
    path = urlparse(url).path.lower()
    segments = [s for s in path.split("/") if s]
    slug = segments[-1] if segments else ""

    variation = len(slug) % 20
    variation += 5 if ("/category/" in path or "/tag/" in path) else 0
    variation += -5 if len(segments) > 2 else 5
    variation += 3 if _YEAR_RE.search(path) else 0
    variation += 4 if any(token in slug for token in _GUIDE_TOKENS) else 0

    overall = _clamp(45 + variation, 25, 75)
    return {
        "overall": overall,
        "components": {
            "content_depth": 40 + len(url) % 30,
            "readability": 50 + variation % 20,
            "structure": 45 + len(url) % 25,
            "seo_on_page": 40 + variation % 25,
            "internal_links": 35 + len(url) % 20,
        },
    }


# =============================================================================
# READABILITY
# =============================================================================


def _syllables(word: str) -> int:
    return max(1, len(_VOWEL_GROUP_RE.findall(word)))


def readability_score(text: str) -> int:
    """Flesch-Kincaid grade mapped to 0-100 (lower grade scores higher)."""
    if "<" in text and ">" in text:
        text = html_to_text(text)
    words = _WORD_RE.findall(text)
    if not words:
        return 0
    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]
    sentence_count = max(1, len(sentences))
    syllables = sum(_syllables(w) for w in words)

    grade = 0.39 * (len(words) / sentence_count) + 11.8 * (syllables / len(words)) - 15.59
    return _clamp(100 - grade * 5)


# =============================================================================
# SEO
# =============================================================================


def _title_score(title: str) -> int:
    length = len(title)
    if 50 <= length <= 60:
        return 100
    if length < 10:
        return 20
    if 30 <= length <= 70:
        return 75
    return 50


def _meta_score(meta: str) -> int:
    length = len(meta)
    if length == 0:
        return 0
    if 150 <= length <= 160:
        return 100
    if 120 <= length <= 200:
        return 75
    return 50


def _heading_score(count: int) -> int:
    if 3 <= count <= 7:
        return 100
    if count == 0:
        return 30
    if count <= 10:
        return 70
    return 60


def keyword_density(text: str, keyword: str) -> float:
    """Keyword phrase occurrences as a percentage of words."""
    words = text.split()
    if not words or not keyword.strip():
        return 0.0
    pattern = r"\b" + re.escape(keyword.lower().strip()) + r"\b"
    occurrences = len(re.findall(pattern, text.lower()))
    return occurrences / len(words) * 100


def _keyword_score(bundle: ContentBundle, keyword: str, body_text: str) -> int:
    keyword = keyword.lower().strip()
    if not keyword:
        return 50
    score = 0
    if keyword in bundle.title.lower():
        score += 25
    if keyword in bundle.meta_description.lower():
        score += 20
    if keyword in body_text[:500].lower():
        score += 25
    if 0.5 <= keyword_density(body_text, keyword) <= 2.5:
        score += 30
    return score


def count_internal_links(html: str, site_url: str | None = None) -> int:
    """Links that are relative or point at ``site_url``'s host."""
    host = urlparse(site_url).netloc.lower() if site_url else None
    count = 0
    for href in extract_links(html):
        if not href or href.startswith("#"):
            continue
        parsed = urlparse(href)
        if not parsed.netloc:
            count += 1
        elif host is None or parsed.netloc.lower() == host:
            count += 1
    return count


def _link_score(count: int) -> int:
    if count >= 2:
        return 100
    return 60 if count == 1 else 30


def seo_score(bundle: ContentBundle, keyword: str, site_url: str | None = None) -> int:
    """Mean of title, meta, heading, keyword and internal-link sub-scores."""
    body_text = html_to_text(bundle.optimized_content)
    parts = [
        _title_score(bundle.title),
        _meta_score(bundle.meta_description),
        _heading_score(len(bundle.headings)),
        _keyword_score(bundle, keyword, body_text),
        _link_score(count_internal_links(bundle.optimized_content, site_url)),
    ]
    return _clamp(sum(parts) / len(parts))
