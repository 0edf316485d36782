"""Target keyword derivation.

Pure and deterministic: the same title and slug always give the same
keyword. Request values take precedence through ``first_non_empty``.
"""

import re

# Title suffix separators, e.g. "Post Title | Site Name"
TITLE_SEPARATORS = (" - ", " – ", " — ", " | ", " :: ", " » ")
MIN_KEYWORD_LENGTH = 10

_PUNCT_RE = re.compile(r"[^\w\s'\-]|_")
_LOOSE_JOINER_RE = re.compile(r"(?<!\w)['\-]+|['\-]+(?!\w)")
_WHITESPACE_RE = re.compile(r"\s+")


def first_non_empty(*candidates: str | None) -> str:
    """First candidate that is not None or blank, stripped; '' when none."""
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return ""


def strip_title_suffix(title: str) -> str:
    """Keep the part of ``title`` before the first separator."""
    cut = len(title)
    for separator in TITLE_SEPARATORS:
        index = title.find(separator)
        if 0 < index < cut:
            cut = index
    return title[:cut]


def normalize_phrase(text: str) -> str:
    """Lowercase, drop punctuation (keeping internal hyphens/apostrophes)."""
    text = _PUNCT_RE.sub(" ", text.lower())
    text = _LOOSE_JOINER_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def slug_phrase(slug: str | None) -> str:
    """Slug as words, without a trailing numeric id."""
    if not slug:
        return ""
    words = [w for w in re.split(r"[-_\s]+", slug.lower()) if w]
    if len(words) > 1 and words[-1].isdigit():
        words = words[:-1]
    return normalize_phrase(" ".join(words))


def derive(title: str | None, slug: str | None) -> str:
    """Derive a target keyword from a page title, falling back to its slug."""
    phrase = normalize_phrase(strip_title_suffix(title or ""))
    if len(phrase) >= MIN_KEYWORD_LENGTH:
        return phrase
    return slug_phrase(slug) or phrase


def resolve_keyword(explicit: str | None, title: str | None, slug: str | None) -> str:
    return first_non_empty(explicit, derive(title, slug))


def resolve_title(
    fetched_title: str | None, page_title: str | None, slug: str | None
) -> str:
    return first_non_empty(fetched_title, page_title, slug_phrase(slug).title())
