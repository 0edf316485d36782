"""HTML helpers shared by the fetcher, prompt builder and scorers.

Uses BeautifulSoup (html.parser) so malformed host markup never raises.
"""

import re

from bs4 import BeautifulSoup

_NON_CONTENT_TAGS = ("script", "style", "noscript", "iframe")
_WHITESPACE_RE = re.compile(r"\s+")


def html_to_text(html: str | None) -> str:
    """Visible text of an HTML fragment with whitespace collapsed."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_NON_CONTENT_TAGS):
        tag.decompose()
    return _WHITESPACE_RE.sub(" ", soup.get_text(" ")).strip()


def count_words(text: str | None) -> int:
    """Word count of plain text or HTML."""
    if not text:
        return 0
    if "<" in text and ">" in text:
        text = html_to_text(text)
    return len(text.split())


def extract_links(html: str | None) -> list[str]:
    """All ``href`` values of anchors in an HTML fragment, in document order."""
    if not html:
        return []
    soup = BeautifulSoup(html, "html.parser")
    return [str(a["href"]) for a in soup.find_all("a", href=True)]


def truncate_text(text: str, max_chars: int) -> str:
    """Cut ``text`` at a word boundary no longer than ``max_chars``."""
    if len(text) <= max_chars:
        return text
    cut = text[:max_chars]
    space = cut.rfind(" ")
    if space > max_chars // 2:
        cut = cut[:space]
    return cut.rstrip() + " ..."
