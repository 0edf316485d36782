"""Utility modules for the application."""

from page_optimizer.utils.html_text import (
    count_words,
    extract_links,
    html_to_text,
    truncate_text,
)

__all__ = [
    "count_words",
    "extract_links",
    "html_to_text",
    "truncate_text",
]
