"""ResponseParser: recover a ContentBundleCandidate from raw generator text.

Generators wrap JSON in code fences, add prose around it or leave trailing
commas. The parser strips fences, slices the outermost object, removes
trailing commas and then decodes. Section entries that do not match their
type's shape are dropped and counted.
"""

import json
import re
from typing import Any

from pydantic import TypeAdapter, ValidationError

from page_optimizer.core.exceptions import ParseError
from page_optimizer.core.logging import get_logger
from page_optimizer.schemas.content import ContentBundleCandidate, Section

logger = get_logger(__name__)

_FENCE_START_RE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*")
_FENCE_END_RE = re.compile(r"\s*```\s*$")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")

_section_adapter: TypeAdapter[Any] = TypeAdapter(Section)


def _strip_fences(text: str) -> str:
    return _FENCE_END_RE.sub("", _FENCE_START_RE.sub("", text))


def _slice_object(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ParseError("Generator response contains no JSON object")
    return text[start : end + 1]


def _parse_sections(raw_sections: Any) -> tuple[list[Any], int]:
    if not isinstance(raw_sections, list):
        return [], 0
    sections: list[Any] = []
    dropped = 0
    for entry in raw_sections:
        try:
            sections.append(_section_adapter.validate_python(entry))
        except ValidationError:
            dropped += 1
    return sections, dropped


def _legacy_sections(data: dict[str, Any]) -> list[dict[str, Any]]:
    """Sections from the flat ``tldrSummary``/``keyTakeaways`` layout."""
    legacy: list[dict[str, Any]] = []
    if data.get("tldrSummary"):
        legacy.append({"type": "tldr", "content": data["tldrSummary"]})
    if data.get("keyTakeaways"):
        legacy.append({"type": "takeaways", "data": data["keyTakeaways"]})
    return legacy


def parse(raw_text: str) -> ContentBundleCandidate:
    """Parse generator output into a candidate bundle.

    Raises:
        ParseError: No JSON object, undecodable JSON, or a missing
            ``title`` or body field.
    """
    text = _slice_object(_strip_fences(raw_text or ""))
    text = _TRAILING_COMMA_RE.sub(r"\1", text)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Generator response is not valid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise ParseError("Generator response is not a JSON object")

    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ParseError("Generator response is missing 'title'", missing_field="title")

    body = data.get("optimizedContent") or data.get("content")
    if not isinstance(body, str) or not body.strip():
        raise ParseError(
            "Generator response is missing 'optimizedContent'",
            missing_field="optimizedContent",
        )

    raw_sections = data.get("sections")
    if raw_sections is None:
        raw_sections = _legacy_sections(data)
    sections, dropped = _parse_sections(raw_sections)
    if dropped:
        logger.warning(
            "Dropped malformed sections from generator output",
            extra={"dropped_sections": dropped, "kept_sections": len(sections)},
        )

    headings = data.get("headings") or data.get("h2s") or []
    if not isinstance(headings, list):
        headings = []

    return ContentBundleCandidate(
        title=title.strip(),
        optimized_content=body,
        meta_description=str(data.get("metaDescription") or ""),
        h1=str(data.get("h1") or ""),
        headings=[str(h).strip() for h in headings if str(h).strip()],
        sections=sections,
        excerpt=str(data.get("excerpt") or ""),
        dropped_sections=dropped,
    )
