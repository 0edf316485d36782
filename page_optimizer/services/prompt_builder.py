"""PromptBuilder: system and user prompts for one optimization.

The system prompt fixes the output contract: a single JSON object whose
``sections`` use only the closed set of section types, each with its own
``data`` shape. The user prompt carries the page-specific material.
"""

import json
from collections.abc import Sequence
from dataclasses import dataclass

from page_optimizer.core.config import get_settings
from page_optimizer.services.insights import Insights
from page_optimizer.services.internal_links import InternalLink
from page_optimizer.utils.html_text import html_to_text, truncate_text

MIN_LINKS_TO_WEAVE = 3
MAX_LINKS_TO_WEAVE = 8

# Shape of each section type, shown verbatim to the generator
SECTION_SHAPES: dict[str, dict[str, object]] = {
    "tldr": {"type": "tldr", "content": "2-3 sentence summary of the whole article"},
    "takeaways": {"type": "takeaways", "data": ["takeaway", "takeaway", "takeaway"]},
    "heading": {"type": "heading", "content": "Heading text", "data": {"level": 2}},
    "paragraph": {"type": "paragraph", "content": "<p>HTML paragraph</p>"},
    "quote": {
        "type": "quote",
        "content": "Quoted text",
        "data": {"author": "Name", "source": "Publication"},
    },
    "callout": {
        "type": "callout",
        "content": "Short highlighted note",
        "data": {"style": "info | tip | warning"},
    },
    "checklist": {"type": "checklist", "data": ["step", "step"]},
    "faq": {"type": "faq", "data": [{"question": "...?", "answer": "..."}]},
    "table": {
        "type": "table",
        "content": "Optional caption",
        "data": {"headers": ["Column", "Column"], "rows": [["cell", "cell"]]},
    },
    "cta": {
        "type": "cta",
        "content": "Call to action text",
        "data": {"label": "Button label", "url": "https://..."},
    },
    "summary": {"type": "summary", "content": "Closing summary paragraph"},
}

OUTPUT_FIELDS = (
    "title",
    "metaDescription",
    "h1",
    "headings",
    "sections",
    "optimizedContent",
    "excerpt",
)


@dataclass
class Prompt:
    system_prompt: str
    user_prompt: str


class PromptBuilder:
    """Builds prompts under the structured-output contract."""

    def __init__(self, max_source_chars: int | None = None) -> None:
        self._max_source_chars = (
            get_settings().source_content_max_chars
            if max_source_chars is None
            else max_source_chars
        )

    def build(
        self,
        target_word_count_range: tuple[int, int],
        required_content_blocks: Sequence[str],
        source_content: str,
        keyword: str,
        internal_links: Sequence[InternalLink],
        insights: Insights | None = None,
    ) -> Prompt:
        return Prompt(
            system_prompt=self._system_prompt(
                target_word_count_range, required_content_blocks
            ),
            user_prompt=self._user_prompt(
                source_content, keyword, internal_links, insights
            ),
        )

    def _system_prompt(
        self, word_range: tuple[int, int], required_blocks: Sequence[str]
    ) -> str:
        low, high = word_range
        shapes = "\n".join(json.dumps(shape) for shape in SECTION_SHAPES.values())
        required = ", ".join(required_blocks) if required_blocks else "none"
        return f"""You are an expert SEO content editor. Rewrite the article you are given into a longer, better structured version that ranks for its target keyword.

LENGTH: the article body must contain between {low} and {high} words.

SECTIONS: the "sections" array may only contain objects of these types, with exactly these shapes:
{shapes}

REQUIRED BLOCKS: include at least one section of each of these types: {required}.
Use at least 4 heading sections. Put the tldr first and the summary near the end.
A faq section should hold at least 3 questions and a takeaways section at least 3 items.

OUTPUT: respond with a single JSON object and nothing else, with these fields:
{", ".join(OUTPUT_FIELDS)}.
- "title": SEO title, 50-60 characters
- "metaDescription": 150-160 characters
- "h1": the on-page headline
- "headings": the H2/H3 heading texts in order
- "optimizedContent": the full article as HTML
- "excerpt": one or two sentences
Do not wrap the JSON in code fences and do not add any text before or after it."""

    def _user_prompt(
        self,
        source_content: str,
        keyword: str,
        internal_links: Sequence[InternalLink],
        insights: Insights | None,
    ) -> str:
        source_text = truncate_text(html_to_text(source_content), self._max_source_chars)
        parts = [
            f'TARGET KEYWORD: "{keyword}"',
            f"ORIGINAL CONTENT:\n{source_text or '(empty)'}",
        ]

        if internal_links:
            lines = "\n".join(f"{link.title}: {link.url}" for link in internal_links)
            parts.append(
                "INTERNAL LINKS (weave "
                f"{MIN_LINKS_TO_WEAVE} to {MAX_LINKS_TO_WEAVE} of these into the body "
                f"as natural anchors):\n{lines}"
            )

        if insights is not None:
            insight_lines = [f"Target word count: {insights.target_word_count}"]
            for label, value in (
                ("Title terms", insights.title_terms),
                ("H1 terms", insights.h1_terms),
                ("H2 terms", insights.h2_terms),
                ("Content terms", insights.content_terms),
                ("Extended terms", insights.extended_terms),
                ("Entities", insights.entities),
            ):
                if value:
                    insight_lines.append(f"{label}: {value}")
            questions = insights.questions
            if questions:
                insight_lines.append(
                    "Questions to answer:\n" + "\n".join(f"- {q}" for q in questions)
                )
            parts.append("KEYWORD INSIGHTS:\n" + "\n".join(insight_lines))

        parts.append("Return the JSON object now.")
        return "\n\n".join(parts)
