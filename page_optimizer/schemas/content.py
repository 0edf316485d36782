"""Pydantic schemas for generated content.

- Section: closed tagged union of body blocks, discriminated by ``type``
- ContentBundleCandidate: shape-checked generator output (parser boundary)
- ContentBundle: terminal artifact stored in ``Job.result``
- ValidationResult: structural compliance report for one bundle

Each section type fixes the shape of its ``data`` payload; nothing
downstream inspects ``data`` without first dispatching on ``type``.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SECTION_TYPES: tuple[str, ...] = (
    "tldr",
    "takeaways",
    "heading",
    "paragraph",
    "quote",
    "callout",
    "checklist",
    "faq",
    "table",
    "cta",
    "summary",
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# SECTION PAYLOADS
# =============================================================================


class HeadingData(_CamelModel):
    level: int = Field(default=2, ge=2, le=4)


class QuoteAttribution(_CamelModel):
    author: str | None = None
    source: str | None = None


class CalloutData(_CamelModel):
    style: Literal["info", "tip", "warning"] = "info"


class FaqItem(_CamelModel):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)


class TableData(_CamelModel):
    headers: list[str] = Field(..., min_length=1)
    rows: list[list[str]] = Field(default_factory=list)


class CtaData(_CamelModel):
    label: str | None = None
    url: str | None = None


# =============================================================================
# SECTIONS
# =============================================================================


class TldrSection(_CamelModel):
    type: Literal["tldr"] = "tldr"
    content: str = Field(..., min_length=1)


class TakeawaysSection(_CamelModel):
    type: Literal["takeaways"] = "takeaways"
    data: list[str] = Field(..., min_length=1)


class HeadingSection(_CamelModel):
    type: Literal["heading"] = "heading"
    content: str = Field(..., min_length=1)
    data: HeadingData = Field(default_factory=HeadingData)


class ParagraphSection(_CamelModel):
    type: Literal["paragraph"] = "paragraph"
    content: str = Field(..., min_length=1)


class QuoteSection(_CamelModel):
    type: Literal["quote"] = "quote"
    content: str = Field(..., min_length=1)
    data: QuoteAttribution = Field(default_factory=QuoteAttribution)


class CalloutSection(_CamelModel):
    type: Literal["callout"] = "callout"
    content: str = Field(..., min_length=1)
    data: CalloutData = Field(default_factory=CalloutData)


class ChecklistSection(_CamelModel):
    type: Literal["checklist"] = "checklist"
    data: list[str] = Field(..., min_length=1)


class FaqSection(_CamelModel):
    type: Literal["faq"] = "faq"
    data: list[FaqItem] = Field(..., min_length=1)


class TableSection(_CamelModel):
    type: Literal["table"] = "table"
    content: str | None = None
    data: TableData


class CtaSection(_CamelModel):
    type: Literal["cta"] = "cta"
    content: str = Field(..., min_length=1)
    data: CtaData = Field(default_factory=CtaData)


class SummarySection(_CamelModel):
    type: Literal["summary"] = "summary"
    content: str = Field(..., min_length=1)


Section = Annotated[
    Union[
        TldrSection,
        TakeawaysSection,
        HeadingSection,
        ParagraphSection,
        QuoteSection,
        CalloutSection,
        ChecklistSection,
        FaqSection,
        TableSection,
        CtaSection,
        SummarySection,
    ],
    Field(discriminator="type"),
]


# =============================================================================
# BUNDLES
# =============================================================================


class ContentBundleCandidate(_CamelModel):
    """Generator output after shape checks, before scoring."""

    title: str
    optimized_content: str
    meta_description: str = ""
    h1: str = ""
    headings: list[str] = Field(default_factory=list)
    sections: list[Section] = Field(default_factory=list)
    excerpt: str = ""
    dropped_sections: int = 0


class ContentBundle(_CamelModel):
    """Terminal artifact of a completed job."""

    title: str
    meta_description: str = ""
    headings: list[str] = Field(default_factory=list)
    body_sections: list[Section] = Field(default_factory=list)
    quality_score: int = Field(default=0, ge=0, le=100)
    seo_score: int = Field(default=0, ge=0, le=100)
    readability_score: int = Field(default=0, ge=0, le=100)
    word_count: int = Field(default=0, ge=0)
    keyword: str = ""
    h1: str = ""
    excerpt: str = ""
    optimized_content: str = ""
    validation_issues: list[str] = Field(default_factory=list)
    insights_used: bool = False

    def section_types(self) -> set[str]:
        return {section.type for section in self.body_sections}

    def sections_of(self, section_type: str) -> list[Section]:
        return [s for s in self.body_sections if s.type == section_type]


class ValidationResult(BaseModel):
    """Structural compliance report; issues never abort a job."""

    valid: bool
    issues: list[str] = Field(default_factory=list)
    score: int = Field(..., ge=0, le=100)
