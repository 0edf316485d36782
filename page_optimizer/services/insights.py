"""InsightProvider: keyword recommendations from NeuronWriter.

``get_insights`` reuses a ready query for the keyword when one exists and
otherwise starts a new one, which the caller then polls. Recommendations
are reduced to the fields the prompt uses: term lists, entities, the top
questions of each kind and the top competitors.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

import httpx

from page_optimizer.core.logging import get_logger
from page_optimizer.integrations.neuronwriter import NeuronWriterClient

logger = get_logger(__name__)

DEFAULT_TARGET_WORD_COUNT = 1500
DEFAULT_READABILITY_TARGET = 50
MAX_QUESTIONS = 10
MAX_COMPETITORS = 5


@dataclass
class Competitor:
    rank: int
    url: str
    title: str
    content_score: float | None = None


@dataclass
class Insights:
    """Formatted keyword recommendations."""

    keyword: str = ""
    target_word_count: int = DEFAULT_TARGET_WORD_COUNT
    readability_target: int = DEFAULT_READABILITY_TARGET
    title_terms: str = ""
    h1_terms: str = ""
    h2_terms: str = ""
    content_terms: str = ""
    extended_terms: str = ""
    entities: str = ""
    suggested_questions: list[str] = field(default_factory=list)
    people_also_ask: list[str] = field(default_factory=list)
    content_questions: list[str] = field(default_factory=list)
    competitors: list[Competitor] = field(default_factory=list)

    @property
    def questions(self) -> list[str]:
        """All questions, deduplicated, in source order."""
        return list(
            dict.fromkeys(
                self.suggested_questions + self.people_also_ask + self.content_questions
            )
        )


@dataclass
class InsightLookup:
    status: Literal["ready", "processing"]
    query_id: str
    insights: Insights | None = None


def _question_texts(items: Any) -> list[str]:
    if not isinstance(items, list):
        return []
    texts = [
        str(item.get("q", "")).strip() if isinstance(item, dict) else str(item).strip()
        for item in items
    ]
    return [t for t in texts if t][:MAX_QUESTIONS]


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def format_insights(data: dict[str, Any], keyword: str = "") -> Insights:
    """Reduce a raw ``get-query`` payload to Insights."""
    metrics = data.get("metrics") or {}
    terms = data.get("terms_txt") or {}
    ideas = data.get("ideas") or {}

    competitors = [
        Competitor(
            rank=_as_int(c.get("rank"), index + 1),
            url=str(c.get("url", "")),
            title=str(c.get("title", "")),
            content_score=c.get("content_score"),
        )
        for index, c in enumerate(data.get("competitors") or [])
        if isinstance(c, dict)
    ][:MAX_COMPETITORS]

    return Insights(
        keyword=keyword,
        target_word_count=_as_int(
            (metrics.get("word_count") or {}).get("target"), DEFAULT_TARGET_WORD_COUNT
        ),
        readability_target=_as_int(
            (metrics.get("readability") or {}).get("target"), DEFAULT_READABILITY_TARGET
        ),
        title_terms=terms.get("title") or "",
        h1_terms=terms.get("h1") or "",
        h2_terms=terms.get("h2") or "",
        content_terms=terms.get("content_basic_w_ranges") or terms.get("content_basic") or "",
        extended_terms=terms.get("content_extended") or "",
        entities=terms.get("entities") or "",
        suggested_questions=_question_texts(ideas.get("suggest_questions")),
        people_also_ask=_question_texts(ideas.get("people_also_ask")),
        content_questions=_question_texts(ideas.get("content_questions")),
        competitors=competitors,
    )


class InsightProvider:
    """Looks up or starts a NeuronWriter query for a keyword."""

    def __init__(
        self,
        api_key: str,
        project_id: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._project_id = project_id
        self._transport = transport

    def _client(self) -> NeuronWriterClient:
        return NeuronWriterClient(self._api_key, transport=self._transport)

    async def get_insights(self, keyword: str) -> InsightLookup:
        async with self._client() as client:
            queries = await client.list_ready_queries(self._project_id, keyword)
            wanted = keyword.strip().lower()
            match = next(
                (
                    q
                    for q in queries
                    if str(q.get("keyword", "")).strip().lower() == wanted
                    and q.get("query")
                ),
                None,
            )
            if match is not None:
                query_id = str(match["query"])
                data = await client.get_query(query_id)
                logger.info(
                    "Reusing ready insight query",
                    extra={"keyword": keyword, "query_id": query_id},
                )
                return InsightLookup("ready", query_id, format_insights(data, keyword))

            query_id = await client.new_query(self._project_id, keyword)
            logger.info(
                "Created insight query",
                extra={"keyword": keyword, "query_id": query_id},
            )
            return InsightLookup("processing", query_id)

    async def poll(self, query_id: str, keyword: str = "") -> InsightLookup:
        """Re-read a query; ready once the tool reports ``status == 'ready'``."""
        async with self._client() as client:
            data = await client.get_query(query_id)
        if data.get("status") == "ready":
            return InsightLookup("ready", query_id, format_insights(data, keyword))
        return InsightLookup("processing", query_id)
