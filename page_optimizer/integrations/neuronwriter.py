"""NeuronWriter API client (keyword insight tool).

Every endpoint is a POST under the writer API with the key in ``X-API-KEY``.
Queries are created per keyword and take a minute or two to become
``ready``; callers poll ``get_query`` until then.
"""

import time
from typing import Any, cast

import httpx

from page_optimizer.core.config import get_settings
from page_optimizer.core.exceptions import AuthError, FetchError, MissingCredentialsError
from page_optimizer.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ENGINE = "google.com"
DEFAULT_LANGUAGE = "English"


class NeuronWriterClient:
    """Async client for the NeuronWriter writer API."""

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise MissingCredentialsError("A NeuronWriter API key is required")
        settings = get_settings()
        self._base_url = (base_url or settings.insights_api_url).rstrip("/")
        self._client = httpx.AsyncClient(
            headers={
                "X-API-KEY": api_key,
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=settings.insights_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "NeuronWriterClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> Any:
        url = f"{self._base_url}{endpoint}"
        start_time = time.monotonic()
        try:
            response = await self._client.post(url, json=payload)
        except httpx.RequestError as e:
            raise FetchError(f"NeuronWriter request failed: {e}", url=url) from e

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.debug(
            f"NeuronWriter {endpoint}",
            extra={
                "endpoint": endpoint,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

        if response.status_code in (401, 403):
            raise AuthError(
                "Invalid NeuronWriter API key", status_code=response.status_code
            )
        if response.status_code == 429:
            raise FetchError(
                "NeuronWriter rate limit exceeded", url=url, status_code=429
            )
        if response.status_code >= 400:
            raise FetchError(
                f"NeuronWriter API error: {response.status_code}",
                url=url,
                status_code=response.status_code,
            )
        return response.json()

    async def list_ready_queries(
        self, project_id: str, keyword: str
    ) -> list[dict[str, Any]]:
        data = await self._post(
            "/list-queries",
            {"project": project_id, "status": "ready", "keyword": keyword},
        )
        return cast(list[dict[str, Any]], data) if isinstance(data, list) else []

    async def new_query(
        self,
        project_id: str,
        keyword: str,
        engine: str = DEFAULT_ENGINE,
        language: str = DEFAULT_LANGUAGE,
    ) -> str:
        """Create a query and return its id."""
        data = await self._post(
            "/new-query",
            {
                "project": project_id,
                "keyword": keyword,
                "engine": engine,
                "language": language,
            },
        )
        query_id = data.get("query") if isinstance(data, dict) else None
        if not query_id:
            raise FetchError("NeuronWriter did not return a query id")
        return str(query_id)

    async def get_query(self, query_id: str) -> dict[str, Any]:
        data = await self._post("/get-query", {"query": query_id})
        return cast(dict[str, Any], data) if isinstance(data, dict) else {}
