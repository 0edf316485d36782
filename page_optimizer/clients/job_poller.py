"""JobPoller: follow a job's progress over the HTTP API.

The poll loop owns its httpx client and closes it however iteration ends,
including caller cancellation. Stopping a poller never affects the job
running on the server.
"""

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import httpx

from page_optimizer.core.logging import get_logger

logger = get_logger(__name__)

TERMINAL_STATUSES = frozenset({"completed", "failed"})


class JobPoller:
    """Polls ``GET /api/v1/jobs/{job_id}`` until the job is terminal."""

    def __init__(
        self,
        base_url: str,
        interval: float = 0.75,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._interval = interval
        self._transport = transport
        self._timeout = timeout

    async def poll(self, job_id: str) -> AsyncIterator[dict[str, Any]]:
        """Yield job snapshots until the job completes or fails.

        Progress is reported as non-decreasing even if a stale snapshot
        arrives out of order.
        """
        client = httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        )
        highest = 0
        try:
            while True:
                response = await client.get(f"/api/v1/jobs/{job_id}")
                response.raise_for_status()
                snapshot: dict[str, Any] = response.json()
                highest = max(highest, int(snapshot.get("progress") or 0))
                snapshot["progress"] = highest
                yield snapshot
                if snapshot.get("status") in TERMINAL_STATUSES:
                    return
                await asyncio.sleep(self._interval)
        finally:
            await client.aclose()
            logger.debug("Job poller closed", extra={"job_id": job_id})

    async def wait(self, job_id: str, timeout: float | None = None) -> dict[str, Any]:
        """Final snapshot of the job.

        Raises:
            TimeoutError: The job did not finish within ``timeout`` seconds.
        """

        async def _last() -> dict[str, Any]:
            last: dict[str, Any] = {}
            async for snapshot in self.poll(job_id):
                last = snapshot
            return last

        return await asyncio.wait_for(_last(), timeout=timeout)
