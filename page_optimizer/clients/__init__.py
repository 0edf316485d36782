"""Client-side helpers for the page optimizer API."""

from page_optimizer.clients.job_poller import JobPoller

__all__ = ["JobPoller"]
