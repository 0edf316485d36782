"""Repositories layer - Data access and persistence."""

from page_optimizer.repositories.job import JobRepository

__all__ = ["JobRepository"]
