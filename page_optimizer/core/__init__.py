"""Core utilities and configuration."""

from page_optimizer.core.config import Settings, get_settings
from page_optimizer.core.database import Base, db_manager, get_session
from page_optimizer.core.logging import (
    db_logger,
    generation_logger,
    get_logger,
    pipeline_logger,
    redis_logger,
    setup_logging,
)
from page_optimizer.core.redis import redis_manager

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "Base",
    "db_manager",
    "get_session",
    # Logging
    "db_logger",
    "generation_logger",
    "get_logger",
    "pipeline_logger",
    "redis_logger",
    "setup_logging",
    # Redis
    "redis_manager",
]
