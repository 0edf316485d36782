"""Async engine, session factory and the request-scoped session dependency.

Request handlers get a session from ``get_session``. Background jobs open
their own short sessions from ``db_manager.session_factory()`` and never
share one with the request that dispatched them.
"""

import time
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from page_optimizer.core.config import get_settings
from page_optimizer.core.logging import db_logger, get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


def async_database_url(url: str) -> str:
    """Rewrite a plain Postgres URL to use the asyncpg driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


class DatabaseManager:
    """Owns the process-wide engine; created in the app lifespan."""

    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("Database not initialized. Call init_db() first.")
        return self._session_factory

    def init_db(self) -> None:
        settings = get_settings()
        db_url = async_database_url(str(settings.database_url))
        connect_args: dict[str, object] = {
            "timeout": settings.db_connect_timeout,
            "command_timeout": settings.db_command_timeout,
        }
        if settings.environment == "production":
            connect_args["ssl"] = "require"

        self._engine = create_async_engine(
            db_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_pre_ping=True,
            echo=settings.debug,
            connect_args=connect_args,
        )
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database engine ready", extra={"pool_size": settings.db_pool_size})

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database connections closed")

    async def check_connection(self) -> bool:
        """Run ``SELECT 1``; False (and an error log) when it fails."""
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError, RuntimeError) as e:
            db_logger.connection_error(e, str(get_settings().database_url))
            return False
        return True


db_manager = DatabaseManager()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Session for one request; committed when the handler returns.

    A SQLAlchemy error rolls the transaction back and propagates.
    """
    threshold_ms = get_settings().db_slow_query_threshold_ms
    async with db_manager.session_factory() as session:
        start_time = time.monotonic()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            db_logger.transaction_failure(e, context="request session rollback")
            raise
        finally:
            duration_ms = (time.monotonic() - start_time) * 1000
            if duration_ms > threshold_ms:
                db_logger.slow_query("request session", duration_ms)
