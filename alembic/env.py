"""Alembic environment for the page optimizer schema.

The database URL always comes from ``DATABASE_URL`` (via Settings), never
from alembic.ini. Online migrations run on an asyncpg engine.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from page_optimizer.core.config import get_settings
from page_optimizer.core.database import Base, async_database_url
from page_optimizer.core.logging import db_logger
from page_optimizer.models import ActivityLog, Job, Page, Site  # noqa: F401

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    return async_database_url(str(get_settings().database_url))


def _migrate(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def _migrate_online() -> None:
    settings = get_settings()
    head = context.get_head_revision() or "base"
    db_logger.migration_start(version=str(head), description=f"upgrade to {head}")

    engine = create_async_engine(
        _database_url(),
        poolclass=pool.NullPool,
        connect_args={
            "timeout": settings.db_connect_timeout,
            "command_timeout": settings.db_command_timeout,
        },
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate)
    except Exception:
        db_logger.migration_end(version=str(head), success=False)
        raise
    finally:
        await engine.dispose()
    db_logger.migration_end(version=str(head), success=True)


if context.is_offline_mode():
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    asyncio.run(_migrate_online())
