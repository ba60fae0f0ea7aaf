"""
Database Session Management

Builds the async SQLAlchemy engine and session factory for PostgreSQL.

Nothing here is created at import time; the client owns the engine and
disposes it on shutdown.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import Settings, settings as default_settings


def build_engine(config: Optional[Settings] = None) -> AsyncEngine:
    config = config or default_settings
    return create_async_engine(
        config.database_url,
        echo=config.db_echo,
        pool_pre_ping=True,
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory used by the collection: one session per operation.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
