"""
Database configuration.

Async engine and session factory shared by services, jobs and scripts.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from mlm_ledger.config.settings import settings


def create_engine(
    url: str | None = None,
    echo: bool | None = None,
    null_pool: bool = False,
) -> AsyncEngine:
    """
    Create async engine.

    SQLite engines and null_pool engines (one per worker task) skip pool
    sizing options.

    Args:
        url: Database URL (defaults to settings.database_url)
        echo: Log SQL statements (defaults to settings.database_echo)
        null_pool: Open a fresh connection per checkout

    Returns:
        Configured AsyncEngine
    """
    url = url or settings.database_url
    echo = settings.database_echo if echo is None else echo

    if null_pool or url.startswith("sqlite"):
        return create_async_engine(url, echo=echo, poolclass=NullPool)

    return create_async_engine(
        url,
        echo=echo,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory bound to engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async_engine = create_engine()
async_session_maker = create_session_maker(async_engine)


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """
    Provide a session for one unit of work.

    Yields:
        AsyncSession; rolled back if the block raises
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
