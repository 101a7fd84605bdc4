"""Worker-safe database session factory for Celery tasks.

Creates a fresh async engine per task run to avoid the 'Future attached
to a different loop' error when asyncpg connections are shared
across event loops in forked Celery workers.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import get_settings


@asynccontextmanager
async def worker_session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a session factory bound to a private engine, disposed on exit.

    Usage:
        async with worker_session_factory() as session_factory:
            store = ExecutionStore(session_factory)
    """
    settings = get_settings()
    kwargs = {}
    if not settings.DATABASE_URL.startswith("sqlite"):
        kwargs.update(pool_size=5, max_overflow=5, pool_recycle=300)
    engine = create_async_engine(settings.DATABASE_URL, echo=False, **kwargs)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()
