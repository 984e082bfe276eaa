"""Async database engine and session management.

PostgreSQL in production, SQLite (aiosqlite) for development and tests.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from arenabook.core.config import settings


def _engine_kwargs(url: str) -> dict:
    kwargs: dict = {"echo": settings.database_echo}
    if url.startswith("sqlite"):
        # In-memory databases live and die with their single connection
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            kwargs.update({"poolclass": StaticPool, "connect_args": {"check_same_thread": False}})
        return kwargs
    kwargs.update({"pool_size": 20, "max_overflow": 10, "pool_pre_ping": True})
    return kwargs


engine = create_async_engine(settings.database_url, **_engine_kwargs(settings.database_url))

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session. Used as a FastAPI dependency."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
