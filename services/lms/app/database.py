from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.database.postgres import get_async_session_factory

# Registers every LMS table on Base.metadata (Alembic and create_all rely on it).
import app.models  # noqa: F401

_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_db(database_url: str, **engine_kwargs: Any) -> async_sessionmaker[AsyncSession]:
    global _session_factory
    _session_factory = get_async_session_factory(database_url, **engine_kwargs)
    return _session_factory


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("Database not initialized; call init_db() first")
    return _session_factory


async def dispose_db() -> None:
    global _session_factory
    if _session_factory is None:
        return
    engine = _session_factory.kw.get("bind")
    _session_factory = None
    if engine is not None:
        await engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request; committed when the handler returns cleanly."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
