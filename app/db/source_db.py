"""Read-only connection to the external blog database that owns published articles."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.config.logger import app_logger
from app.config.settings import settings
from app.db.db import create_engine_for_url

_source_engine: Optional[AsyncEngine] = None
_source_session_maker: Optional[async_sessionmaker] = None


async def init_source_db() -> None:
    """Connect to the external source database if one is configured."""
    global _source_engine, _source_session_maker

    if _source_engine is not None:
        return

    url = settings.SOURCE_DATABASE_URL.strip()
    if not url:
        app_logger.info("SOURCE_DATABASE_URL not set; external article source disabled")
        return

    try:
        _source_engine = create_engine_for_url(url, pool_size=5)
        _source_session_maker = async_sessionmaker(
            _source_engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        app_logger.info("External source database initialized")
    except Exception as e:
        app_logger.error(f"Failed to initialize source database: {e}")
        _source_engine = None
        _source_session_maker = None


async def close_source_db() -> None:
    """Dispose of the source database engine."""
    global _source_engine, _source_session_maker

    if _source_engine:
        await _source_engine.dispose()
        _source_engine = None
        _source_session_maker = None
        app_logger.info("External source database connection closed")


def is_source_initialized() -> bool:
    """Return True once the source database has been configured."""
    return _source_session_maker is not None


def get_source_session_maker() -> async_sessionmaker:
    """Return the source session factory."""
    if not _source_session_maker:
        raise RuntimeError("Source database not initialized. Set SOURCE_DATABASE_URL.")
    return _source_session_maker


@asynccontextmanager
async def source_session() -> AsyncGenerator[AsyncSession, None]:
    """Async context manager yielding a session on the external database."""
    async with get_source_session_maker()() as session:
        yield session
