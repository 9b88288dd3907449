"""Replica database connection management using SQLModel with asyncpg/aiosqlite."""

import ssl
from typing import AsyncGenerator, Optional
from urllib.parse import urlparse, urlunparse

from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from app.config.settings import settings
from app.config.logger import app_logger

_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker] = None


def normalize_async_url(db_url: str) -> str:
    """Return an async-driver URL for SQLAlchemy.

    SQLite URLs are returned as-is; Postgres URLs lose ``sslmode`` (asyncpg
    handles SSL via connect_args) and switch to the asyncpg driver. MySQL URLs
    (the blog database) switch to the aiomysql driver.
    """
    if db_url.startswith("sqlite"):
        return db_url

    parsed = urlparse(db_url)
    query_parts = [p for p in parsed.query.split("&") if not p.startswith("sslmode=") and p]
    query = "&".join(query_parts)
    clean_url = urlunparse(
        (
            parsed.scheme,
            parsed.netloc,
            parsed.path,
            parsed.params,
            query,
            parsed.fragment,
        )
    )

    if clean_url.startswith("postgresql://"):
        clean_url = clean_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif clean_url.startswith("postgres://"):
        clean_url = clean_url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif clean_url.startswith("mysql://"):
        clean_url = clean_url.replace("mysql://", "mysql+aiomysql://", 1)
    elif clean_url.startswith("mysql+pymysql://"):
        clean_url = clean_url.replace("mysql+pymysql://", "mysql+aiomysql://", 1)

    return clean_url


def create_engine_for_url(db_url: str, pool_size: int = 20) -> AsyncEngine:
    """Build an async engine for the given URL with driver-appropriate pooling."""
    db_url = normalize_async_url(db_url)

    if db_url.startswith("sqlite"):
        if ":memory:" in db_url or db_url.rstrip("/").endswith("sqlite+aiosqlite:"):
            # In-memory SQLite must share a single connection
            return create_async_engine(
                db_url,
                echo=False,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        return create_async_engine(db_url, echo=False)

    connect_args = {}
    if db_url.startswith("postgresql+asyncpg://"):
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
        connect_args = {"ssl": ssl_context}

    return create_async_engine(
        db_url,
        echo=False,
        pool_size=pool_size,
        max_overflow=0,
        connect_args=connect_args,
    )


def get_db_url() -> str:
    """Get the replica database URL."""
    db_url = settings.effective_database_url
    if not db_url:
        raise ValueError("DATABASE_URL not configured")
    return normalize_async_url(db_url)


async def create_replica_tables(engine: AsyncEngine) -> None:
    """Create the replica tables (never the external source table)."""
    from app.models import REPLICA_TABLES

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all, tables=REPLICA_TABLES)


async def init_db() -> None:
    """Initialize the replica database engine and create tables."""
    global _engine, _session_maker

    if _engine is not None:
        app_logger.debug("Database already initialized")
        return

    try:
        db_url = get_db_url()
        app_logger.info("Initializing database connection")

        _engine = create_engine_for_url(db_url)
        _session_maker = async_sessionmaker(
            _engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        await create_replica_tables(_engine)

        app_logger.info("Database initialized successfully")

    except ValueError:
        app_logger.warning("DATABASE_URL not set; database will not be initialized")
    except Exception as e:
        app_logger.error(f"Failed to initialize database: {e}")
        app_logger.error(f"Error type: {type(e).__name__}")
        app_logger.warning("DATABASE CONNECTION FAILED - article sync and retrieval disabled")
        _engine = None
        _session_maker = None


async def close_db() -> None:
    """Close the database engine."""
    global _engine, _session_maker

    if _engine:
        await _engine.dispose()
        _engine = None
        _session_maker = None
        app_logger.info("Database connection closed")


def get_session_maker() -> async_sessionmaker:
    """Return the initialized replica session factory."""
    if not _session_maker:
        raise RuntimeError("Database not initialized. Call init_db() during startup.")
    return _session_maker


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get a database session."""
    if not _session_maker:
        from fastapi import HTTPException
        raise HTTPException(
            status_code=503,
            detail="Database unavailable. The server is running in limited mode.",
        )

    async with _session_maker() as session:
        yield session


@asynccontextmanager
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Async context manager for internal background tasks."""
    async with get_session_maker()() as session:
        yield session


async def ping_database() -> tuple[bool, str]:
    """Run a lightweight health query against the database."""
    if not _engine or not _session_maker:
        return False, "Database not initialized"

    try:
        from sqlalchemy import text
        async with _session_maker() as session:
            result = await session.execute(text("SELECT 1"))
            row = result.scalar()
            if row == 1:
                return True, "Database connection healthy"
            return False, f"Unexpected response: {row}"
    except Exception as e:
        return False, f"Database query failed: {str(e)}"
