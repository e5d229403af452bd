"""Engine and session handling for the statement tables."""

import os
import logging
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy.ext.asyncio import (
    create_async_engine as sa_create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.pool import StaticPool

from . import models

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./statements.db"

# URL prefixes that need the asyncpg driver spelled out
_ASYNCPG_PREFIXES = ("postgresql://", "postgres://")

# Process-wide engine used by the API; the CLI and tests build their own
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def get_database_url() -> str:
    """Return the statement database URL.

    Reads DATABASE_URL and falls back to a local SQLite file. Hosted
    PostgreSQL URLs come without a driver, so they are pointed at asyncpg.
    """
    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        return DEFAULT_DATABASE_URL
    for prefix in _ASYNCPG_PREFIXES:
        if db_url.startswith(prefix):
            return "postgresql+asyncpg://" + db_url[len(prefix):]
    return db_url


def create_async_engine(
    database_url: Optional[str] = None,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
) -> AsyncEngine:
    """
    Build an engine for the statement tables.

    Args:
        database_url: Connection URL. Defaults to get_database_url().
        echo: Log emitted SQL.
        pool_size: Pooled connections kept open (server databases only).
        max_overflow: Extra connections allowed above pool_size.

    Returns:
        AsyncEngine instance.
    """
    url = database_url or get_database_url()
    options: Dict[str, Any] = {"echo": echo}

    if url.startswith("sqlite"):
        # One shared connection, otherwise ":memory:" loses its tables
        options.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        options.update(pool_size=pool_size, max_overflow=max_overflow)

    return sa_create_async_engine(url, **options)


def _make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows stay readable after commit; reports serialize them afterwards
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_async_session_factory(
    engine: Optional[AsyncEngine] = None,
) -> async_sessionmaker[AsyncSession]:
    """
    Return a session factory for the statement tables.

    Args:
        engine: Bind a fresh factory to this engine. When omitted, the
            factory set up by init_db() is used.

    Raises:
        RuntimeError: If no engine is given and init_db() has not run.
    """
    if engine is not None:
        return _make_session_factory(engine)

    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory


async def init_db(
    database_url: Optional[str] = None,
    echo: bool = False,
    create_tables: bool = True,
) -> None:
    """
    Open the process-wide engine and create missing statement tables.

    Args:
        database_url: Connection URL. Defaults to get_database_url().
        echo: Log emitted SQL.
        create_tables: Run ``create_all`` for statement_of_accounts and
            order_reconciliations.
    """
    global _engine, _session_factory

    _engine = create_async_engine(database_url, echo=echo)
    _session_factory = _make_session_factory(_engine)
    logger.info(f"Connected statement database ({_engine.url.get_backend_name()})")

    if create_tables:
        async with _engine.begin() as conn:
            await conn.run_sync(models.Base.metadata.create_all)
        logger.info("Statement tables are in place")


async def close_db() -> None:
    """Dispose of the process-wide engine, if one is open."""
    global _engine, _session_factory

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Statement database connection closed")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    The session commits when the endpoint returns and rolls back if it
    raises, so a rejected order comparison leaves no partial snapshot.
    """
    session_factory = get_async_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
