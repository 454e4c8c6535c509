"""
Async database engine for the lesson engine.

The store opens every connection through the engine returned here. Alembic
runs synchronously and uses ``get_sync_database_url`` instead.
"""

import logging
import os

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger(__name__)

ASYNC_SCHEME = "postgresql+asyncpg://"
SYNC_SCHEME = "postgresql://"
# Still handed out by some hosting providers
LEGACY_SCHEME = "postgres://"

_engine: AsyncEngine | None = None


def _with_scheme(url: str, scheme: str) -> str:
    for prefix in (ASYNC_SCHEME, SYNC_SCHEME, LEGACY_SCHEME):
        if url.startswith(prefix):
            return scheme + url[len(prefix):]
    return url


def get_database_url() -> str:
    """DATABASE_URL rewritten for the asyncpg driver."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise ValueError("DATABASE_URL environment variable must be set")
    return _with_scheme(url, ASYNC_SCHEME)


def get_sync_database_url() -> str:
    """DATABASE_URL rewritten for psycopg2, used by Alembic migrations."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise ValueError("DATABASE_URL must be set for migrations")
    return _with_scheme(url, SYNC_SCHEME)


def get_engine() -> AsyncEngine:
    """Get or create the shared async engine."""
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            get_database_url(),
            echo=os.environ.get("SQL_ECHO", "").lower() == "true",
            # Six jobs at most run at once; each holds one connection at a time
            pool_size=int(os.environ.get("DB_POOL_SIZE", "5")),
            max_overflow=5,
            pool_timeout=30,
            pool_recycle=1800,
            pool_pre_ping=True,
        )
    return _engine


async def check_connection() -> bool:
    """Run a trivial query. Logs and returns False instead of raising."""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError, ValueError) as e:
        logger.warning(f"Database not reachable: {e}")
        return False
    return True


async def close_engine() -> None:
    """Dispose of the engine and its pooled connections. Call on shutdown."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
