"""
Async PostgreSQL connection pool for Funnel Guard storage.

All database access flows through a single asyncpg pool held in a module
level singleton.

Functions:
- init_db(): Create the pool at application startup
- get_db_pool(): Get the pool (initializes lazily if needed)
- close_db(): Close the pool at shutdown
- is_db_configured(): Whether a database URL is set at all

Pool settings:
- min_size: 2
- max_size: 10
- command_timeout: 60 seconds

The database is optional. Without FUNNEL_GUARD_DATABASE_URL the API still
serves stateless diagnoses; init_db() raises DatabaseNotConfiguredError so
that storage routes can answer 503.

Usage:
    await init_db()

    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch("SELECT * FROM events WHERE funnel_id = $1", funnel_id)

    await close_db()
"""

import logging
from typing import Optional

import asyncpg
from asyncpg import Pool

from funnel_guard.core.config import get_settings

logger = logging.getLogger(__name__)


class DatabaseNotConfiguredError(RuntimeError):
    """Raised when storage is used without FUNNEL_GUARD_DATABASE_URL."""


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() is called
_pool: Optional[Pool] = None


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================

def is_db_configured() -> bool:
    """True when a database URL is present in the settings."""
    return bool(get_settings().database_url)


async def init_db() -> Pool:
    """
    Create the asyncpg pool from FUNNEL_GUARD_DATABASE_URL.

    Idempotent: returns the existing pool when already initialized.

    Returns:
        The shared pool.

    Raises:
        DatabaseNotConfiguredError: If no database URL is configured.
        asyncpg.PostgresError: If the server rejects the connection.
        OSError: If the host cannot be reached.
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise DatabaseNotConfiguredError(
                "FUNNEL_GUARD_DATABASE_URL is not set; storage is unavailable"
            )

        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=2,
            max_size=10,
            command_timeout=60,
        )
        logger.info("Database connection pool created")

    return _pool


async def get_db_pool() -> Pool:
    """
    Return the shared pool, creating it on first use.

    Callers borrow connections with pool.acquire(); only close_db() closes
    the pool.
    """
    global _pool

    if _pool is None:
        await init_db()

    assert _pool is not None, "Pool should be initialized after init_db()"

    return _pool


async def close_db() -> None:
    """
    Close the shared pool.

    Idempotent. After closing, get_db_pool() creates a new pool.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Database connection pool closed")
