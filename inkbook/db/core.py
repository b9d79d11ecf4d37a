"""Core database connection pool management."""

import logging
from contextlib import asynccontextmanager

import psycopg
from psycopg_pool import AsyncConnectionPool

from inkbook.config import get_settings

_logger = logging.getLogger(__name__)

# Global connection pool
_pool: AsyncConnectionPool | None = None


def _get_dsn() -> str:
    """Get DSN from settings."""
    return get_settings().postgres.get_dsn()


async def init_pool() -> None:
    global _pool
    if _pool is not None:
        return
    settings = get_settings().postgres
    dsn = settings.get_dsn()
    _pool = AsyncConnectionPool(
        dsn,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        timeout=settings.pool_timeout,
        max_lifetime=settings.pool_max_lifetime,
        max_idle=settings.pool_max_idle,
        reconnect_timeout=settings.pool_reconnect_timeout,
        check=AsyncConnectionPool.check_connection,
        open=False,
    )
    await _pool.open()
    _logger.info(
        "Database connection pool initialized (min=%s, max=%s, timeout=%ss)",
        settings.pool_min_size,
        settings.pool_max_size,
        settings.pool_timeout,
    )
    # Import here to avoid circular imports
    from inkbook.db.migrations import ensure_schema

    await ensure_schema()


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        _logger.info("Database connection pool closed")


@asynccontextmanager
async def _get_connection(autocommit: bool = True):
    global _pool
    if _pool is not None:
        async with _pool.connection() as conn:
            if autocommit:
                await conn.set_autocommit(True)
            yield conn
    else:
        dsn = _get_dsn()
        async with await psycopg.AsyncConnection.connect(dsn, autocommit=autocommit) as conn:
            yield conn


@asynccontextmanager
async def transaction():
    """Yield a connection inside a single transaction block.

    Commits when the block exits normally, rolls back when it raises.
    """
    async with _get_connection() as conn:
        async with conn.transaction():
            yield conn


@asynccontextmanager
async def _use_connection(conn: psycopg.AsyncConnection | None = None):
    """Reuse the caller's connection (and its transaction) or open a fresh one."""
    if conn is not None:
        yield conn
    else:
        async with _get_connection() as fresh:
            yield fresh


def get_pool() -> AsyncConnectionPool | None:
    """Get the connection pool instance."""
    return _pool


def get_pool_stats() -> dict[str, object]:
    """Get current pool statistics for monitoring."""
    if _pool is None:
        return {"status": "not_initialized"}
    stats = _pool.get_stats()
    return {
        "status": "active",
        "size": stats["pool_size"],
        "available": stats["pool_available"],
        "waiting": stats.get("requests_waiting", 0),
        "min_size": stats["pool_min"],
        "max_size": stats["pool_max"],
    }


__all__ = [
    "_get_connection",
    "_get_dsn",
    "_use_connection",
    "close_pool",
    "get_pool",
    "get_pool_stats",
    "init_pool",
    "transaction",
]
