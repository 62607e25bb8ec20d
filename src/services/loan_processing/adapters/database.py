"""
PostgreSQL pool and readiness probe for the loan processing service.

The loans endpoint runs one query for the loans and one per loan, so every
statement is bounded by a command timeout to keep a slow database from
holding a request past the retry budget.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import asyncpg

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("loans", "customers")

TABLES_QUERY = """
    SELECT name, to_regclass(name) IS NOT NULL AS present
    FROM unnest($1::text[]) AS name
"""


async def create_db_pool(
    postgres_url: str,
    min_size: int = 2,
    max_size: int = 10,
    command_timeout: float | None = 10.0,
    statement_cache_size: int = 100,
) -> asyncpg.Pool:
    """
    Create the pool used by LoanRepository.

    Args:
        postgres_url: Connection URL
        min_size: Connections opened at startup
        max_size: Upper bound on concurrent connections
        command_timeout: Per-statement timeout in seconds, None to disable
        statement_cache_size: Prepared statements cached per connection;
            set to 0 behind a transaction-mode pgbouncer

    Returns:
        asyncpg connection pool
    """
    logger.info(
        f"Creating loans database pool (min={min_size}, max={max_size}, "
        f"command_timeout={command_timeout}, statement_cache_size={statement_cache_size})"
    )
    return await asyncpg.create_pool(
        postgres_url,
        min_size=min_size,
        max_size=max_size,
        command_timeout=command_timeout,
        statement_cache_size=statement_cache_size,
    )


async def check_db_health(pool: asyncpg.Pool, timeout: float = 5.0) -> dict[str, Any]:
    """
    Check that the database answers and holds the loan tables.

    Returns:
        Dict with `connected`, `ready`, the per-table presence under `tables`
        and the pool size; `error` instead when the database is unreachable.
    """
    try:
        async with pool.acquire() as conn:
            rows = await conn.fetch(TABLES_QUERY, list(REQUIRED_TABLES), timeout=timeout)
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
        logger.error(f"Loans database health check failed: {e}")
        return {"connected": False, "ready": False, "error": str(e)}

    tables = {row["name"]: row["present"] for row in rows}
    missing = [name for name in REQUIRED_TABLES if not tables.get(name)]
    if missing:
        logger.warning(f"Loans database is missing tables: {', '.join(missing)}")

    return {
        "connected": True,
        "ready": not missing,
        "tables": tables,
        "pool_size": pool.get_size(),
    }
