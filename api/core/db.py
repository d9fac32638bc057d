"""
asyncpg pool and the small query helpers every repository goes through.

The pool is created by the app lifespan (`api/main.py`) and shared by all
requests. Single statements use `fetch_one` / `fetch_all`; anything that has
to write several tables atomically opens `transaction()` and issues its
statements on the connection it yields.

Placeholders are asyncpg's positional `$1, $2, ...`.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

from . import config

logger = logging.getLogger(__name__)

# Upper bound of a Postgres bigint; larger ids fail in the driver before reaching the server.
MAX_BIGINT = 2**63 - 1

_pool: asyncpg.Pool | None = None


def _strip_libpq_only_params(url: str) -> str:
    # asyncpg rejects `sslmode` in the DSN query; managed Postgres URLs carry it.
    parts = urlsplit(url)
    if not parts.query:
        return url
    kept = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    return urlunsplit(parts._replace(query=urlencode(kept)))


async def init_pool() -> None:
    global _pool
    if _pool is not None:
        return
    min_size = config.db_pool_min_size()
    max_size = config.db_pool_max_size()
    _pool = await asyncpg.create_pool(
        dsn=_strip_libpq_only_params(config.database_url()),
        min_size=min_size,
        max_size=max_size,
        command_timeout=config.db_command_timeout_s(),
    )
    logger.info("db_pool_opened min_size=%s max_size=%s", min_size, max_size)


async def close_pool() -> None:
    global _pool
    if _pool is None:
        return
    pool_, _pool = _pool, None
    await pool_.close()
    logger.info("db_pool_closed")


def pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("DB pool is not initialized. Call init_pool() on startup.")
    return _pool


@asynccontextmanager
async def transaction() -> AsyncIterator[asyncpg.Connection]:
    """
    Yield one pooled connection with a transaction open on it.

    Commits on normal exit and rolls back when the block raises. The
    connection goes back to the pool on every exit path.
    """
    async with pool().acquire() as conn:
        async with conn.transaction():
            yield conn


async def fetch_one(sql: str, *args: Any) -> dict[str, Any] | None:
    row = await pool().fetchrow(sql, *args)
    return dict(row) if row is not None else None


async def fetch_all(sql: str, *args: Any) -> list[dict[str, Any]]:
    return [dict(r) for r in await pool().fetch(sql, *args)]
