"""
Async database access helpers (raw SQL) using asyncpg.

This module owns the connection pool. FastAPI initializes it on startup and
closes it on shutdown (see `api/main.py`).

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import os
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

DEFAULT_POOL_MAX_SIZE = 5
DEFAULT_COMMAND_TIMEOUT_S = 30

_pool: asyncpg.Pool | None = None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def database_url() -> str:
    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set.")
    return _sanitize_database_url(url)


def pool_max_size() -> int:
    value = _env_int("DB_POOL_MAX_SIZE", DEFAULT_POOL_MAX_SIZE)
    return value if value > 0 else DEFAULT_POOL_MAX_SIZE


async def init_pool() -> None:
    global _pool
    if _pool is not None:
        return None
    _pool = await asyncpg.create_pool(
        dsn=database_url(),
        min_size=1,
        max_size=pool_max_size(),
        command_timeout=_env_int("DB_COMMAND_TIMEOUT_S", DEFAULT_COMMAND_TIMEOUT_S),
    )


async def close_pool() -> None:
    global _pool
    if _pool is None:
        return None
    await _pool.close()
    _pool = None


def pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("DB pool is not initialized. Call init_pool() on startup.")
    return _pool


async def execute(sql: str, *args: Any) -> None:
    """
    Run a statement (INSERT/UPDATE/DELETE/DDL). No result returned.
    """
    await pool().execute(sql, *args)


async def ping() -> bool:
    """
    Cheap connectivity probe for the health endpoint.

    Returns False instead of raising: an unreachable database is reported,
    not treated as a crash of the health check itself.
    """
    if _pool is None:
        return False
    try:
        value = await _pool.fetchval("SELECT 1")
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError):
        return False
    return value == 1
