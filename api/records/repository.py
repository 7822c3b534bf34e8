"""
Record persistence.
This module is where record-related SQL runs.
"""

from __future__ import annotations

from typing import Any

import asyncpg

from core import db

from .ddl import create_table_sql
from .fields import RecordSchema
from .query import InsertQuery


async def ensure_table(schema: RecordSchema) -> None:
    """
    Create the record table if it does not exist yet.
    """
    await db.execute(create_table_sql(schema))


async def insert_record(conn: asyncpg.Connection, query: InsertQuery) -> dict[str, Any]:
    """
    Insert one row on `conn` (the caller owns the transaction).

    Returns the RETURNING columns (id, and created_at when enabled).
    """
    row = await conn.fetchrow(query.sql, *query.values)
    if row is None or "id" not in row:
        raise RuntimeError(f"Failed to insert into {query.table}.")
    return dict(row)
