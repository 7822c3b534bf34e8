"""
Pytest configuration for the record API.

Provides fixtures for:
- The packaged "Ring" schema and small hand-built schemas
- Valid incoming records (scenario A) to mutate per test
- Fake asyncpg pool/connection objects for service and router tests
- Database connection management for integration tests
"""

from __future__ import annotations

import os
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable

import asyncpg
import pytest
import pytest_asyncio

from core import db
from records.config import DEFAULT_SCHEMA_PATH, load_record_schema, schema_from_document
from records.fields import RecordSchema
from records.payload import IncomingRecord, UploadedFile

# 1x1 transparent PNG.
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89"
    b"\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


@pytest.fixture
def ring_schema(monkeypatch: pytest.MonkeyPatch) -> RecordSchema:
    monkeypatch.delenv("RECORD_TABLE_NAME", raising=False)
    return load_record_schema(DEFAULT_SCHEMA_PATH)


@pytest.fixture
def schema_factory() -> Callable[..., RecordSchema]:
    """
    Build a schema from field documents: schema_factory(age={"type": "number"}).
    """

    def build(table: str = "things", auto_created_at: bool = True, **fields: dict[str, Any]) -> RecordSchema:
        return schema_from_document({"table": table, "autoCreatedAt": auto_created_at, "fields": fields})

    return build


@pytest.fixture
def png_upload() -> UploadedFile:
    return UploadedFile.from_bytes("photo.png", PNG_BYTES)


@pytest.fixture
def valid_values() -> dict[str, Any]:
    return {"name": "Alice", "phone": "9876543210", "ring_size": "120.50", "caret": "2"}


@pytest.fixture
def valid_record(valid_values: dict[str, Any], png_upload: UploadedFile) -> IncomingRecord:
    return IncomingRecord.from_mapping(
        valid_values,
        {"ss": png_upload, "aadhar": UploadedFile.from_bytes("card.JPG", b"\xff\xd8\xff\xe0jpeg")},
    )


class _FakeTransaction(AbstractAsyncContextManager["_FakeTransaction"]):
    def __init__(self, conn: FakeConnection) -> None:
        self._conn = conn

    async def __aenter__(self) -> _FakeTransaction:
        self._conn.events.append("begin")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        del exc, tb
        self._conn.events.append("rollback" if exc_type else "commit")
        return False


class FakeConnection:
    def __init__(self, row: dict[str, Any] | None = None, error: BaseException | None = None) -> None:
        self.row = row if row is not None else {"id": 1, "created_at": "2026-01-01T00:00:00"}
        self.error = error
        self.events: list[str] = []
        self.queries: list[tuple[str, tuple[Any, ...]]] = []

    def transaction(self) -> _FakeTransaction:
        return _FakeTransaction(self)

    async def fetchrow(self, sql: str, *args: Any) -> dict[str, Any] | None:
        self.queries.append((sql, args))
        if self.error is not None:
            raise self.error
        return self.row


class _FakeAcquire(AbstractAsyncContextManager[FakeConnection]):
    def __init__(self, pool: FakePool) -> None:
        self._pool = pool

    async def __aenter__(self) -> FakeConnection:
        self._pool.acquired += 1
        return self._pool.conn

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        del exc_type, exc, tb
        self._pool.released += 1
        return False


class FakePool:
    def __init__(self, conn: FakeConnection, ping_value: Any = 1) -> None:
        self.conn = conn
        self.ping_value = ping_value
        self.acquired = 0
        self.released = 0

    def acquire(self) -> _FakeAcquire:
        return _FakeAcquire(self)

    async def fetchval(self, sql: str) -> Any:
        if isinstance(self.ping_value, BaseException):
            raise self.ping_value
        return self.ping_value


@pytest.fixture
def fake_conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def fake_pool(monkeypatch: pytest.MonkeyPatch, fake_conn: FakeConnection) -> FakePool:
    pool = FakePool(fake_conn)
    monkeypatch.setattr(db, "_pool", pool)
    return pool


@pytest.fixture(scope="session")
def test_dsn() -> str | None:
    return os.getenv("DATABASE_URL") or None


@pytest_asyncio.fixture
async def pg_conn(test_dsn: str | None):
    """
    A dedicated asyncpg connection for integration tests.

    Skips when no database is reachable.
    """
    if not test_dsn:
        pytest.skip("DATABASE_URL not set; integration tests need PostgreSQL")
    try:
        conn = await asyncpg.connect(test_dsn, timeout=5)
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        pytest.skip(f"Database not available for integration tests: {e}")
    try:
        yield conn
    finally:
        await conn.close()
