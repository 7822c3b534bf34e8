import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core import db
from core.logging import configure_logging
from records import repository as record_repository
from records import router as records_router
from records.config import load_record_schema
from records.errors import RecordError

SERVICE_NAME = "record-api"
SERVICE_VERSION = "1.0.0"

_STARTED_AT = time.monotonic()

logger = logging.getLogger(__name__)


def cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", "*").strip() or "*"
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()

    # A bad schema or a failed CREATE TABLE must stop startup.
    schema = load_record_schema()
    app.state.record_schema = schema

    await db.init_pool()
    try:
        try:
            await record_repository.ensure_table(schema)
        except Exception:
            logger.exception("table_create_failed table=%s", schema.table)
            raise
        logger.info(
            "table_ready table=%s fields=%s file_fields=%s",
            schema.table,
            len(schema),
            len(schema.file_fields),
        )
        yield
    finally:
        await db.close_pool()


app = FastAPI(title="Record API", version=SERVICE_VERSION, lifespan=lifespan)

_origins = cors_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(records_router.router, tags=["records"])


@app.exception_handler(RecordError)
async def record_error_handler(_: Request, exc: RecordError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
async def health() -> dict:
    connected = await db.ping()
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
        "database": "connected" if connected else "unavailable",
    }


@app.get("/")
def root(request: Request) -> dict:
    schema = getattr(request.app.state, "record_schema", None)
    return {
        "message": f"{SERVICE_NAME} is running",
        "version": SERVICE_VERSION,
        "table": schema.table if schema is not None else None,
        "endpoints": {
            "POST /api/save": "Save a record",
            "GET /schema": "Schema information",
            "GET /health": "Health check",
        },
    }
