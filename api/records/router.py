"""
FastAPI router for record endpoints.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import UploadFile

from . import service
from .config import max_upload_bytes
from .errors import FieldValidationError
from .fields import RecordSchema
from .payload import IncomingRecord, UploadedFile

router = APIRouter()


def get_record_schema(request: Request) -> RecordSchema:
    # Loaded once in the app lifespan; see main.py.
    return request.app.state.record_schema


def _is_json(request: Request) -> bool:
    content_type = request.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower() == "application/json"


async def _record_from_json(request: Request) -> IncomingRecord:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise FieldValidationError("Request body is not valid JSON.") from None
    if not isinstance(body, dict):
        raise FieldValidationError("Request body must be a JSON object.")
    return IncomingRecord.from_mapping(body)


async def _record_from_form(request: Request, schema: RecordSchema) -> IncomingRecord:
    cap = max_upload_bytes(schema)
    values: dict[str, Any] = {}
    files: dict[str, UploadedFile] = {}

    async with request.form() as form:
        for key, value in form.multi_items():
            # One value per key; repeated parts are ignored.
            if key in values or key in files:
                continue
            if isinstance(value, UploadFile):
                # Browsers send an empty, unnamed part for "no file chosen".
                if not value.filename and not value.size:
                    continue
                files[key] = await service.read_upload(value, field=key, max_bytes=cap)
            else:
                values[key] = value

    return IncomingRecord(values=values, files=files)


@router.post("/api/save")
async def save_record(
    request: Request,
    schema: RecordSchema = Depends(get_record_schema),
) -> dict:
    """
    Save one record (multipart form with file parts, or a JSON object).
    """
    if _is_json(request):
        record = await _record_from_json(request)
    else:
        record = await _record_from_form(request, schema)
    return await service.save_record(record, schema)


@router.get("/schema")
async def get_schema(schema: RecordSchema = Depends(get_record_schema)) -> dict:
    return {
        "table": schema.table,
        "schema": service.describe_schema(schema),
        "fields": len(schema),
        "autoCreated": schema.auto_created_at,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
