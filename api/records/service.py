"""
Record "service layer".

This file contains logic that is independent of FastAPI's routing layer:
- Read uploads with a size cap
- Validate -> build INSERT -> persist, inside one transaction
- Describe the configured schema
"""

from __future__ import annotations

import logging
from typing import Any

from starlette.datastructures import UploadFile

from core import db

from . import repository, validation
from .errors import FieldValidationError, UploadTooLargeError, translate_storage_error
from .fields import RecordSchema
from .payload import IncomingRecord, UploadedFile
from .query import build_insert

READ_CHUNK_BYTES = 1024 * 1024  # 1 MiB

SAVED_MESSAGE = "Record saved successfully"

logger = logging.getLogger(__name__)


async def read_upload_bytes(file: UploadFile, *, field: str, max_bytes: int) -> bytes:
    """
    Read the upload into memory, enforcing a maximum size.
    """
    buf = bytearray()

    while True:
        chunk = await file.read(READ_CHUNK_BYTES)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise UploadTooLargeError(f"File too large. Max is {max_bytes} bytes.", field=field)

    return bytes(buf)


async def read_upload(file: UploadFile, *, field: str, max_bytes: int) -> UploadedFile:
    data = await read_upload_bytes(file, field=field, max_bytes=max_bytes)
    return UploadedFile.from_bytes(file.filename or "", data)


async def save_record(record: IncomingRecord, schema: RecordSchema) -> dict[str, Any]:
    """
    Validate and insert one record in a single transaction.

    Any failure rolls the transaction back and surfaces as a `RecordError`.
    """
    try:
        async with db.pool().acquire() as conn:
            async with conn.transaction():
                error = validation.validate(record, schema)
                if error is not None:
                    raise FieldValidationError.from_field_error(error)

                query = build_insert(record, schema)
                row = await repository.insert_record(conn, query)
    except FieldValidationError as e:
        logger.info("record_rejected table=%s field=%s reason=%s", schema.table, e.field, e.message)
        raise
    except Exception as e:
        translated = translate_storage_error(e)
        if translated.status_code >= 500:
            logger.exception("record_save_failed table=%s", schema.table)
        else:
            logger.warning(
                "record_constraint_violation table=%s code=%s field=%s",
                schema.table,
                translated.code,
                translated.field,
            )
        raise translated from e

    logger.info("record_saved table=%s id=%s", schema.table, row["id"])
    result: dict[str, Any] = {
        "success": True,
        "id": int(row["id"]),
        "message": SAVED_MESSAGE,
        "table": schema.table,
    }
    if "created_at" in row:
        result["created_at"] = row["created_at"]
    return result


def describe_schema(schema: RecordSchema) -> dict[str, dict[str, Any]]:
    """
    Schema in the same shape as the schema document.
    """
    out: dict[str, dict[str, Any]] = {}
    for spec in schema:
        file_config = None
        if spec.file_constraint is not None:
            extensions = spec.file_constraint.allowed_extensions
            file_config = {
                "maxSize": spec.file_constraint.max_megabytes,
                "extensions": extensions if isinstance(extensions, str) else list(extensions),
            }
        out[spec.name] = {
            "type": spec.semantic_type.value,
            "limit": spec.limit,
            "scale": spec.scale,
            "required": spec.required,
            "unique": spec.unique,
            "allowNegative": spec.allow_negative,
            "fileConfig": file_config,
        }
    return out
