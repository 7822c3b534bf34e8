"""
Error taxonomy for record submission.

Every failure a caller can see is a `RecordError` with the same response
shape: {"error": ..., "code": ...} plus "field"/"details" when known.
`main.py` registers one exception handler that renders them.

- FieldValidationError: input breaks a schema rule (400)
- UploadTooLargeError: an uploaded part is over the transport cap (413)
- ConstraintViolation: PostgreSQL rejected an otherwise valid-looking row (4xx)
- InfrastructureError: anything else on the storage path (500, no internals)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import asyncpg


class SchemaConfigError(RuntimeError):
    """Schema document is unusable. Raised at startup only."""


@dataclass(frozen=True)
class FieldError:
    """A single validation verdict: what is wrong and with which field."""

    message: str
    field: str


class RecordError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: str | None = None,
        code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.field is not None:
            body["field"] = self.field
        if self.details:
            body["details"] = self.details
        return body


class FieldValidationError(RecordError):
    status_code = 400
    code = "VALIDATION_ERROR"

    @classmethod
    def from_field_error(cls, error: FieldError) -> FieldValidationError:
        return cls(error.message, field=error.field)


class UploadTooLargeError(RecordError):
    status_code = 413
    code = "FILE_TOO_LARGE"


class ConstraintViolation(RecordError):
    status_code = 400


class InfrastructureError(RecordError):
    status_code = 500
    code = "INTERNAL_ERROR"


# sqlstate -> (status, code, message)
_CONSTRAINT_CODES: dict[str, tuple[int, str, str]] = {
    "23505": (409, "DUPLICATE_ENTRY", "Duplicate entry - this record already exists"),
    "23502": (400, "MISSING_REQUIRED", "Missing required field"),
    "22P02": (400, "INVALID_FORMAT", "Invalid data format"),
    "22001": (400, "DATA_TOO_LONG", "Data too long for field"),
    "22003": (400, "NUMERIC_OUT_OF_RANGE", "Numeric value out of range"),
}


def translate_storage_error(exc: BaseException) -> RecordError:
    """
    Map a storage-layer exception onto the response taxonomy.
    """
    if isinstance(exc, RecordError):
        return exc

    sqlstate = getattr(exc, "sqlstate", None) if isinstance(exc, asyncpg.PostgresError) else None
    mapped = _CONSTRAINT_CODES.get(sqlstate or "")
    if mapped is None:
        return InfrastructureError("Internal server error")

    status_code, code, message = mapped
    if code == "DUPLICATE_ENTRY":
        return ConstraintViolation(message, code=code, status_code=status_code, details=getattr(exc, "detail", None))
    if code == "MISSING_REQUIRED":
        return ConstraintViolation(message, code=code, status_code=status_code, field=getattr(exc, "column_name", None))
    if code == "INVALID_FORMAT":
        return ConstraintViolation(message, code=code, status_code=status_code, details=str(exc))
    return ConstraintViolation(message, code=code, status_code=status_code)
