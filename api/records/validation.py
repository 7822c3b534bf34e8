"""
Schema-driven record validation.

`validate()` walks the schema in declaration order and returns the first
violation it finds as a `FieldError` (or None when the record is valid).
Only after every declared field passes are undeclared keys checked, in the
order they arrived.

Each semantic type has at most one scalar rule in `SCALAR_RULES`; a rule
gets the stripped, non-blank text and returns an error message or None.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable
from urllib.parse import urlsplit

from .column_types import (
    INT32_MAX_DIGITS,
    INT64_MAX_DIGITS,
    amount_precision,
    number_digits,
    phone_digits,
)
from .errors import FieldError
from .fields import FieldSpec, FileConstraint, RecordSchema, SemanticType
from .payload import IncomingRecord, UploadedFile

INT32_MAX = 2_147_483_647
INT64_MAX = 9_223_372_036_854_775_807

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[+]?[\d\s\-()]{10,15}$", re.ASCII)
NUMERIC_RE = re.compile(r"^-?\d+(\.\d+)?$", re.ASCII)
URL_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
WHITESPACE_RE = re.compile(r"\s")

# Schemes that only make sense with a host part.
HOST_SCHEMES = {"http", "https", "ftp", "ws", "wss"}

ScalarRule = Callable[[FieldSpec, str], "str | None"]


def parse_calendar_value(text: str) -> datetime | None:
    """
    Parse an ISO 8601 date or date-time ("2024-01-31", "2024-01-31T10:00:00Z").

    Values whose UTC equivalent falls outside years 1..9999 count as invalid.
    """
    try:
        parsed = datetime.fromisoformat(text.strip())
        if parsed.tzinfo is not None:
            parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None
    return parsed


def is_valid_url(text: str) -> bool:
    try:
        parts = urlsplit(text)
        parts.port  # raises ValueError for a malformed port
    except ValueError:
        return False

    if not parts.scheme or not URL_SCHEME_RE.match(parts.scheme):
        return False
    if parts.scheme.lower() in HOST_SCHEMES:
        return bool(parts.hostname) and not WHITESPACE_RE.search(parts.netloc)
    return bool(parts.netloc or parts.path)


def _check_email(spec: FieldSpec, text: str) -> str | None:
    if not EMAIL_RE.match(text):
        return f"{spec.name} must be a valid email address"
    return None


def _check_url(spec: FieldSpec, text: str) -> str | None:
    if not is_valid_url(text):
        return f"{spec.name} must be a valid URL"
    return None


def _check_phone(spec: FieldSpec, text: str) -> str | None:
    if not PHONE_RE.match(WHITESPACE_RE.sub("", text)):
        return f"{spec.name} must be a valid phone number"

    max_digits = phone_digits(spec)
    if sum(ch in "0123456789" for ch in text) > max_digits:
        return f"{spec.name} exceeds {max_digits} digits"
    return None


def _check_length(spec: FieldSpec, text: str) -> str | None:
    if spec.limit and len(text) > spec.limit:
        return f"{spec.name} exceeds {spec.limit} characters"
    return None


def _check_numeric_shape(spec: FieldSpec, text: str) -> str | None:
    if not NUMERIC_RE.match(text):
        return f"{spec.name} must be a valid number"
    if spec.semantic_type is SemanticType.NUMBER and "." in text:
        return f"{spec.name} must be an integer (no decimals)"
    if not spec.allow_negative and text.startswith("-"):
        return f"{spec.name} must be a positive number"
    return None


def _check_number(spec: FieldSpec, text: str) -> str | None:
    error = _check_numeric_shape(spec, text)
    if error:
        return error

    # Count digits on the text: int() refuses very long digit strings.
    digits = text.lstrip("-").lstrip("0") or "0"
    max_digits = number_digits(spec)
    if len(digits) > max_digits:
        return f"{spec.name} exceeds {max_digits} digits"
    if max_digits > INT64_MAX_DIGITS:
        return None

    value = int(digits)
    if max_digits <= INT32_MAX_DIGITS and value > INT32_MAX:
        return f"{spec.name} exceeds INTEGER maximum value"
    if value > INT64_MAX:
        return f"{spec.name} exceeds BIGINT maximum value"
    return None


def _check_amount(spec: FieldSpec, text: str) -> str | None:
    error = _check_numeric_shape(spec, text)
    if error:
        return error

    precision, scale = amount_precision(spec)
    integer_part, _, decimal_part = text.replace("-", "", 1).partition(".")
    max_integer = precision - scale
    if len(integer_part) > max_integer:
        return f"{spec.name} integer part exceeds {max_integer} digits"
    if len(decimal_part) > scale:
        return f"{spec.name} decimal part exceeds {scale} places"
    if not spec.allow_negative and text.startswith("-"):
        return f"{spec.name} must be a positive amount"
    return None


def _check_date(spec: FieldSpec, text: str) -> str | None:
    if parse_calendar_value(text) is None:
        return f"{spec.name} must be a valid date"
    return None


SCALAR_RULES: dict[SemanticType, ScalarRule] = {
    SemanticType.EMAIL: _check_email,
    SemanticType.URL: _check_url,
    SemanticType.PHONE: _check_phone,
    SemanticType.TEXT: _check_length,
    SemanticType.DESCRIPTION: _check_length,
    SemanticType.NUMBER: _check_number,
    SemanticType.AMOUNT: _check_amount,
    SemanticType.DATE: _check_date,
    SemanticType.DATETIME: _check_date,
}


def check_file(spec: FieldSpec, upload: UploadedFile) -> str | None:
    constraint = spec.file_constraint or FileConstraint()
    if upload.size > constraint.max_bytes:
        return f"File size exceeds {constraint.max_megabytes}MB limit"

    if not constraint.allows_any_extension:
        filename = (upload.filename or "").lower()
        if not any(filename.endswith(ext) for ext in constraint.allowed_extensions):
            allowed = ", ".join(ext.lstrip(".") for ext in constraint.allowed_extensions)
            return f"File type not allowed. Allowed types: {allowed}"
    return None


def _validate_file_field(spec: FieldSpec, record: IncomingRecord) -> FieldError | None:
    upload = record.files.get(spec.name)
    if upload is None:
        if spec.required:
            return FieldError(f"{spec.name} is required", spec.name)
        return None

    message = check_file(spec, upload)
    return FieldError(message, spec.name) if message else None


def _validate_scalar_field(spec: FieldSpec, record: IncomingRecord) -> FieldError | None:
    text = record.text(spec.name)
    if text is None:
        if spec.required:
            return FieldError(f"{spec.name} is required", spec.name)
        return None

    rule = SCALAR_RULES.get(spec.semantic_type)
    message = rule(spec, text) if rule else None
    return FieldError(message, spec.name) if message else None


def _check_unknown_keys(record: IncomingRecord, schema: RecordSchema) -> FieldError | None:
    for key in record.values:
        if schema.get(key) is None:
            return FieldError(f"Extra field not allowed: {key}", key)

    for key in record.files:
        spec = schema.get(key)
        if spec is None or not spec.is_file:
            return FieldError(f"Extra file not allowed: {key}", key)
    return None


def validate(record: IncomingRecord, schema: RecordSchema) -> FieldError | None:
    """
    Return the first rule violation in `record`, or None if it is valid.
    """
    for spec in schema:
        if spec.is_file:
            error = _validate_file_field(spec, record)
        else:
            error = _validate_scalar_field(spec, record)
        if error is not None:
            return error

    return _check_unknown_keys(record, schema)
