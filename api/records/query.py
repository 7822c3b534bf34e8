"""
Parameterized INSERT construction.

`build_insert()` expects a record that already passed `validation.validate`.
It still raises `FieldValidationError` when a required value is missing or a
value cannot be coerced, so a caller that skips validation gets an error
instead of a bad row.

Fields that were not supplied are left out of the statement entirely (no
NULL placeholders), which lets column defaults and NOT NULL constraints
apply.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from .column_types import INT64_MAX_DIGITS, number_digits
from .ddl import quote_ident
from .errors import FieldValidationError
from .fields import FieldSpec, RecordSchema, SemanticType
from .payload import IncomingRecord, scalar_text
from .validation import parse_calendar_value

TRUTHY_VALUES = {"true", "1", "yes", "on"}

# Canonical timestamps are bound as text and cast server-side.
PLACEHOLDER_CASTS = {
    SemanticType.DATETIME: "::text::timestamp",
    SemanticType.DATE: "::text::date",
}

Coercer = Callable[[FieldSpec, Any, str], Any]


@dataclass(frozen=True)
class InsertQuery:
    table: str
    columns: tuple[str, ...]
    values: tuple[Any, ...]
    placeholders: tuple[str, ...]
    returning: tuple[str, ...] = ("id", "created_at")

    @property
    def sql(self) -> str:
        returning = ", ".join(self.returning)
        if not self.columns:
            return f"INSERT INTO {quote_ident(self.table)} DEFAULT VALUES RETURNING {returning}"

        columns = ",".join(quote_ident(c) for c in self.columns)
        placeholders = ",".join(self.placeholders)
        return f"INSERT INTO {quote_ident(self.table)} ({columns}) VALUES ({placeholders}) RETURNING {returning}"


def _to_int(spec: FieldSpec, raw: Any, text: str) -> int | Decimal:
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise FieldValidationError(f"{spec.name} must be an integer", field=spec.name) from None
    if not value.is_finite() or value != value.to_integral_value():
        raise FieldValidationError(f"{spec.name} must be an integer", field=spec.name)

    # NUMERIC(n) columns for n > 18 digits take a Decimal.
    if number_digits(spec) > INT64_MAX_DIGITS:
        return value.to_integral_value()
    return int(value)


def _to_decimal(spec: FieldSpec, raw: Any, text: str) -> Decimal:
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise FieldValidationError(f"{spec.name} must be a valid number", field=spec.name) from None
    if not value.is_finite():
        raise FieldValidationError(f"{spec.name} must be a valid number", field=spec.name)
    return value


def _to_bool(spec: FieldSpec, raw: Any, text: str) -> bool:
    if raw == 1 and not isinstance(raw, bool):
        return True
    return text.lower() in TRUTHY_VALUES


def _to_text(spec: FieldSpec, raw: Any, text: str) -> str:
    return text


def _to_timestamp(spec: FieldSpec, raw: Any, text: str) -> str:
    parsed = parse_calendar_value(text)
    if parsed is None:
        raise FieldValidationError(f"{spec.name} must be a valid date", field=spec.name)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat()


COERCERS: dict[SemanticType, Coercer] = {
    SemanticType.NUMBER: _to_int,
    SemanticType.AMOUNT: _to_decimal,
    SemanticType.YESNO: _to_bool,
    SemanticType.TEXT: _to_text,
    SemanticType.DESCRIPTION: _to_text,
    SemanticType.EMAIL: _to_text,
    SemanticType.PHONE: _to_text,
    SemanticType.URL: _to_text,
    SemanticType.DATETIME: _to_timestamp,
    SemanticType.DATE: _to_timestamp,
}


def coerce_value(spec: FieldSpec, raw: Any) -> Any:
    """
    Convert one validated scalar into the value bound for its column.
    """
    text = scalar_text(raw) or ""
    return COERCERS[spec.semantic_type](spec, raw, text)


def build_insert(record: IncomingRecord, schema: RecordSchema) -> InsertQuery:
    columns: list[str] = []
    values: list[Any] = []
    placeholders: list[str] = []

    def bind(spec: FieldSpec, value: Any) -> None:
        columns.append(spec.name)
        values.append(value)
        placeholders.append(f"${len(values)}{PLACEHOLDER_CASTS.get(spec.semantic_type, '')}")

    for spec in schema:
        if spec.is_file:
            upload = record.files.get(spec.name)
            if upload is not None:
                bind(spec, upload.data)
            elif spec.required:
                raise FieldValidationError(f"{spec.name} is required", field=spec.name)
            continue

        if record.text(spec.name) is None:
            if spec.required:
                raise FieldValidationError(f"{spec.name} is required", field=spec.name)
            continue

        bind(spec, coerce_value(spec, record.values[spec.name]))

    return InsertQuery(
        table=schema.table,
        columns=tuple(columns),
        values=tuple(values),
        placeholders=tuple(placeholders),
        returning=schema.returning_columns,
    )
