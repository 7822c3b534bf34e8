"""
Semantic field type -> PostgreSQL column type.
"""

from __future__ import annotations

from typing import Callable

from .fields import FieldSpec, SemanticType

INT32_MAX_DIGITS = 9
INT64_MAX_DIGITS = 18

DEFAULT_NUMBER_DIGITS = 10
DEFAULT_AMOUNT_PRECISION = 10
DEFAULT_AMOUNT_SCALE = 2
DEFAULT_PHONE_DIGITS = 15


def number_digits(spec: FieldSpec) -> int:
    return spec.limit or DEFAULT_NUMBER_DIGITS


def amount_precision(spec: FieldSpec) -> tuple[int, int]:
    """
    Returns (precision, scale) for an amount field.
    """
    scale = DEFAULT_AMOUNT_SCALE if spec.scale is None else spec.scale
    return spec.limit or DEFAULT_AMOUNT_PRECISION, scale


def phone_digits(spec: FieldSpec) -> int:
    return spec.limit or DEFAULT_PHONE_DIGITS


def _number_type(spec: FieldSpec) -> str:
    digits = number_digits(spec)
    if digits <= INT32_MAX_DIGITS:
        return "INTEGER"
    if digits <= INT64_MAX_DIGITS:
        return "BIGINT"
    return f"NUMERIC({digits})"


def _amount_type(spec: FieldSpec) -> str:
    precision, scale = amount_precision(spec)
    return f"DECIMAL({precision}, {scale})"


COLUMN_TYPES: dict[SemanticType, Callable[[FieldSpec], str]] = {
    SemanticType.TEXT: lambda spec: f"VARCHAR({spec.limit or 50})",
    SemanticType.DESCRIPTION: lambda spec: f"VARCHAR({spec.limit or 500})",
    SemanticType.NUMBER: _number_type,
    SemanticType.AMOUNT: _amount_type,
    SemanticType.YESNO: lambda spec: "BOOLEAN",
    SemanticType.DATETIME: lambda spec: "TIMESTAMP",
    SemanticType.DATE: lambda spec: "DATE",
    SemanticType.EMAIL: lambda spec: "VARCHAR(255)",
    SemanticType.PHONE: lambda spec: f"VARCHAR({phone_digits(spec)})",
    SemanticType.URL: lambda spec: "VARCHAR(500)",
    SemanticType.PHOTO: lambda spec: "BYTEA",
    SemanticType.FILE: lambda spec: "BYTEA",
}


def column_type(spec: FieldSpec) -> str:
    return COLUMN_TYPES[spec.semantic_type](spec)
