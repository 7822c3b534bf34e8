"""
Record schema configuration.

The schema is a JSON document (see `default_schema.json`):

    {
      "table": "Ring",
      "autoCreatedAt": true,
      "fields": {
        "name": {"type": "text", "limit": "20", "required": true, ...},
        "ss": {"type": "photo", "fileConfig": {"maxSize": 10, "extensions": "all"}},
        ...
      }
    }

It is parsed with pydantic, checked for consistency and turned into an
immutable `RecordSchema`. Any problem raises `SchemaConfigError`, which stops
startup: the service must not run against a schema it cannot honor.

Environment:
- RECORD_SCHEMA_PATH: path to the JSON document (default: packaged schema)
- RECORD_TABLE_NAME: overrides the document's table name
- MAX_UPLOAD_BYTES: transport cap for a single uploaded part
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import SchemaConfigError
from .fields import ALL_EXTENSIONS, MEBIBYTE, FieldSpec, FileConstraint, RecordSchema, SemanticType

DEFAULT_SCHEMA_PATH = Path(__file__).with_name("default_schema.json")

DEFAULT_FILE_MEGABYTES = 10

# PostgreSQL truncates longer identifiers (NAMEDATALEN - 1).
MAX_IDENTIFIER_LENGTH = 63


def _optional_int(value: Any) -> Any:
    # The document format allows "" for "not set" and numbers as strings.
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    return value


class FileConfigDocument(BaseModel):
    max_size: int | None = Field(default=None, alias="maxSize", gt=0)
    extensions: str | list[str] = ALL_EXTENSIONS

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @field_validator("max_size", mode="before")
    @classmethod
    def normalize_max_size(cls, value: Any) -> Any:
        return _optional_int(value)


class FieldDocument(BaseModel):
    type: str
    limit: int | None = Field(default=None, gt=0)
    scale: int | None = Field(default=None, ge=0)
    required: bool = False
    unique: bool = False
    allow_negative: bool = Field(default=False, alias="allowNegative")
    file_config: FileConfigDocument | None = Field(default=None, alias="fileConfig")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @field_validator("limit", "scale", mode="before")
    @classmethod
    def normalize_numbers(cls, value: Any) -> Any:
        return _optional_int(value)


class SchemaDocument(BaseModel):
    table: str = Field(..., min_length=1, max_length=MAX_IDENTIFIER_LENGTH)
    auto_created_at: bool = Field(default=True, alias="autoCreatedAt")
    fields: dict[str, FieldDocument] = Field(..., min_length=1)

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


def _normalize_extensions(raw: str | list[str]) -> str | tuple[str, ...]:
    if isinstance(raw, str):
        if raw.strip().lower() == ALL_EXTENSIONS:
            return ALL_EXTENSIONS
        raw = raw.split(",")

    out: list[str] = []
    for ext in raw:
        ext = ext.strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        out.append(ext)

    if not out:
        raise SchemaConfigError("fileConfig.extensions must be 'all' or a non-empty list.")
    return tuple(out)


def _field_spec(name: str, doc: FieldDocument) -> FieldSpec:
    if not name.strip():
        raise SchemaConfigError("Field names must not be empty.")
    if name in {"id", "created_at"}:
        raise SchemaConfigError(f"Field name '{name}' is reserved.")

    try:
        semantic_type = SemanticType(doc.type.strip().lower())
    except ValueError:
        raise SchemaConfigError(f"Unknown field type '{doc.type}' for field '{name}'.") from None

    file_constraint: FileConstraint | None = None
    if semantic_type.is_file:
        file_config = doc.file_config or FileConfigDocument()
        file_constraint = FileConstraint(
            max_megabytes=file_config.max_size or doc.limit or DEFAULT_FILE_MEGABYTES,
            allowed_extensions=_normalize_extensions(file_config.extensions),
        )
    elif doc.file_config is not None:
        raise SchemaConfigError(f"Field '{name}' has fileConfig but is of type '{semantic_type.value}'.")

    if semantic_type is SemanticType.AMOUNT:
        limit = doc.limit or 10
        scale = 2 if doc.scale is None else doc.scale
        if scale > limit:
            raise SchemaConfigError(f"Field '{name}': scale {scale} exceeds precision {limit}.")

    return FieldSpec(
        name=name,
        semantic_type=semantic_type,
        limit=doc.limit,
        scale=doc.scale,
        required=doc.required,
        unique=doc.unique,
        allow_negative=doc.allow_negative,
        file_constraint=file_constraint,
    )


def schema_from_document(data: dict[str, Any], *, table: str | None = None) -> RecordSchema:
    """
    Build a `RecordSchema` from a parsed schema document.
    """
    try:
        doc = SchemaDocument.model_validate(data)
    except ValidationError as e:
        raise SchemaConfigError(f"Invalid schema document: {e}") from e

    table_name = (table or doc.table).strip()
    if not table_name or len(table_name.encode("utf-8")) > MAX_IDENTIFIER_LENGTH:
        raise SchemaConfigError(f"Table name '{table_name}' must be 1 to {MAX_IDENTIFIER_LENGTH} bytes long.")

    fields = {name: _field_spec(name, field_doc) for name, field_doc in doc.fields.items()}
    return RecordSchema(
        table=table_name,
        fields=fields,
        auto_created_at=doc.auto_created_at,
    )


def schema_path() -> Path:
    raw = os.environ.get("RECORD_SCHEMA_PATH", "").strip()
    return Path(raw) if raw else DEFAULT_SCHEMA_PATH


def table_name_override() -> str | None:
    return os.environ.get("RECORD_TABLE_NAME", "").strip() or None


def load_record_schema(path: Path | None = None) -> RecordSchema:
    """
    Read and validate the schema document. Called once on startup.
    """
    path = path or schema_path()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise SchemaConfigError(f"Cannot read schema document {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise SchemaConfigError(f"Schema document {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise SchemaConfigError(f"Schema document {path} must be a JSON object.")
    return schema_from_document(data, table=table_name_override())


def max_upload_bytes(schema: RecordSchema) -> int:
    """
    Transport cap for one uploaded part.

    Defaults to the largest per-field file limit (never below 10 MiB), so a
    file over a smaller field limit still reaches the validator and gets the
    field-specific message.
    """
    configured = max(
        (spec.file_constraint.max_bytes for spec in schema.file_fields if spec.file_constraint),
        default=0,
    )
    default = max(configured, DEFAULT_FILE_MEGABYTES * MEBIBYTE)

    raw = os.environ.get("MAX_UPLOAD_BYTES", "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise SchemaConfigError("Invalid MAX_UPLOAD_BYTES. It must be an integer.") from None
    if value <= 0:
        raise SchemaConfigError("Invalid MAX_UPLOAD_BYTES. It must be > 0.")
    return value
