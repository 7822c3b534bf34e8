"""
Field schema types.

A `RecordSchema` is the immutable description of the single table this
service writes to: its name, its ordered columns (`FieldSpec`) and whether a
server-side `created_at` column is appended. It is built once at startup
(see `records/config.py`) and passed explicitly into every component.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping

MEBIBYTE = 1024 * 1024

ALL_EXTENSIONS = "all"


class SemanticType(str, Enum):
    TEXT = "text"
    DESCRIPTION = "description"
    NUMBER = "number"
    AMOUNT = "amount"
    YESNO = "yesno"
    DATETIME = "datetime"
    DATE = "date"
    EMAIL = "email"
    PHONE = "phone"
    URL = "url"
    PHOTO = "photo"
    FILE = "file"

    @property
    def is_file(self) -> bool:
        return self in FILE_TYPES


FILE_TYPES = frozenset({SemanticType.PHOTO, SemanticType.FILE})


@dataclass(frozen=True)
class FileConstraint:
    max_megabytes: int = 10
    # Either ALL_EXTENSIONS or a tuple of extensions such as (".png", ".jpg").
    allowed_extensions: str | tuple[str, ...] = ALL_EXTENSIONS

    @property
    def max_bytes(self) -> int:
        return self.max_megabytes * MEBIBYTE

    @property
    def allows_any_extension(self) -> bool:
        return self.allowed_extensions == ALL_EXTENSIONS


@dataclass(frozen=True)
class FieldSpec:
    name: str
    semantic_type: SemanticType
    limit: int | None = None
    scale: int | None = None
    required: bool = False
    unique: bool = False
    allow_negative: bool = False
    file_constraint: FileConstraint | None = None

    @property
    def is_file(self) -> bool:
        return self.semantic_type.is_file


@dataclass(frozen=True)
class RecordSchema:
    table: str
    fields: Mapping[str, FieldSpec]
    auto_created_at: bool = True

    def __post_init__(self) -> None:
        # Read-only view: request handlers share this object.
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(self.fields.values())

    def __len__(self) -> int:
        return len(self.fields)

    def get(self, name: str) -> FieldSpec | None:
        return self.fields.get(name)

    @property
    def file_fields(self) -> list[FieldSpec]:
        return [spec for spec in self if spec.is_file]

    @property
    def returning_columns(self) -> tuple[str, ...]:
        return ("id", "created_at") if self.auto_created_at else ("id",)
