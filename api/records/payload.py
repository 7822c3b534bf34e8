"""
The in-memory form of one submitted record.

Built per request by the router, consumed by the validator and the query
builder, then dropped. The core never sees the transport: an upload is just
a filename, a size and its bytes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


def scalar_text(value: Any) -> str | None:
    """
    Canonical text of a form or JSON scalar (JSON booleans become "true"/"false").
    """
    if value is None:
        return None
    if isinstance(value, bool):
        value = "true" if value else "false"
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    size: int
    data: bytes

    @classmethod
    def from_bytes(cls, filename: str, data: bytes) -> UploadedFile:
        return cls(filename=filename, size=len(data), data=data)


@dataclass
class IncomingRecord:
    # Insertion order is arrival order; extra-key errors are reported in it.
    values: dict[str, Any] = field(default_factory=dict)
    files: dict[str, UploadedFile] = field(default_factory=dict)

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any] | None = None,
        files: Mapping[str, UploadedFile] | None = None,
    ) -> IncomingRecord:
        return cls(values=dict(values or {}), files=dict(files or {}))

    def text(self, name: str) -> str | None:
        """
        Stripped text of a scalar value, or None when absent or blank.
        """
        return scalar_text(self.values.get(name))
