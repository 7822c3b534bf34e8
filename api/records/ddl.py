"""
CREATE TABLE statement for the record table.

The statement is `CREATE TABLE IF NOT EXISTS`, so running it against a
table that already exists is a no-op. It is executed once per process on
startup (see `repository.ensure_table`).
"""

from __future__ import annotations

from .column_types import column_type
from .fields import FieldSpec, RecordSchema

ID_COLUMN = '"id" BIGINT GENERATED ALWAYS AS IDENTITY PRIMARY KEY'
CREATED_AT_COLUMN = '"created_at" TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP'


def quote_ident(name: str) -> str:
    """
    Quote a table/column identifier for PostgreSQL.
    """
    return '"' + name.replace('"', '""') + '"'


def column_definition(spec: FieldSpec) -> str:
    parts = [quote_ident(spec.name), column_type(spec)]
    if spec.required:
        parts.append("NOT NULL")
    if spec.unique:
        parts.append("UNIQUE")
    return " ".join(parts)


def create_table_sql(schema: RecordSchema) -> str:
    columns = [ID_COLUMN]
    columns.extend(column_definition(spec) for spec in schema)
    if schema.auto_created_at:
        columns.append(CREATED_AT_COLUMN)

    body = ",\n".join(columns)
    return f"CREATE TABLE IF NOT EXISTS {quote_ident(schema.table)} (\n{body}\n);"
