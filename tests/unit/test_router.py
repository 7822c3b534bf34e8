from __future__ import annotations

import asyncpg
import pytest
from fastapi.testclient import TestClient

from conftest import PNG_BYTES
from core import db
from main import app

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"


@pytest.fixture
def client(ring_schema, fake_pool):
    # No lifespan here: the schema and a fake pool are injected directly.
    app.state.record_schema = ring_schema
    try:
        yield TestClient(app)
    finally:
        del app.state.record_schema


def _files(**overrides):
    files = {
        "ss": ("ss.png", PNG_BYTES, "image/png"),
        "aadhar": ("aadhar.jpg", JPEG_BYTES, "image/jpeg"),
    }
    files.update(overrides)
    return {k: v for k, v in files.items() if v is not None}


def test_scenario_a_saves_record(client, valid_values, fake_pool):
    response = client.post("/api/save", data=valid_values, files=_files())

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["id"] == 1
    assert body["created_at"]
    assert body["table"] == "Ring"
    assert body["message"] == "Record saved successfully"

    _, args = fake_pool.conn.queries[0]
    assert PNG_BYTES in args
    assert JPEG_BYTES in args


def test_scenario_b_missing_amount(client, valid_values):
    data = {k: v for k, v in valid_values.items() if k != "ring_size"}
    response = client.post("/api/save", data=data, files=_files())

    assert response.status_code == 400
    assert response.json() == {
        "error": "ring_size is required",
        "code": "VALIDATION_ERROR",
        "field": "ring_size",
    }


def test_scenario_c_decimal_caret(client, valid_values):
    response = client.post("/api/save", data={**valid_values, "caret": "2.5"}, files=_files())
    assert response.status_code == 400
    assert response.json()["field"] == "caret"
    assert response.json()["error"] == "caret must be an integer (no decimals)"


def test_scenario_d_short_phone(client, valid_values):
    response = client.post("/api/save", data={**valid_values, "phone": "12345"}, files=_files())
    assert response.status_code == 400
    assert response.json()["field"] == "phone"
    assert response.json()["error"] == "phone must be a valid phone number"


def test_scenario_e_extra_field(client, valid_values):
    response = client.post("/api/save", data={**valid_values, "foo": "bar"}, files=_files())
    assert response.status_code == 400
    assert response.json()["field"] == "foo"
    assert response.json()["error"] == "Extra field not allowed: foo"


def test_scenario_f_duplicate_entry(client, valid_values, fake_pool):
    fake_pool.conn.error = asyncpg.exceptions.UniqueViolationError("duplicate key")
    response = client.post("/api/save", data=valid_values, files=_files())

    assert response.status_code == 409
    assert response.json()["code"] == "DUPLICATE_ENTRY"


def test_missing_file_part(client, valid_values):
    response = client.post("/api/save", data=valid_values, files=_files(aadhar=None))
    assert response.status_code == 400
    assert response.json()["field"] == "aadhar"
    assert response.json()["error"] == "aadhar is required"


def test_empty_file_part_counts_as_missing(client, valid_values):
    response = client.post("/api/save", data=valid_values, files=_files(ss=("", b"", "application/octet-stream")))
    assert response.status_code == 400
    assert response.json()["error"] == "ss is required"


def test_upload_over_transport_cap(client, valid_values, monkeypatch):
    monkeypatch.setenv("MAX_UPLOAD_BYTES", "16")
    response = client.post("/api/save", data=valid_values, files=_files())

    assert response.status_code == 413
    assert response.json()["code"] == "FILE_TOO_LARGE"
    assert response.json()["field"] == "ss"


def test_json_body_without_files(client, valid_values):
    response = client.post("/api/save", json={**valid_values, "caret": 2})
    assert response.status_code == 400
    assert response.json()["error"] == "ss is required"


def test_json_body_must_be_an_object(client):
    response = client.post("/api/save", json=["not", "an", "object"])
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_internal_errors_hide_details(client, valid_values, fake_pool):
    fake_pool.conn.error = RuntimeError("password=hunter2")
    response = client.post("/api/save", data=valid_values, files=_files())

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "code": "INTERNAL_ERROR"}


def test_schema_endpoint(client):
    response = client.get("/schema")

    assert response.status_code == 200
    body = response.json()
    assert body["table"] == "Ring"
    assert body["fields"] == 7
    assert body["autoCreated"] is True
    assert body["schema"]["caret"]["type"] == "number"
    assert body["schema"]["aadhar"]["fileConfig"] == {"maxSize": 10, "extensions": "all"}
    assert body["timestamp"]


def test_health_reports_database(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["service"] == "record-api"
    assert body["database"] == "connected"
    assert body["uptime"] >= 0


def test_health_without_database(client, monkeypatch):
    monkeypatch.setattr(db, "_pool", None)
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["database"] == "unavailable"


def test_root(client):
    body = client.get("/").json()
    assert body["table"] == "Ring"
    assert "POST /api/save" in body["endpoints"]
