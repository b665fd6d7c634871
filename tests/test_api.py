"""Tests for the REST API."""

import pytest
from fastapi.testclient import TestClient

from archivist.api import create_app

from conftest import make_docx


@pytest.fixture
def client(archivist):
    with TestClient(create_app(archivist)) as client:
        yield client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "archivist"}


def test_text_import_processes_in_background(client):
    response = client.post("/documents/text", json={"title": "Alarma", "text": "El código de la alarma es 4521."})
    assert response.status_code == 202
    document_id = response.json()["id"]
    assert response.json()["finished"] is False

    detail = client.get(f"/documents/{document_id}").json()
    assert detail["status"] == "ready"
    assert detail["finished"] is True
    assert detail["content"] == "El código de la alarma es 4521."

    chunks = client.get(f"/documents/{document_id}/chunks").json()
    assert [c["chunk_index"] for c in chunks] == [0]


def test_upload_and_search(client):
    files = {"file": ("contrato.docx", make_docx(["Contrato de alquiler con fianza"]), "application/octet-stream")}
    response = client.post("/documents", files=files, data={"title": "Contrato"})
    assert response.status_code == 202
    assert response.json()["file_type"] == "docx"

    response = client.post("/search", json={"query": "fianza alquiler", "limit": 3})
    body = response.json()
    assert body["count"] == 1
    assert body["results"][0]["document_title"] == "Contrato"


def test_upload_with_unknown_type_is_rejected(client):
    files = {"file": ("x.bin", b"data", "application/octet-stream")}
    response = client.post("/documents", files=files, data={"file_type": "spreadsheet"})
    assert response.status_code == 400


def test_list_filter_reprocess_and_delete(client):
    document_id = client.post("/documents/text", json={"title": "Nota", "text": "Texto."}).json()["id"]

    listed = client.get("/documents", params={"status": "ready"}).json()
    assert [d["id"] for d in listed] == [document_id]
    assert client.get("/documents", params={"status": "error"}).json() == []

    response = client.post(f"/documents/{document_id}/reprocess")
    assert response.status_code == 202
    assert client.get(f"/documents/{document_id}").json()["status"] == "ready"

    assert client.delete(f"/documents/{document_id}").json() == {"deleted": True, "document_id": document_id}
    assert client.get(f"/documents/{document_id}").status_code == 404
    assert client.delete(f"/documents/{document_id}").status_code == 404


def test_stats_and_cache_clear(client):
    client.post("/documents/text", json={"title": "Nota", "text": "Texto."})
    client.post("/search", json={"query": "texto"})
    stats = client.get("/stats").json()
    assert stats["documents"] == 1
    assert stats["cache_stats"]["size"] >= 1

    cleared = client.post("/cache/clear").json()
    assert cleared["cleared"] is True
    assert client.get("/stats").json()["cache_stats"]["size"] == 0


def test_invalid_search_request(client):
    assert client.post("/search", json={"query": "x", "limit": 0}).status_code == 422
