"""Tests for the SQLite store: cascades, FTS sync and status gating."""

import pytest

from archivist.models import Chunk, Document, FileType, ProcessingStatus


def _document(store, title="Factura", status=ProcessingStatus.READY):
    document = store.insert_document(Document(title=title, file_type=FileType.PDF))
    store.update_status(document.id, status)
    return document


def _chunks(document, texts):
    return [
        (Chunk(document.id, text, i, i * 100, i * 100 + len(text)), [float(i + 1), 0.0, 1.0])
        for i, text in enumerate(texts)
    ]


def test_document_round_trip(store):
    document = store.insert_document(Document(title="Nómina", file_type=FileType.XLSX, file_size=10))
    loaded = store.get_document(document.id)
    assert loaded == document
    assert store.get_document("missing") is None


def test_status_and_error_message(store):
    document = _document(store, status=ProcessingStatus.PENDING)
    store.update_status(document.id, ProcessingStatus.ERROR, "Could not open the file")
    loaded = store.get_document(document.id)
    assert loaded.status is ProcessingStatus.ERROR
    assert loaded.error_message == "Could not open the file"
    assert [d.id for d in store.list_documents(ProcessingStatus.ERROR)] == [document.id]
    assert store.list_documents(ProcessingStatus.READY) == []


def test_replace_chunks_stores_vectors(store):
    document = _document(store)
    store.replace_chunks(document.id, _chunks(document, ["uno", "dos"]))
    chunks = store.get_chunks(document.id)
    assert [c.content for c in chunks] == ["uno", "dos"]
    assert store.get_vector(chunks[1].id).tolist() == [2.0, 0.0, 1.0]


def test_replace_chunks_swaps_old_set(store):
    document = _document(store)
    store.replace_chunks(document.id, _chunks(document, ["viejo contenido"]))
    store.replace_chunks(document.id, _chunks(document, ["nuevo contenido"]))
    assert [c.content for c in store.get_chunks(document.id)] == ["nuevo contenido"]
    assert store.search_fts('"viejo"') == []
    assert len(store.search_fts('"nuevo"')) == 1
    assert store.stats()["vectors"] == 1


def test_replace_chunks_is_atomic(store):
    document = _document(store)
    other = _document(store, title="Otro")
    store.replace_chunks(document.id, _chunks(document, ["original"]))
    bad = _chunks(document, ["reemplazo"]) + _chunks(other, ["ajeno"])
    with pytest.raises(ValueError):
        store.replace_chunks(document.id, bad)
    assert [c.content for c in store.get_chunks(document.id)] == ["original"]


def test_delete_document_cascades(store):
    document = _document(store)
    store.replace_chunks(document.id, _chunks(document, ["alquiler de marzo", "alquiler de abril"]))
    assert store.delete_document(document.id)
    stats = store.stats()
    assert (stats["documents"], stats["chunks"], stats["vectors"]) == (0, 0, 0)
    assert store.search_fts('"alquiler"') == []
    assert not store.delete_document(document.id)


def test_fts_follows_content_updates(store):
    document = _document(store)
    store.replace_chunks(document.id, _chunks(document, ["recibo del gas"]))
    chunk = store.get_chunks(document.id)[0]
    assert store.update_chunk_content(chunk.id, "recibo del agua")
    assert store.search_fts('"gas"') == []
    assert [r["chunk_id"] for r in store.search_fts('"agua"')] == [chunk.id]


def test_fts_folds_diacritics(store):
    document = _document(store)
    store.replace_chunks(document.id, _chunks(document, ["Revisión del camión"]))
    assert len(store.search_fts('"revision" AND "camion"')) == 1


def test_search_only_sees_ready_documents(store):
    ready = _document(store, title="Lista")
    pending = _document(store, title="Pendiente", status=ProcessingStatus.EMBEDDING)
    store.replace_chunks(ready.id, _chunks(ready, ["seguro del coche"]))
    store.replace_chunks(pending.id, _chunks(pending, ["seguro de la casa"]))

    assert [r["document_id"] for r in store.search_fts('"seguro"')] == [ready.id]
    assert [r["document_id"] for r in store.ready_vectors()] == [ready.id]


def test_search_fts_result_fields(store):
    document = _document(store, title="Póliza")
    store.replace_chunks(document.id, _chunks(document, ["seguro del coche"]))
    row = store.search_fts('"coche"', k=5)[0]
    assert row["document_title"] == "Póliza"
    assert row["chunk_index"] == 0
    assert row["content"] == "seguro del coche"


def test_unparseable_fts_query_returns_nothing(store):
    document = _document(store)
    store.replace_chunks(document.id, _chunks(document, ["texto"]))
    assert store.search_fts('AND OR "') == []
