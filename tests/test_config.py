"""Tests for configuration loading."""

import pytest

from archivist.config import ArchivistConfig, FusionWeights


def test_defaults():
    config = ArchivistConfig()
    assert (config.chunk_size, config.chunk_overlap) == (1200, 200)
    assert config.max_sequence_length == 512
    assert config.fusion == FusionWeights()
    assert config.fusion.semantic_only_bar == 0.72


def test_from_env(monkeypatch):
    monkeypatch.setenv("ARCHIVIST_DB_PATH", "/data/docs.db")
    monkeypatch.setenv("ARCHIVIST_EMBEDDING_DIM", "512")
    monkeypatch.delenv("ARCHIVIST_FILES_DIR", raising=False)
    monkeypatch.delenv("ARCHIVIST_VOCAB_PATH", raising=False)
    config = ArchivistConfig.from_env(files_dir="/data/files", vocab_path=None)
    assert config.db_path == "/data/docs.db"
    assert config.embedding_dim == 512
    assert config.files_dir == "/data/files"
    assert config.vocab_path == "vocab.txt"


def test_overrides_beat_environment(monkeypatch):
    monkeypatch.setenv("ARCHIVIST_DB_PATH", "/data/docs.db")
    assert ArchivistConfig.from_env(db_path="local.db").db_path == "local.db"


@pytest.mark.parametrize("chunk_size, chunk_overlap", [(0, 0), (1200, -1), (500, 500)])
def test_invalid_chunk_window(chunk_size, chunk_overlap):
    with pytest.raises(ValueError):
        ArchivistConfig(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
