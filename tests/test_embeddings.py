"""Tests for embedding providers and the embedding cache."""

import pytest

from archivist.embeddings import (
    EmbeddingCache,
    LocalEmbedding,
    OpenAIEmbedding,
    SentenceTransformerEngine,
    create_embedding_provider,
)
from archivist.exceptions import EmbeddingError

from conftest import FakeEngine


class FailingEngine:
    def run(self, input_ids, attention_mask):
        raise RuntimeError("out of memory")


def test_local_embedding_pools_cls_position(tokenizer):
    engine = FakeEngine(dim=8)
    embedder = LocalEmbedding(tokenizer, engine, dimension=4)
    vector = embedder.embed("hola mundo")[0]
    # FakeEngine writes the attention length at position 0: [CLS] hola mundo [SEP]
    assert vector == [4.0, 4.0, 4.0, 4.0]
    assert len(engine.calls[0]) == 16


def test_local_embedding_uses_cache(tokenizer):
    engine = FakeEngine()
    embedder = LocalEmbedding(tokenizer, engine, dimension=8)
    first = embedder.embed(["hola", "luz"])
    second = embedder.embed(["luz", "hola"])
    assert second == [first[1], first[0]]
    assert len(engine.calls) == 2
    assert embedder.cache.stats()["hits"] == 2


def test_local_embedding_wraps_engine_failures(tokenizer):
    embedder = LocalEmbedding(tokenizer, FailingEngine(), dimension=8)
    with pytest.raises(EmbeddingError):
        embedder.embed("hola")


def test_cache_evicts_least_recently_used():
    cache = EmbeddingCache(maxsize=2)
    cache.set("a", "m", [1.0])
    cache.set("b", "m", [2.0])
    assert cache.get("a", "m") == [1.0]
    cache.set("c", "m", [3.0])
    assert cache.get("b", "m") is None
    assert cache.get("a", "m") == [1.0]
    assert cache.stats()["size"] == 2
    cache.clear()
    assert cache.stats() == {"hits": 0, "misses": 0, "hit_rate": 0, "size": 0, "maxsize": 2}


def test_cache_is_keyed_by_model():
    cache = EmbeddingCache()
    cache.set("hola", "model-a", [1.0])
    assert cache.get("hola", "model-b") is None


def test_factory_builds_local_provider_lazily(vocab_file):
    embedder = create_embedding_provider("local", vocab_path=str(vocab_file), dimension=8)
    assert isinstance(embedder, LocalEmbedding)
    assert isinstance(embedder.engine, SentenceTransformerEngine)
    assert embedder.engine._model is None
    assert embedder.dimension == 8


def test_factory_requires_vocabulary_for_local():
    with pytest.raises(ValueError):
        create_embedding_provider("local")


def test_factory_rejects_unknown_provider():
    with pytest.raises(ValueError):
        create_embedding_provider("word2vec")


def test_openai_requires_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(EmbeddingError):
        OpenAIEmbedding()


def test_openai_dimensions(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    assert OpenAIEmbedding("text-embedding-3-large").dimension == 3072
    assert create_embedding_provider("openai").dimension == 1536
