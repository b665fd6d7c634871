"""Embedding generation with caching and multiple provider support."""

import hashlib
import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Protocol, Tuple, Union

import numpy as np
from openai import OpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

from .exceptions import EmbeddingError
from .tokenizer import WordPieceTokenizer
from .vectors import cls_pool

logger = logging.getLogger(__name__)


class EmbeddingCache:
    """LRU cache for embeddings to avoid recomputing repeated texts."""
    
    def __init__(self, maxsize: int = 1000):
        self._cache: Dict[str, List[float]] = {}
        self._maxsize = maxsize
        self._access_order: List[str] = []
        self._hits = 0
        self._misses = 0
    
    def _hash_text(self, text: str, model: str) -> str:
        return hashlib.sha256(f"{model}:{text}".encode()).hexdigest()[:16]
    
    def get(self, text: str, model: str) -> Optional[List[float]]:
        key = self._hash_text(text, model)
        if key in self._cache:
            self._hits += 1
            self._access_order.remove(key)
            self._access_order.append(key)
            return self._cache[key]
        self._misses += 1
        return None
    
    def set(self, text: str, model: str, embedding: List[float]) -> None:
        key = self._hash_text(text, model)
        if key not in self._cache:
            if len(self._cache) >= self._maxsize:
                oldest = self._access_order.pop(0)
                del self._cache[oldest]
            self._access_order.append(key)
        self._cache[key] = embedding
    
    def stats(self) -> Dict[str, float]:
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / total if total > 0 else 0,
            "size": len(self._cache),
            "maxsize": self._maxsize,
        }
    
    def clear(self) -> None:
        self._cache.clear()
        self._access_order.clear()
        self._hits = 0
        self._misses = 0


class BaseEmbeddingProvider(ABC):
    """Abstract base class for embedding providers."""
    
    def __init__(self, model: str, use_cache: bool = True, cache: Optional[EmbeddingCache] = None):
        self.model = model
        self.use_cache = use_cache
        self.cache = cache or EmbeddingCache()
    
    @abstractmethod
    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for a batch of texts (provider-specific)."""
    
    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return embedding dimension for this model."""
    
    def embed(self, texts: Union[str, List[str]]) -> List[List[float]]:
        """
        Generate embeddings with caching.
        
        Args:
            texts: Single text or list of texts
        
        Returns:
            List of embedding vectors
        """
        if isinstance(texts, str):
            texts = [texts]
        
        if not self.use_cache:
            return self._embed_batch(texts)
        
        results: List[Optional[List[float]]] = [None] * len(texts)
        texts_to_embed: List[Tuple[int, str]] = []
        
        for i, text in enumerate(texts):
            cached = self.cache.get(text, self.model)
            if cached is not None:
                results[i] = cached
            else:
                texts_to_embed.append((i, text))
        
        if texts_to_embed:
            indices, uncached_texts = zip(*texts_to_embed)
            new_embeddings = self._embed_batch(list(uncached_texts))
            
            for idx, text, embedding in zip(indices, uncached_texts, new_embeddings):
                self.cache.set(text, self.model, embedding)
                results[idx] = embedding
        
        return results  # type: ignore


# ============ Local model (tokenizer + inference engine) ============

class InferenceEngine(Protocol):
    """A sentence encoder that maps token arrays to hidden states."""

    def run(self, input_ids: np.ndarray, attention_mask: np.ndarray) -> np.ndarray:
        """Return the hidden state tensor shaped ``[1, seq, D]``."""


class SentenceTransformerEngine:
    """
    Runs the transformer inside a sentence-transformers model and returns
    its last hidden state, bypassing the model's own tokenizer and pooling.
    
    Note: HuggingFace token is optional but recommended for private models
    and to avoid rate limits. Set HF_TOKEN environment variable.
    """

    def __init__(self, model: str = "sentence-transformers/all-MiniLM-L6-v2", hf_token: Optional[str] = None):
        self.model = model
        self.hf_token = hf_token or os.environ.get("HF_TOKEN")
        self._model = None

    def _load_model(self):
        """Lazy-load the model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info(f"Loading sentence encoder {self.model}")
            self._model = SentenceTransformer(self.model, token=self.hf_token)
        return self._model

    def run(self, input_ids: np.ndarray, attention_mask: np.ndarray) -> np.ndarray:
        import torch

        transformer = self._load_model()[0].auto_model
        with torch.no_grad():
            output = transformer(
                input_ids=torch.from_numpy(np.asarray(input_ids).reshape(1, -1)),
                attention_mask=torch.from_numpy(np.asarray(attention_mask).reshape(1, -1)),
            )
        return output.last_hidden_state.cpu().numpy()


class LocalEmbedding(BaseEmbeddingProvider):
    """
    On-device embeddings: WordPiece tokenization, one inference call per
    text, CLS pooling of the hidden state.
    
    Example:
        >>> tokenizer = WordPieceTokenizer.from_file("vocab.txt")
        >>> embedder = LocalEmbedding(tokenizer, SentenceTransformerEngine(), dimension=384)
        >>> embeddings = embedder.embed(["Hola mundo"])
    """

    def __init__(
        self,
        tokenizer: WordPieceTokenizer,
        engine: InferenceEngine,
        dimension: int,
        model: str = "local",
        use_cache: bool = True,
        cache: Optional[EmbeddingCache] = None,
    ):
        super().__init__(model, use_cache, cache)
        self.tokenizer = tokenizer
        self.engine = engine
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed_one(self, text: str) -> List[float]:
        inputs = self.tokenizer.tokenize_to_arrays(text)
        try:
            hidden_state = self.engine.run(inputs.input_ids, inputs.attention_mask)
            vector = cls_pool(hidden_state, self._dimension)
        except Exception as e:
            raise EmbeddingError(f"Embedding model failed: {e}") from e
        return vector.tolist()

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        # Sequential: the inference engine is stateful
        return [self.embed_one(text) for text in texts]


# ============ Remote providers ============

class OpenAIEmbedding(BaseEmbeddingProvider):
    """OpenAI embedding provider with retries and caching."""
    
    MODEL_DIMENSIONS = {
        "text-embedding-3-large": 3072,
        "text-embedding-3-small": 1536,
        "text-embedding-ada-002": 1536,
    }
    
    def __init__(
        self,
        model: str = "text-embedding-3-small",
        openai_api_key: Optional[str] = None,
        use_cache: bool = True,
        cache: Optional[EmbeddingCache] = None,
    ):
        super().__init__(model, use_cache, cache)
        self.api_key = openai_api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise EmbeddingError(
                "OpenAI API key required. Set OPENAI_API_KEY environment variable "
                "or pass openai_api_key parameter."
            )
        self.client = OpenAI(api_key=self.api_key)
    
    @property
    def dimension(self) -> int:
        return self.MODEL_DIMENSIONS.get(self.model, 1536)
    
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        response = self.client.embeddings.create(
            model=self.model,
            input=texts,
        )
        
        # Sort by index to ensure correct order
        embeddings = sorted(response.data, key=lambda x: x.index)
        return [emb.embedding for emb in embeddings]


# ============ Provider Factory ============

def create_embedding_provider(
    provider: str = "local",
    model: Optional[str] = None,
    **kwargs
) -> BaseEmbeddingProvider:
    """
    Factory function to create embedding providers.
    
    Args:
        provider: Provider name ('local', 'openai')
        model: Model name (uses provider default if not specified)
        **kwargs: Provider-specific arguments. 'local' needs ``vocab_path``
            and accepts ``dimension``, ``max_sequence_length``, ``hf_token``.
    
    Returns:
        Configured embedding provider
    
    Example:
        >>> embedder = create_embedding_provider("local", vocab_path="vocab.txt", dimension=384)
        >>> embedder = create_embedding_provider("openai", "text-embedding-3-small")
    """
    provider = provider.lower()
    
    if provider in ("local", "huggingface", "hf", "sentence-transformers"):
        model = model or "sentence-transformers/all-MiniLM-L6-v2"
        vocab_path = kwargs.pop("vocab_path", None)
        if not vocab_path:
            raise ValueError("The local provider needs a vocab_path")
        tokenizer = WordPieceTokenizer.from_file(
            vocab_path, kwargs.pop("max_sequence_length", 512)
        )
        engine = SentenceTransformerEngine(model, hf_token=kwargs.pop("hf_token", None))
        return LocalEmbedding(
            tokenizer,
            engine,
            dimension=kwargs.pop("dimension", 384),
            model=model,
            **kwargs,
        )
    
    elif provider in ("openai", "openai-embedding"):
        model = model or "text-embedding-3-small"
        return OpenAIEmbedding(model, **kwargs)
    
    else:
        raise ValueError(
            f"Unknown provider: {provider}. "
            f"Supported: 'local', 'openai'"
        )
