"""Vector math, CLS pooling and the persisted vector format."""

from typing import Sequence, Union

import numpy as np

from .exceptions import VectorFormatError

# Little-endian IEEE-754 float32, no header
VECTOR_DTYPE = np.dtype("<f4")

VectorLike = Union[Sequence[float], np.ndarray]


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """Cosine similarity; 0.0 for mismatched lengths or zero-norm vectors."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        return 0.0
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def cls_pool(hidden_state: np.ndarray, dim: int) -> np.ndarray:
    """
    Embedding from the hidden state at sequence position 0 (the ``[CLS]`` token).

    Args:
        hidden_state: Inference output shaped ``[1, seq, D]`` or ``[seq, D]``
        dim: Embedding dimensionality to read

    Returns:
        float32 vector of length ``dim``
    """
    hidden = np.asarray(hidden_state)
    if hidden.ndim == 3:
        hidden = hidden[0]
    if hidden.ndim != 2 or hidden.shape[0] == 0:
        raise ValueError(f"Unexpected hidden state shape {np.shape(hidden_state)}")
    if hidden.shape[1] < dim:
        raise ValueError(f"Hidden state has {hidden.shape[1]} channels, need {dim}")
    return np.array(hidden[0, :dim], dtype=np.float32)


def vector_to_bytes(vector: VectorLike) -> bytes:
    return np.asarray(vector, dtype=VECTOR_DTYPE).tobytes()


def vector_from_bytes(blob: bytes) -> np.ndarray:
    """Decode a persisted vector; refuses blobs that are not whole floats."""
    if len(blob) % VECTOR_DTYPE.itemsize:
        raise VectorFormatError(
            f"Vector blob of {len(blob)} bytes is not a multiple of {VECTOR_DTYPE.itemsize}"
        )
    return np.frombuffer(blob, dtype=VECTOR_DTYPE).astype(np.float32)
