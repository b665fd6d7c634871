"""Configuration models for the Archivist engine."""

import os
from dataclasses import dataclass, field


@dataclass
class FusionWeights:
    """Tunable constants of the hybrid score fusion.

    Only the structure of the fusion is fixed (semantic + coverage +
    keyword bonus + entity bonus, with a lexical-support gate); the numbers
    are empirical and can be overridden per engine.
    """

    semantic_weight: float = 0.45
    coverage_weight: float = 0.30

    # Stage 1 keeps vector candidates at or above this similarity
    semantic_floor: float = 0.15
    # Candidates without any literal support need at least this similarity
    semantic_only_bar: float = 0.72

    # Found by FTS and lexically overlapping: base + coverage * scale
    keyword_bonus_base: float = 0.05
    keyword_bonus_coverage: float = 0.10
    # Lexical overlap without an FTS hit: coverage * scale
    lexical_bonus_coverage: float = 0.05
    entity_bonus: float = 0.25

    candidate_multiplier: int = 3
    default_min_score: float = 0.3


@dataclass
class ArchivistConfig:
    """Configuration for the Archivist engine."""

    # Storage paths
    db_path: str = "archivist.db"
    files_dir: str = "archivist_files"

    # Embedding settings
    embedding_provider: str = "local"  # 'local', 'openai'
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dim: int = 384
    vocab_path: str = "vocab.txt"
    max_sequence_length: int = 512

    # Chunking settings (characters)
    chunk_size: int = 1200
    chunk_overlap: int = 200

    # Extraction settings
    ocr_languages: tuple = ("spa", "eng")

    # Search settings
    default_limit: int = 5
    fusion: FusionWeights = field(default_factory=FusionWeights)

    # Background processing
    max_workers: int = 2

    def __post_init__(self):
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {self.chunk_size}")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError(
                f"chunk_overlap must be in [0, chunk_size), got {self.chunk_overlap}"
            )

    @classmethod
    def from_env(cls, **overrides) -> "ArchivistConfig":
        """Build a config from ``ARCHIVIST_*`` environment variables."""
        env = {
            "db_path": os.environ.get("ARCHIVIST_DB_PATH"),
            "files_dir": os.environ.get("ARCHIVIST_FILES_DIR"),
            "embedding_provider": os.environ.get("ARCHIVIST_EMBEDDING_PROVIDER"),
            "embedding_model": os.environ.get("ARCHIVIST_EMBEDDING_MODEL"),
            "vocab_path": os.environ.get("ARCHIVIST_VOCAB_PATH"),
        }
        if dim := os.environ.get("ARCHIVIST_EMBEDDING_DIM"):
            env["embedding_dim"] = int(dim)
        values = {k: v for k, v in env.items() if v is not None}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
