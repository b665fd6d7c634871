"""
Archivist: document ingestion and hybrid retrieval with SQLite

Turns PDFs, scans, Word and Excel files and typed-in notes into searchable
chunks:
- Plain-text extraction (PDF text layer with OCR fallback, OOXML parsing)
- Sentence-aware chunking with stable character offsets
- WordPiece tokenization and CLS-pooled embeddings
- SQLite storage with an FTS5 inverted index kept in sync by triggers
- Hybrid search fusing cosine similarity with literal term coverage

Key Features:
- Own ZIP local-header reader (Store/Deflate) for .docx/.xlsx
- Bilingual (Spanish/English) query analysis
- Concurrent per-document processing pipeline
- Multiple embedding providers (local model, OpenAI)
- LRU cache for embedding queries
- REST API (FastAPI) and CLI
"""

from .config import ArchivistConfig, FusionWeights
from .models import (
    Chunk,
    Document,
    FileType,
    ProcessingStatus,
    SearchResult,
    SourceType,
    TextChunk,
)
from .exceptions import (
    ArchivistError,
    CannotOpenFile,
    DocumentNotFound,
    EmbeddingError,
    ExtractionError,
    InvalidFormat,
    OcrFailed,
    UnsupportedFileType,
    VectorFormatError,
)
from .archive import extract_entry, list_entries
from .office import extract_docx_text, extract_xlsx_text
from .extraction import TextExtractor, detect_file_type
from .chunking import chunk_text
from .tokenizer import TokenizedInput, WordPieceTokenizer
from .vectors import cls_pool, cosine_similarity
from .embeddings import (
    BaseEmbeddingProvider,
    EmbeddingCache,
    LocalEmbedding,
    OpenAIEmbedding,
    SentenceTransformerEngine,
    create_embedding_provider,
)
from .storage import MetadataStore
from .search import HybridSearchEngine
from .archivist import Archivist, create_archivist

__version__ = "1.0.0"
__all__ = [
    # Core
    "ArchivistConfig",
    "FusionWeights",
    "Archivist",
    "create_archivist",
    # Models
    "Chunk",
    "Document",
    "FileType",
    "ProcessingStatus",
    "SearchResult",
    "SourceType",
    "TextChunk",
    # Errors
    "ArchivistError",
    "CannotOpenFile",
    "DocumentNotFound",
    "EmbeddingError",
    "ExtractionError",
    "InvalidFormat",
    "OcrFailed",
    "UnsupportedFileType",
    "VectorFormatError",
    # Extraction & Chunking
    "extract_entry",
    "list_entries",
    "extract_docx_text",
    "extract_xlsx_text",
    "TextExtractor",
    "detect_file_type",
    "chunk_text",
    # Embeddings
    "TokenizedInput",
    "WordPieceTokenizer",
    "cls_pool",
    "cosine_similarity",
    "BaseEmbeddingProvider",
    "EmbeddingCache",
    "LocalEmbedding",
    "OpenAIEmbedding",
    "SentenceTransformerEngine",
    "create_embedding_provider",
    # Components
    "MetadataStore",
    "HybridSearchEngine",
]
