"""Main Archivist engine orchestrator."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from .chunking import chunk_text
from .config import ArchivistConfig
from .embeddings import BaseEmbeddingProvider, create_embedding_provider
from .exceptions import (
    ArchivistError,
    CannotOpenFile,
    DocumentNotFound,
    EmbeddingError,
    InvalidFormat,
    UnsupportedFileType,
)
from .extraction import TextExtractor, detect_file_type
from .models import Chunk, Document, FileType, ProcessingStatus, SearchResult, SourceType
from .search import HybridSearchEngine
from .storage import MetadataStore

logger = logging.getLogger(__name__)


def _coerce_file_type(file_type: Union[FileType, str]) -> FileType:
    try:
        return FileType(file_type)
    except ValueError:
        raise UnsupportedFileType(f"Unsupported file type: {file_type}") from None


class Archivist:
    """Document ingestion and hybrid retrieval engine."""
    
    def __init__(
        self,
        config: ArchivistConfig,
        embedder: Optional[BaseEmbeddingProvider] = None,
        extractor: Optional[TextExtractor] = None,
        store: Optional[MetadataStore] = None,
    ):
        self.config = config
        self._lock = threading.RLock()
        # One inference at a time: local engines are not thread-safe
        self._embed_lock = threading.Lock()
        
        self.embedder = embedder or self._default_embedder(config)
        self.extractor = extractor or TextExtractor(ocr_languages=config.ocr_languages)
        self.store = store or MetadataStore(config.db_path)
        self.search_engine = HybridSearchEngine(self.store, config.fusion)
        self.files_dir = Path(config.files_dir)
    
    @staticmethod
    def _default_embedder(config: ArchivistConfig) -> BaseEmbeddingProvider:
        if config.embedding_provider.lower() == "openai":
            # Hugging Face ids are namespaced; let the provider pick its default
            model = None if "/" in config.embedding_model else config.embedding_model
            return create_embedding_provider("openai", model)
        return create_embedding_provider(
            config.embedding_provider,
            config.embedding_model,
            vocab_path=config.vocab_path,
            dimension=config.embedding_dim,
            max_sequence_length=config.max_sequence_length,
        )
    
    # ============ Import ============

    def import_bytes(
        self,
        data: bytes,
        filename: str,
        *,
        title: Optional[str] = None,
        file_type: Optional[Union[FileType, str]] = None,
        source_type: SourceType = SourceType.FILES,
    ) -> Document:
        """Store raw file content as a new pending document."""
        resolved = _coerce_file_type(file_type) if file_type else detect_file_type(filename)
        document = Document(
            title=title or Path(filename).stem or filename,
            file_type=resolved,
            source_type=SourceType(source_type),
            file_size=len(data),
        )
        
        self.files_dir.mkdir(parents=True, exist_ok=True)
        stored = self.files_dir / f"{document.id}{Path(filename).suffix.lower()}"
        stored.write_bytes(data)
        document.file_path = str(stored)
        
        self.store.insert_document(document)
        logger.info(f"Imported {filename!r} as {document.id} ({resolved.value}, {len(data)} bytes)")
        return document
    
    def import_file(
        self,
        path: Union[str, Path],
        title: Optional[str] = None,
        file_type: Optional[Union[FileType, str]] = None,
        source_type: SourceType = SourceType.FILES,
    ) -> Document:
        """
        Copy a file into the archive as a new pending document.
        
        Args:
            path: File to import
            title: Display title (defaults to the file name without extension)
            file_type: Declared type (detected from the extension if omitted)
            source_type: Where the file came from
        
        Returns:
            The stored document, status ``pending``
        """
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise CannotOpenFile(f"Could not open {path}: {e}") from e
        return self.import_bytes(
            data, path.name, title=title, file_type=file_type, source_type=source_type
        )
    
    def import_text(self, title: str, text: str) -> Document:
        """Create a pending document from typed-in text."""
        document = Document(
            title=title,
            file_type=FileType.TEXT,
            source_type=SourceType.MANUAL,
            content=text,
            file_size=len(text.encode("utf-8")),
        )
        self.store.insert_document(document)
        logger.info(f"Imported text note {title!r} as {document.id}")
        return document
    
    # ============ Processing ============

    def _require(self, document_id: str) -> Document:
        document = self.store.get_document(document_id)
        if document is None:
            raise DocumentNotFound(f"Document not found: {document_id}")
        return document
    
    def _set_status(self, document: Document, status: ProcessingStatus) -> None:
        self.store.update_status(document.id, status)
        document.status = status
        logger.info(f"Document {document.id}: {status.value}")
    
    def _extract(self, document: Document) -> str:
        if document.file_path:
            return self.extractor.extract_file(document.file_path, document.file_type)
        text = document.content.strip()
        if not text:
            raise InvalidFormat("No text could be extracted")
        return text
    
    def _embed(self, texts: List[str]) -> List[List[float]]:
        with self._embed_lock:
            vectors = self.embedder.embed(texts)
        expected = self.embedder.dimension
        for vector in vectors:
            if len(vector) != expected:
                raise EmbeddingError(
                    f"Embedding has {len(vector)} dimensions, expected {expected}"
                )
        return vectors
    
    def process(self, document_id: str) -> Document:
        """
        Run the ingestion pipeline for one document.
        
        extracting -> chunking -> embedding -> ready. Any failure leaves the
        document in ``error`` with a message; it is not raised.
        
        Raises:
            DocumentNotFound: If the id is unknown
        """
        document = self._require(document_id)
        try:
            self._set_status(document, ProcessingStatus.EXTRACTING)
            text = self._extract(document)
            self.store.update_content(document.id, text)
            document.content = text
            
            self._set_status(document, ProcessingStatus.CHUNKING)
            pieces = chunk_text(
                text,
                target_size=self.config.chunk_size,
                overlap=self.config.chunk_overlap,
            )
            if not pieces:
                raise InvalidFormat("No chunks could be produced from the text")
            
            self._set_status(document, ProcessingStatus.EMBEDDING)
            vectors = self._embed([piece.text for piece in pieces])
            chunks = [
                Chunk(
                    document_id=document.id,
                    content=piece.text,
                    chunk_index=piece.index,
                    start_offset=piece.start,
                    end_offset=piece.end,
                )
                for piece in pieces
            ]
            self.store.replace_chunks(document.id, list(zip(chunks, vectors)))
            self._set_status(document, ProcessingStatus.READY)
            logger.info(f"Document {document.id} ready with {len(chunks)} chunks")
        except ArchivistError as e:
            self._fail(document, str(e))
        except Exception as e:
            logger.exception(f"Unexpected failure processing {document.id}")
            self._fail(document, str(e) or e.__class__.__name__)
        return document
    
    def _fail(self, document: Document, message: str) -> None:
        logger.warning(f"Document {document.id} failed: {message}")
        self.store.update_status(document.id, ProcessingStatus.ERROR, message)
        document.status = ProcessingStatus.ERROR
        document.error_message = message
    
    def reprocess(self, document_id: str) -> Document:
        """Drop a document's chunks and run the pipeline again."""
        document = self._require(document_id)
        # Out of the ready state before its chunks go away
        self._set_status(document, ProcessingStatus.EXTRACTING)
        removed = self.store.delete_chunks(document_id)
        logger.info(f"Reprocessing {document_id}, removed {removed} chunks")
        return self.process(document_id)
    
    def process_many(self, document_ids: Sequence[str]) -> List[Document]:
        """Process several documents concurrently; each one fails independently."""
        with ThreadPoolExecutor(max_workers=max(1, self.config.max_workers)) as pool:
            return list(pool.map(self.process, document_ids))
    
    def process_pending(self) -> List[Document]:
        pending = self.store.list_documents(ProcessingStatus.PENDING)
        return self.process_many([document.id for document in pending])
    
    # ============ Queries ============

    def get_document(self, document_id: str) -> Optional[Document]:
        return self.store.get_document(document_id)
    
    def list_documents(self, status: Optional[ProcessingStatus] = None) -> List[Document]:
        return self.store.list_documents(status)
    
    def get_chunks(self, document_id: str) -> List[Chunk]:
        return self.store.get_chunks(document_id)
    
    def search(
        self,
        query: str,
        *,
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
    ) -> List[SearchResult]:
        """
        Hybrid search over ready documents.
        
        Args:
            query: Question or keywords
            limit: Maximum number of results (config default if omitted)
            min_score: Minimum fused score (fusion default if omitted)
        
        Returns:
            List of SearchResult objects, best first
        """
        if not query or not query.strip():
            return []
        limit = self.config.default_limit if limit is None else limit
        query_vector = self._embed([query])[0]
        return self.search_engine.hybrid_search(query_vector, query, limit, min_score)
    
    def delete_document(self, document_id: str) -> bool:
        """
        Delete a document, its chunks and vectors, and its stored file.
        
        Returns:
            True if deleted, False if not found
        """
        document = self.store.get_document(document_id)
        if document is None:
            return False
        deleted = self.store.delete_document(document_id)
        if document.file_path:
            Path(document.file_path).unlink(missing_ok=True)
        logger.info(f"Deleted document {document_id}")
        return deleted
    
    def get_stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        with self._lock:
            return {
                **self.store.stats(),
                "db_path": self.config.db_path,
                "files_dir": self.config.files_dir,
                "embedding_model": self.embedder.model,
                "embedding_dim": self.embedder.dimension,
                "cache": self.embedder.cache.stats(),
            }
    
    def close(self) -> None:
        """Close all connections."""
        with self._lock:
            self.store.close()


def create_archivist(
    db_path: str = "archivist.db",
    files_dir: str = "archivist_files",
    *,
    embedding_provider: str = "local",
    embedding_model: Optional[str] = None,
    vocab_path: Optional[str] = None,
    embedder: Optional[BaseEmbeddingProvider] = None,
) -> Archivist:
    """
    Create an Archivist instance with sensible defaults.
    
    Example:
        >>> archivist = create_archivist("notes.db", vocab_path="vocab.txt")
        >>> doc = archivist.import_file("factura_luz.pdf")
        >>> archivist.process(doc.id)
        >>> results = archivist.search("¿Cuánto pagué de luz?")
    """
    config = ArchivistConfig.from_env(
        db_path=db_path,
        files_dir=files_dir,
        embedding_provider=embedding_provider,
        embedding_model=embedding_model,
        vocab_path=vocab_path,
    )
    return Archivist(config, embedder=embedder)
