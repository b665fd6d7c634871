"""SQLite storage for documents, chunks, vectors and the FTS5 index."""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .models import Chunk, Document, FileType, ProcessingStatus, SourceType
from .vectors import VectorLike, vector_from_bytes, vector_to_bytes

logger = logging.getLogger(__name__)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    file_type TEXT NOT NULL,
    source_type TEXT NOT NULL,
    status TEXT NOT NULL,
    error_message TEXT,
    content TEXT NOT NULL DEFAULT '',
    file_path TEXT,
    file_size INTEGER,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS chunks (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    document_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    content TEXT NOT NULL,
    chunk_index INTEGER NOT NULL,
    start_offset INTEGER NOT NULL,
    end_offset INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_chunks_document_id ON chunks(document_id);
CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(status);

CREATE TABLE IF NOT EXISTS chunk_vectors (
    chunk_id TEXT PRIMARY KEY REFERENCES chunks(id) ON DELETE CASCADE,
    embedding BLOB NOT NULL
);

CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(
    content,
    content='chunks',
    content_rowid='seq',
    tokenize='unicode61 remove_diacritics 2'
);

CREATE TRIGGER IF NOT EXISTS chunks_ai AFTER INSERT ON chunks BEGIN
    INSERT INTO chunks_fts(rowid, content) VALUES (new.seq, new.content);
END;

CREATE TRIGGER IF NOT EXISTS chunks_ad AFTER DELETE ON chunks BEGIN
    INSERT INTO chunks_fts(chunks_fts, rowid, content) VALUES ('delete', old.seq, old.content);
END;

CREATE TRIGGER IF NOT EXISTS chunks_au AFTER UPDATE OF content ON chunks BEGIN
    INSERT INTO chunks_fts(chunks_fts, rowid, content) VALUES ('delete', old.seq, old.content);
    INSERT INTO chunks_fts(rowid, content) VALUES (new.seq, new.content);
END;
"""

_CANDIDATE_COLUMNS = """
    c.id AS chunk_id, c.content, c.document_id, c.chunk_index,
    d.title AS document_title
"""


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        title=row["title"],
        file_type=FileType.parse(row["file_type"]),
        source_type=SourceType(row["source_type"]),
        status=ProcessingStatus(row["status"]),
        error_message=row["error_message"],
        content=row["content"],
        file_path=row["file_path"],
        file_size=row["file_size"],
        created_at=row["created_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        document_id=row["document_id"],
        content=row["content"],
        chunk_index=row["chunk_index"],
        start_offset=row["start_offset"],
        end_offset=row["end_offset"],
    )


class MetadataStore:
    """
    Manages SQLite storage and FTS5 full-text search.

    Chunks reference their document and vectors reference their chunk with
    ``ON DELETE CASCADE``; the FTS5 index is an external-content table kept
    in sync by triggers. The connection is shared between threads and every
    access goes through one re-entrant lock.
    """
    
    def __init__(self, db_path: str):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_db()
    
    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._lock:
            self.conn.executescript(_SCHEMA)
            self.conn.commit()
    
    # ============ Documents ============

    def insert_document(self, document: Document) -> Document:
        with self._lock, self.conn:
            self.conn.execute(
                """
                INSERT INTO documents (
                    id, title, file_type, source_type, status, error_message,
                    content, file_path, file_size, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    document.id,
                    document.title,
                    document.file_type.value,
                    document.source_type.value,
                    document.status.value,
                    document.error_message,
                    document.content,
                    document.file_path,
                    document.file_size,
                    document.created_at,
                ),
            )
        return document

    def get_document(self, document_id: str) -> Optional[Document]:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self, status: Optional[ProcessingStatus] = None) -> List[Document]:
        """List documents, newest first, optionally filtered by status."""
        sql = "SELECT * FROM documents"
        params: List[Any] = []
        if status is not None:
            sql += " WHERE status = ?"
            params.append(ProcessingStatus(status).value)
        sql += " ORDER BY created_at DESC"
        with self._lock:
            rows = self.conn.execute(sql, params).fetchall()
        return [_row_to_document(row) for row in rows]

    def update_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        error_message: Optional[str] = None,
    ) -> bool:
        """Set the processing status; the error message is cleared unless given."""
        with self._lock, self.conn:
            cursor = self.conn.execute(
                "UPDATE documents SET status = ?, error_message = ? WHERE id = ?",
                (ProcessingStatus(status).value, error_message, document_id),
            )
        return cursor.rowcount > 0

    def update_content(self, document_id: str, content: str) -> bool:
        with self._lock, self.conn:
            cursor = self.conn.execute(
                "UPDATE documents SET content = ? WHERE id = ?", (content, document_id)
            )
        return cursor.rowcount > 0

    def delete_document(self, document_id: str) -> bool:
        """Delete a document with its chunks and vectors. Returns True if deleted."""
        with self._lock, self.conn:
            self.conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
            cursor = self.conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        return cursor.rowcount > 0

    # ============ Chunks & vectors ============

    def replace_chunks(
        self,
        document_id: str,
        chunks: Sequence[Tuple[Chunk, VectorLike]],
    ) -> int:
        """
        Atomically replace every chunk of a document.

        Old chunks (with their vectors and index rows) are removed and each
        new chunk is written together with its vector in the same
        transaction; on failure nothing changes.
        """
        with self._lock, self.conn:
            self.conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
            for chunk, vector in chunks:
                if chunk.document_id != document_id:
                    raise ValueError(
                        f"Chunk {chunk.id} belongs to {chunk.document_id}, not {document_id}"
                    )
                self.conn.execute(
                    """
                    INSERT INTO chunks (
                        id, document_id, content, chunk_index, start_offset, end_offset
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        chunk.id,
                        chunk.document_id,
                        chunk.content,
                        chunk.chunk_index,
                        chunk.start_offset,
                        chunk.end_offset,
                    ),
                )
                self.conn.execute(
                    "INSERT INTO chunk_vectors (chunk_id, embedding) VALUES (?, ?)",
                    (chunk.id, vector_to_bytes(vector)),
                )
        return len(chunks)

    def delete_chunks(self, document_id: str) -> int:
        """Delete all chunks for a document. Returns count deleted."""
        with self._lock, self.conn:
            cursor = self.conn.execute(
                "DELETE FROM chunks WHERE document_id = ?", (document_id,)
            )
        return cursor.rowcount

    def get_chunks(self, document_id: str) -> List[Chunk]:
        """Get all chunks for a document in reading order."""
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM chunks WHERE document_id = ? ORDER BY chunk_index",
                (document_id,),
            ).fetchall()
        return [_row_to_chunk(row) for row in rows]

    def get_vector(self, chunk_id: str) -> Optional[np.ndarray]:
        with self._lock:
            row = self.conn.execute(
                "SELECT embedding FROM chunk_vectors WHERE chunk_id = ?", (chunk_id,)
            ).fetchone()
        return vector_from_bytes(row["embedding"]) if row else None

    def update_chunk_content(self, chunk_id: str, content: str) -> bool:
        """Update chunk content. Returns True if updated."""
        with self._lock, self.conn:
            cursor = self.conn.execute(
                "UPDATE chunks SET content = ? WHERE id = ?", (content, chunk_id)
            )
        return cursor.rowcount > 0

    # ============ Search candidates ============

    def ready_vectors(self) -> List[Dict[str, Any]]:
        """Every stored vector of a ``ready`` document, with its chunk fields."""
        with self._lock:
            rows = self.conn.execute(
                f"""
                SELECT {_CANDIDATE_COLUMNS}, v.embedding
                FROM chunk_vectors v
                JOIN chunks c ON c.id = v.chunk_id
                JOIN documents d ON d.id = c.document_id
                WHERE d.status = ?
                """,
                (ProcessingStatus.READY.value,),
            ).fetchall()
        return [dict(row) for row in rows]

    def search_fts(self, match_query: str, k: int = 10) -> List[Dict[str, Any]]:
        """
        Full-text search over chunks of ``ready`` documents.

        ``match_query`` is an FTS5 MATCH expression; results come in the
        index's rank order. A query FTS5 cannot parse yields no rows.
        """
        with self._lock:
            try:
                rows = self.conn.execute(
                    f"""
                    SELECT {_CANDIDATE_COLUMNS}, chunks_fts.rank AS rank
                    FROM chunks_fts
                    JOIN chunks c ON c.seq = chunks_fts.rowid
                    JOIN documents d ON d.id = c.document_id
                    WHERE chunks_fts MATCH ? AND d.status = ?
                    ORDER BY chunks_fts.rank
                    LIMIT ?
                    """,
                    (match_query, ProcessingStatus.READY.value, k),
                ).fetchall()
            except sqlite3.OperationalError as e:
                logger.warning(f"FTS query {match_query!r} failed: {e}")
                return []
        return [dict(row) for row in rows]

    # ============ Maintenance ============

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            by_status = {
                row["status"]: row["n"]
                for row in self.conn.execute(
                    "SELECT status, COUNT(*) AS n FROM documents GROUP BY status"
                )
            }
            chunks = self.conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]
            vectors = self.conn.execute("SELECT COUNT(*) FROM chunk_vectors").fetchone()[0]
        return {
            "documents": sum(by_status.values()),
            "documents_by_status": by_status,
            "chunks": chunks,
            "vectors": vectors,
        }

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            self.conn.close()
