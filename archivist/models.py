"""Data models for the Archivist engine."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class FileType(str, Enum):
    """Declared type of an imported file."""
    PDF = "pdf"
    IMAGE = "image"
    DOCX = "docx"
    XLSX = "xlsx"
    TEXT = "text"
    EMAIL = "email"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "FileType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class ProcessingStatus(str, Enum):
    """Pipeline state of a document."""
    PENDING = "pending"
    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    READY = "ready"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.READY, ProcessingStatus.ERROR)


class SourceType(str, Enum):
    """Where a document came from."""
    FILES = "files"
    CAMERA = "camera"
    PHOTOS = "photos"
    MANUAL = "manual"


def new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Document:
    """An imported document and its extracted text."""
    title: str
    file_type: FileType = FileType.UNKNOWN
    source_type: SourceType = SourceType.FILES
    status: ProcessingStatus = ProcessingStatus.PENDING
    content: str = ""
    error_message: Optional[str] = None
    file_path: Optional[str] = None
    file_size: Optional[int] = None
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=_utcnow)


@dataclass
class Chunk:
    """A persisted slice of a document's extracted text."""
    document_id: str
    content: str
    chunk_index: int
    start_offset: int
    end_offset: int
    id: str = field(default_factory=new_id)


@dataclass(frozen=True)
class TextChunk:
    """Chunker output: text plus its ``[start, end)`` offsets in the source."""
    text: str
    index: int
    start: int
    end: int


@dataclass(frozen=True)
class SearchResult:
    """A single ranked search hit. Never persisted."""
    chunk_id: str
    content: str
    document_id: str
    document_title: str
    chunk_index: int
    score: float
