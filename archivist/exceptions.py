"""Exception hierarchy for the Archivist engine."""

from typing import Optional


class ArchivistError(Exception):
    """Base exception for Archivist errors."""


class DocumentNotFound(ArchivistError):
    """Raised when a document id does not exist in the store."""


class EmbeddingError(ArchivistError):
    """Raised when an embedding cannot be produced."""


class VectorFormatError(ArchivistError):
    """Raised when a persisted vector blob cannot be decoded."""


class ExtractionError(ArchivistError):
    """Base class for text extraction failures.

    Each subclass carries a human-readable default message that ends up in
    ``Document.error_message`` when a pipeline run aborts.
    """

    default_message = "Text extraction failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class CannotOpenFile(ExtractionError):
    default_message = "Could not open the file"


class OcrFailed(ExtractionError):
    default_message = "Text recognition (OCR) failed"


class InvalidFormat(ExtractionError):
    default_message = "Invalid file format"


class UnsupportedFileType(ExtractionError):
    default_message = "Unsupported file type"
