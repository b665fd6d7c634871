"""Text extraction dispatch by declared file type."""

import io
import logging
from pathlib import Path
from typing import Iterator, Optional, Protocol, Sequence, Union

from .exceptions import (
    CannotOpenFile,
    ExtractionError,
    InvalidFormat,
    OcrFailed,
    UnsupportedFileType,
)
from .models import FileType
from .office import extract_docx_text, extract_xlsx_text

logger = logging.getLogger(__name__)

DEFAULT_OCR_LANGUAGES = ("spa", "eng")

_EXTENSIONS = {
    "pdf": FileType.PDF,
    "jpg": FileType.IMAGE,
    "jpeg": FileType.IMAGE,
    "png": FileType.IMAGE,
    "heic": FileType.IMAGE,
    "heif": FileType.IMAGE,
    "tiff": FileType.IMAGE,
    "bmp": FileType.IMAGE,
    "docx": FileType.DOCX,
    "xlsx": FileType.XLSX,
    "txt": FileType.TEXT,
    "md": FileType.TEXT,
    "csv": FileType.TEXT,
    "rtf": FileType.TEXT,
    "eml": FileType.EMAIL,
}


def detect_file_type(path: Union[str, Path]) -> FileType:
    """Guess the file type from the file extension."""
    return _EXTENSIONS.get(Path(path).suffix.lower().lstrip("."), FileType.UNKNOWN)


# ============ Collaborator protocols ============

class OcrEngine(Protocol):
    def recognize(self, image: bytes, languages: Sequence[str] = DEFAULT_OCR_LANGUAGES) -> str:
        """Recognized lines of ``image`` joined by newlines."""


class PdfPage(Protocol):
    @property
    def text(self) -> str: ...

    def render_png(self) -> bytes: ...


class PdfTextSource(Protocol):
    def pages(self, data: bytes) -> Iterator[PdfPage]:
        """Iterate the pages of a PDF document."""


# ============ Default collaborators ============

class TesseractOcr:
    """OCR through Tesseract (pytesseract + Pillow)."""

    def recognize(self, image: bytes, languages: Sequence[str] = DEFAULT_OCR_LANGUAGES) -> str:
        import pytesseract
        from PIL import Image, UnidentifiedImageError

        try:
            picture = Image.open(io.BytesIO(image))
        except (UnidentifiedImageError, OSError) as e:
            raise CannotOpenFile(f"Could not open the image: {e}") from e

        try:
            raw = pytesseract.image_to_string(picture, lang="+".join(languages))
        except pytesseract.TesseractError as e:
            raise OcrFailed(f"Text recognition (OCR) failed: {e}") from e

        lines = [line.strip() for line in raw.splitlines()]
        return "\n".join(line for line in lines if line)


class _PyMuPdfPage:
    RENDER_DPI = 144  # twice the 72 dpi page space

    def __init__(self, page):
        self._page = page

    @property
    def text(self) -> str:
        return self._page.get_text()

    def render_png(self) -> bytes:
        return self._page.get_pixmap(dpi=self.RENDER_DPI).tobytes("png")


class PyMuPdfSource:
    """PDF pages through PyMuPDF."""

    def pages(self, data: bytes) -> Iterator[PdfPage]:
        import pymupdf

        try:
            document = pymupdf.open(stream=data, filetype="pdf")
        except (pymupdf.FileDataError, RuntimeError, ValueError) as e:
            raise CannotOpenFile(f"Could not open the PDF: {e}") from e

        with document:
            for page in document:
                yield _PyMuPdfPage(page)


# ============ Extractor ============

class TextExtractor:
    """Turns raw file bytes into a single text string."""

    def __init__(
        self,
        pdf_source: Optional[PdfTextSource] = None,
        ocr: Optional[OcrEngine] = None,
        ocr_languages: Sequence[str] = DEFAULT_OCR_LANGUAGES,
    ):
        self.pdf_source = pdf_source or PyMuPdfSource()
        self.ocr = ocr or TesseractOcr()
        self.ocr_languages = tuple(ocr_languages)

    def extract(self, data: bytes, file_type: FileType) -> str:
        """
        Extract text from file bytes.

        Args:
            data: Raw file content
            file_type: Declared type of the file

        Returns:
            Extracted text, trimmed

        Raises:
            ExtractionError: On collaborator failure or when no text comes out
        """
        match file_type:
            case FileType.PDF:
                text = self._from_pdf(data)
            case FileType.IMAGE:
                text = self._ocr(data)
            case FileType.DOCX:
                text = extract_docx_text(data)
            case FileType.XLSX:
                text = extract_xlsx_text(data)
            case FileType.TEXT | FileType.EMAIL | FileType.UNKNOWN:
                text = self._decode(data)
            case _:
                raise UnsupportedFileType(f"Unsupported file type: {file_type}")

        text = text.strip()
        if not text:
            raise InvalidFormat("No text could be extracted from the file")
        return text

    def extract_file(self, path: Union[str, Path], file_type: Optional[FileType] = None) -> str:
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise CannotOpenFile(f"Could not open {path.name}: {e}") from e
        return self.extract(data, file_type or detect_file_type(path))

    def _from_pdf(self, data: bytes) -> str:
        parts = []
        for number, page in enumerate(self.pdf_source.pages(data), start=1):
            page_text = page.text
            if page_text and page_text.strip():
                parts.append(page_text)
            else:
                logger.debug(f"PDF page {number} has no text layer, running OCR")
                parts.append(self._ocr(page.render_png()))
        return "\n\n".join(parts)

    def _ocr(self, image: bytes) -> str:
        try:
            return self.ocr.recognize(image, self.ocr_languages)
        except ExtractionError:
            raise
        except Exception as e:
            raise OcrFailed(f"Text recognition (OCR) failed: {e}") from e

    @staticmethod
    def _decode(data: bytes) -> str:
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CannotOpenFile("File is not valid UTF-8 text") from e
