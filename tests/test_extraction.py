"""Tests for file type detection and extraction dispatch."""

import pytest

from archivist.exceptions import CannotOpenFile, InvalidFormat, OcrFailed, UnsupportedFileType
from archivist.extraction import TextExtractor, detect_file_type
from archivist.models import FileType

from conftest import FakeOcr, FakePdfSource, make_docx


class ExplodingOcr:
    def recognize(self, image, languages=("spa", "eng")):
        raise RuntimeError("engine crashed")


@pytest.mark.parametrize("name, expected", [
    ("factura.PDF", FileType.PDF),
    ("foto.jpeg", FileType.IMAGE),
    ("scan.heic", FileType.IMAGE),
    ("informe.docx", FileType.DOCX),
    ("cuentas.xlsx", FileType.XLSX),
    ("notas.md", FileType.TEXT),
    ("correo.eml", FileType.EMAIL),
    ("archivo.bin", FileType.UNKNOWN),
    ("sin_extension", FileType.UNKNOWN),
])
def test_detect_file_type(name, expected):
    assert detect_file_type(name) is expected


def test_plain_text_is_trimmed():
    extractor = TextExtractor(pdf_source=FakePdfSource([]), ocr=FakeOcr())
    assert extractor.extract("  hola mundo \n".encode(), FileType.TEXT) == "hola mundo"


def test_invalid_utf8_cannot_be_opened():
    extractor = TextExtractor(pdf_source=FakePdfSource([]), ocr=FakeOcr())
    with pytest.raises(CannotOpenFile):
        extractor.extract(b"\xff\xfe\xfa", FileType.EMAIL)


def test_blank_text_is_invalid_format():
    extractor = TextExtractor(pdf_source=FakePdfSource([]), ocr=FakeOcr())
    with pytest.raises(InvalidFormat):
        extractor.extract(b"   \n\t ", FileType.TEXT)


def test_pdf_uses_text_layer_and_ocrs_blank_pages():
    ocr = FakeOcr("texto escaneado")
    extractor = TextExtractor(pdf_source=FakePdfSource(["Página uno", "  ", "Página tres"]), ocr=ocr)
    text = extractor.extract(b"%PDF", FileType.PDF)
    assert text == "Página uno\n\ntexto escaneado\n\nPágina tres"
    assert ocr.seen == [b"page-1"]


def test_image_goes_through_ocr():
    ocr = FakeOcr("recibo 12,50 €")
    extractor = TextExtractor(pdf_source=FakePdfSource([]), ocr=ocr)
    assert extractor.extract(b"\x89PNG", FileType.IMAGE) == "recibo 12,50 €"


def test_unexpected_ocr_error_becomes_ocr_failed():
    extractor = TextExtractor(pdf_source=FakePdfSource([]), ocr=ExplodingOcr())
    with pytest.raises(OcrFailed):
        extractor.extract(b"\x89PNG", FileType.IMAGE)


def test_docx_dispatch():
    extractor = TextExtractor(pdf_source=FakePdfSource([]), ocr=FakeOcr())
    assert extractor.extract(make_docx(["Contrato de alquiler"]), FileType.DOCX) == "Contrato de alquiler"


def test_extract_file_missing_path(tmp_path):
    extractor = TextExtractor(pdf_source=FakePdfSource([]), ocr=FakeOcr())
    with pytest.raises(CannotOpenFile):
        extractor.extract_file(tmp_path / "missing.txt")


def test_unknown_file_type_is_unsupported():
    extractor = TextExtractor(pdf_source=FakePdfSource([]), ocr=FakeOcr())
    with pytest.raises(UnsupportedFileType):
        extractor.extract(b"abc", "spreadsheet")
