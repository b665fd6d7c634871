"""Text extraction from Office Open XML containers (DOCX and XLSX).

Entries are pulled out of the ZIP container with :mod:`archivist.archive`
and scanned with SAX handlers. Element names are matched on their local
part, so ``w:t``, ``x:t`` and ``t`` are all the same element.
"""

import logging
import xml.sax
from dataclasses import dataclass
from typing import Dict, List, Optional

from .archive import extract_entry
from .exceptions import InvalidFormat

logger = logging.getLogger(__name__)

DOCX_DOCUMENT = "word/document.xml"
XLSX_WORKBOOK = "xl/workbook.xml"
XLSX_WORKBOOK_RELS = "xl/_rels/workbook.xml.rels"
XLSX_SHARED_STRINGS = "xl/sharedStrings.xml"

# Probed when workbook metadata cannot be resolved
FALLBACK_SHEET_COUNT = 30

SHEET_HEADER = "Hoja"
CELL_SEPARATOR = " | "


def _local(name: str) -> str:
    return name.rsplit(":", 1)[-1]


def _parse(data: bytes, handler: xml.sax.ContentHandler, part: str) -> None:
    """Feed ``data`` to ``handler``; whatever was parsed before an error is kept."""
    try:
        xml.sax.parseString(data, handler)
    except xml.sax.SAXException as e:
        logger.warning(f"Malformed XML in {part}: {e}")


# ============ DOCX ============

class _DocxHandler(xml.sax.ContentHandler):
    def __init__(self):
        super().__init__()
        self.parts: List[str] = []
        self._in_text = False

    def startElement(self, name, attrs):
        local = _local(name)
        if local == "t":
            self._in_text = True
        elif local == "p":
            self.parts.append("\n")

    def endElement(self, name):
        if _local(name) == "t":
            self._in_text = False

    def characters(self, content):
        if self._in_text:
            self.parts.append(content)

    @property
    def text(self) -> str:
        return "".join(self.parts).strip()


def extract_docx_text(data: bytes) -> str:
    """Paragraph text of a DOCX file, one paragraph per line."""
    xml_data = extract_entry(DOCX_DOCUMENT, data)
    if xml_data is None:
        raise InvalidFormat(f"Missing {DOCX_DOCUMENT} in archive")

    handler = _DocxHandler()
    _parse(xml_data, handler, DOCX_DOCUMENT)
    if not handler.text:
        raise InvalidFormat("Word document contains no text")
    return handler.text


# ============ XLSX ============

@dataclass(frozen=True)
class SheetReference:
    name: str
    path: str


class _WorkbookHandler(xml.sax.ContentHandler):
    def __init__(self):
        super().__init__()
        self.sheets: List[tuple] = []

    def startElement(self, name, attrs):
        if _local(name) != "sheet":
            return
        relation_id = attrs.get("r:id") or attrs.get("id")
        if not relation_id:
            return
        self.sheets.append((attrs.get("name", SHEET_HEADER), relation_id))


class _RelationshipsHandler(xml.sax.ContentHandler):
    def __init__(self):
        super().__init__()
        self.targets: Dict[str, str] = {}

    def startElement(self, name, attrs):
        if _local(name) != "Relationship":
            return
        identifier = attrs.get("Id")
        target = attrs.get("Target")
        if identifier and target and "/worksheet" in attrs.get("Type", ""):
            self.targets[identifier] = target


class _SharedStringsHandler(xml.sax.ContentHandler):
    def __init__(self):
        super().__init__()
        self.strings: List[str] = []
        self._current: List[str] = []
        self._in_item = False
        self._in_text = False

    def startElement(self, name, attrs):
        local = _local(name)
        if local == "si":
            self._in_item = True
            self._current = []
        elif local == "t" and self._in_item:
            self._in_text = True

    def endElement(self, name):
        local = _local(name)
        if local == "t":
            self._in_text = False
        elif local == "si":
            self.strings.append("".join(self._current).strip())
            self._in_item = False
            self._current = []

    def characters(self, content):
        if self._in_text:
            self._current.append(content)


def column_index(reference: str) -> Optional[int]:
    """Column number of a cell reference such as ``B7`` (``A`` is 1)."""
    index = 0
    seen = False
    for char in reference.upper():
        if not char.isalpha():
            break
        value = ord(char) - 64
        if not 1 <= value <= 26:
            return None
        index = index * 26 + value
        seen = True
    return index if seen else None


class _SheetHandler(xml.sax.ContentHandler):
    def __init__(self, shared_strings: List[str]):
        super().__init__()
        self.shared_strings = shared_strings
        self.rows: List[str] = []
        self._row: Dict[int, str] = {}
        self._cell_ref: Optional[str] = None
        self._cell_type: Optional[str] = None
        self._value: List[str] = []
        self._in_value = False
        self._in_inline_text = False

    def startElement(self, name, attrs):
        local = _local(name)
        if local == "row":
            self._row = {}
        elif local == "c":
            self._cell_ref = attrs.get("r")
            self._cell_type = attrs.get("t")
            self._value = []
        elif local == "v":
            self._in_value = True
            self._value = []
        elif local == "t" and self._cell_type == "inlineStr":
            # Rich text runs of one cell accumulate until the cell ends
            self._in_inline_text = True

    def endElement(self, name):
        local = _local(name)
        if local == "v":
            self._in_value = False
            self._commit()
        elif local == "t" and self._cell_type == "inlineStr":
            self._in_inline_text = False
        elif local == "c":
            if self._cell_type == "inlineStr":
                self._commit()
            self._cell_ref = None
            self._cell_type = None
            self._value = []
        elif local == "row":
            line = CELL_SEPARATOR.join(self._row[col] for col in sorted(self._row))
            if line:
                self.rows.append(line)

    def characters(self, content):
        if self._in_value or self._in_inline_text:
            self._value.append(content)

    def _resolve(self, raw: str) -> str:
        if self._cell_type == "s":
            try:
                index = int(raw.strip())
            except ValueError:
                return raw
            if 0 <= index < len(self.shared_strings):
                return self.shared_strings[index]
            return raw
        if self._cell_type == "b":
            return "TRUE" if raw.strip() == "1" else "FALSE"
        return raw

    def _commit(self) -> None:
        value = self._resolve("".join(self._value)).strip()
        if not value:
            return
        column = column_index(self._cell_ref) if self._cell_ref else None
        if column is None:
            column = max(self._row, default=0) + 1
        self._row[column] = value

    @property
    def text(self) -> str:
        return "\n".join(self.rows).strip()


def _normalize_target(target: str) -> str:
    if target.startswith("xl/"):
        return target
    if target.startswith("/"):
        return target[1:]
    return f"xl/{target}"


def read_shared_strings(data: bytes) -> List[str]:
    xml_data = extract_entry(XLSX_SHARED_STRINGS, data)
    if xml_data is None:
        return []
    handler = _SharedStringsHandler()
    _parse(xml_data, handler, XLSX_SHARED_STRINGS)
    return handler.strings


def read_sheet_references(data: bytes) -> List[SheetReference]:
    """Sheet names mapped to worksheet paths through the workbook relationships."""
    workbook = extract_entry(XLSX_WORKBOOK, data)
    rels = extract_entry(XLSX_WORKBOOK_RELS, data)
    if workbook is None or rels is None:
        return []

    workbook_handler = _WorkbookHandler()
    _parse(workbook, workbook_handler, XLSX_WORKBOOK)
    rels_handler = _RelationshipsHandler()
    _parse(rels, rels_handler, XLSX_WORKBOOK_RELS)

    references = []
    for sheet_name, relation_id in workbook_handler.sheets:
        target = rels_handler.targets.get(relation_id)
        if target is None:
            continue
        references.append(SheetReference(sheet_name, _normalize_target(target)))
    return references


def _sheet_text(data: bytes, path: str, shared_strings: List[str]) -> str:
    sheet_xml = extract_entry(path, data)
    if sheet_xml is None:
        return ""
    handler = _SheetHandler(shared_strings)
    _parse(sheet_xml, handler, path)
    return handler.text


def extract_xlsx_text(data: bytes) -> str:
    """Cell values of every sheet, one row per line, cells joined by ``|``."""
    shared_strings = read_shared_strings(data)
    outputs: List[str] = []

    for sheet in read_sheet_references(data):
        content = _sheet_text(data, sheet.path, shared_strings)
        if content:
            outputs.append(f"{SHEET_HEADER}: {sheet.name}\n{content}")

    if not outputs:
        for number in range(1, FALLBACK_SHEET_COUNT + 1):
            content = _sheet_text(data, f"xl/worksheets/sheet{number}.xml", shared_strings)
            if content:
                outputs.append(f"{SHEET_HEADER} {number}\n{content}")

    extracted = "\n\n".join(outputs).strip()
    if not extracted:
        raise InvalidFormat("Spreadsheet contains no readable cells")
    return extracted
