"""Shared fixtures: temporary store, tiny vocabulary, fake models, OOXML builders."""

import io
import zipfile
import zlib
from typing import Dict, List

import numpy as np
import pytest

from archivist.config import ArchivistConfig
from archivist.embeddings import BaseEmbeddingProvider
from archivist.extraction import TextExtractor
from archivist.lexicon import token_set
from archivist.storage import MetadataStore
from archivist.tokenizer import WordPieceTokenizer

VOCAB_TOKENS = [
    "[PAD]", "[UNK]", "[CLS]", "[SEP]",
    "hola", "mundo", "factura", "de", "la", "luz", "pag", "##ue", "##o",
    "un", "##able", "aff", "##ord", ".", ",", "!", "?", "€",
]


def make_zip(entries: Dict[str, str], compression: int = zipfile.ZIP_DEFLATED) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=compression) as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def make_docx(paragraphs: List[str]) -> bytes:
    body = "".join(
        f"<w:p><w:r><w:t>{text}</w:t></w:r></w:p>" for text in paragraphs
    )
    document = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
        f"<w:body>{body}</w:body></w:document>"
    )
    return make_zip({"[Content_Types].xml": "<Types/>", "word/document.xml": document})


def streamed_deflate_entry(name: str, content: bytes, with_signature: bool = True) -> bytes:
    """A local header with flag bit 3 and zero sizes, followed by a data descriptor."""
    compressor = zlib.compressobj(6, zlib.DEFLATED, -zlib.MAX_WBITS)
    payload = compressor.compress(content) + compressor.flush()
    raw_name = name.encode("utf-8")
    header = (
        b"PK\x03\x04"
        + (20).to_bytes(2, "little")
        + (0x0008).to_bytes(2, "little")
        + (8).to_bytes(2, "little")
        + bytes(4)
        + bytes(4)          # crc
        + bytes(4)          # compressed size
        + bytes(4)          # uncompressed size
        + len(raw_name).to_bytes(2, "little")
        + bytes(2)
        + raw_name
    )
    descriptor = (
        (b"PK\x07\x08" if with_signature else b"")
        + zlib.crc32(content).to_bytes(4, "little")
        + len(payload).to_bytes(4, "little")
        + len(content).to_bytes(4, "little")
    )
    return header + payload + descriptor


class FakeEngine:
    """Inference engine returning a hidden state derived from the token ids."""

    def __init__(self, dim: int = 8):
        self.dim = dim
        self.calls: List[np.ndarray] = []

    def run(self, input_ids: np.ndarray, attention_mask: np.ndarray) -> np.ndarray:
        self.calls.append(input_ids)
        length = len(input_ids)
        hidden = np.zeros((1, length, self.dim), dtype=np.float32)
        for position in range(length):
            hidden[0, position, :] = float(input_ids[position]) + np.arange(self.dim) / 10
        # Position 0 carries a signature of the whole input
        hidden[0, 0, :] = float(attention_mask.sum())
        return hidden


class HashingEmbedding(BaseEmbeddingProvider):
    """Bag-of-words embedding: every folded word lights one of ``dim`` buckets."""

    def __init__(self, dim: int = 64):
        super().__init__("hashing-test")
        self._dim = dim

    @property
    def dimension(self) -> int:
        return self._dim

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        vectors = []
        for text in texts:
            vector = np.zeros(self._dim, dtype=np.float32)
            for word in token_set(text):
                vector[zlib.crc32(word.encode()) % self._dim] += 1.0
            vectors.append(vector.tolist())
        return vectors


class BrokenEmbedding(HashingEmbedding):
    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        raise RuntimeError("model exploded")


class FakeOcr:
    def __init__(self, text: str = "texto reconocido"):
        self.text = text
        self.seen: List[bytes] = []

    def recognize(self, image: bytes, languages=("spa", "eng")) -> str:
        self.seen.append(image)
        return self.text


class FakePage:
    def __init__(self, text: str, image: bytes = b"png-bytes"):
        self.text = text
        self._image = image

    def render_png(self) -> bytes:
        return self._image


class FakePdfSource:
    def __init__(self, page_texts: List[str]):
        self.page_texts = page_texts

    def pages(self, data: bytes):
        for index, text in enumerate(self.page_texts):
            yield FakePage(text, image=f"page-{index}".encode())


@pytest.fixture
def vocab_file(tmp_path):
    path = tmp_path / "vocab.txt"
    path.write_text("\n".join(VOCAB_TOKENS) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def tokenizer(vocab_file):
    return WordPieceTokenizer.from_file(vocab_file, max_sequence_length=16)


@pytest.fixture
def store(tmp_path):
    store = MetadataStore(str(tmp_path / "test.db"))
    yield store
    store.close()


@pytest.fixture
def config(tmp_path):
    return ArchivistConfig(
        db_path=str(tmp_path / "archivist.db"),
        files_dir=str(tmp_path / "files"),
        max_workers=2,
    )


@pytest.fixture
def extractor():
    return TextExtractor(pdf_source=FakePdfSource(["Texto del PDF."]), ocr=FakeOcr())


@pytest.fixture
def archivist(config, extractor):
    from archivist.archivist import Archivist

    engine = Archivist(config, embedder=HashingEmbedding(), extractor=extractor)
    yield engine
    engine.close()
