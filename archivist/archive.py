"""Minimal ZIP entry reader driven by local file headers.

OOXML documents are ZIP containers. Only what text extraction needs is
implemented here: locate one named entry by walking the local file headers
from the start of the buffer (the central directory is never consulted) and
return its Store or Deflate payload.

Malformed input never raises. Every failure mode (bad signature, truncated
header, out-of-bounds payload, unsupported method, corrupt deflate stream)
degrades to ``None``.
"""

import logging
import struct
import zlib
from dataclasses import dataclass
from typing import Iterator, List, Optional

logger = logging.getLogger(__name__)

LOCAL_HEADER_SIGNATURE = b"PK\x03\x04"
DATA_DESCRIPTOR_SIGNATURE = b"PK\x07\x08"

# signature, version, flags, method, mtime, mdate, crc32, csize, usize, name len, extra len
_LOCAL_HEADER = struct.Struct("<4sHHHHHIIIHH")

METHOD_STORE = 0
METHOD_DEFLATE = 8

FLAG_ENCRYPTED = 0x0001
FLAG_DATA_DESCRIPTOR = 0x0008
FLAG_UTF8 = 0x0800


@dataclass(frozen=True)
class LocalEntry:
    """Header fields of one archive entry."""
    name: str
    flags: int
    method: int
    compressed_size: int
    uncompressed_size: int
    data_start: int


def _read_header(data: bytes, offset: int) -> Optional[LocalEntry]:
    end = offset + _LOCAL_HEADER.size
    if end > len(data):
        return None
    (
        signature, _version, flags, method, _mtime, _mdate, _crc,
        csize, usize, name_len, extra_len,
    ) = _LOCAL_HEADER.unpack_from(data, offset)
    if signature != LOCAL_HEADER_SIGNATURE:
        return None

    name_end = end + name_len
    data_start = name_end + extra_len
    if data_start > len(data):
        return None

    raw_name = data[end:name_end]
    encoding = "utf-8" if flags & FLAG_UTF8 else "cp437"
    name = raw_name.decode(encoding, errors="replace")
    return LocalEntry(name, flags, method, csize, usize, data_start)


def _inflate(payload: bytes, expected_size: int) -> Optional[bytes]:
    bufsize = expected_size if expected_size > 0 else max(len(payload) * 4, 1)
    try:
        return zlib.decompress(payload, -zlib.MAX_WBITS, bufsize)
    except zlib.error as e:
        logger.debug(f"Deflate payload rejected: {e}")
        return None


def _inflate_streamed(data: bytes, start: int) -> Optional[tuple]:
    """Inflate a deflate stream of unknown length.

    Returns ``(content, consumed)`` where ``consumed`` is the number of
    compressed bytes the stream occupied.
    """
    decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
    try:
        content = decompressor.decompress(data[start:])
        content += decompressor.flush()
    except zlib.error as e:
        logger.debug(f"Streamed deflate payload rejected: {e}")
        return None
    if not decompressor.eof:
        return None
    consumed = len(data) - start - len(decompressor.unused_data)
    return content, consumed


def _skip_descriptor(data: bytes, offset: int) -> int:
    # The descriptor may or may not carry its own signature
    if data[offset:offset + 4] == DATA_DESCRIPTOR_SIGNATURE:
        return offset + 16
    return offset + 12


def _walk(data: bytes) -> Iterator[tuple]:
    """Yield ``(entry, payload)`` pairs until the headers run out.

    ``payload`` is already decompressed, or ``None`` when the entry cannot
    be decoded.
    """
    offset = 0
    while True:
        entry = _read_header(data, offset)
        if entry is None:
            return

        streamed = (
            entry.flags & FLAG_DATA_DESCRIPTOR
            and entry.compressed_size == 0
        )
        if streamed:
            if entry.method != METHOD_DEFLATE:
                # A stored entry of unknown length cannot be delimited
                return
            result = _inflate_streamed(data, entry.data_start)
            if result is None:
                return
            payload, consumed = result
            if entry.flags & FLAG_ENCRYPTED:
                payload = None
            yield entry, payload
            offset = _skip_descriptor(data, entry.data_start + consumed)
            continue

        data_end = entry.data_start + entry.compressed_size
        if data_end > len(data):
            return

        payload = None
        if not entry.flags & FLAG_ENCRYPTED:
            raw = data[entry.data_start:data_end]
            if entry.method == METHOD_STORE:
                payload = raw
            elif entry.method == METHOD_DEFLATE:
                payload = _inflate(raw, entry.uncompressed_size)
        yield entry, payload

        offset = data_end
        if entry.flags & FLAG_DATA_DESCRIPTOR:
            offset = _skip_descriptor(data, offset)


def extract_entry(name: str, data: bytes) -> Optional[bytes]:
    """Return the decompressed content of entry ``name``, or ``None``.

    Args:
        name: Entry path inside the archive, e.g. ``word/document.xml``
        data: The whole archive as bytes

    Returns:
        Entry bytes, or ``None`` when the entry is missing or unreadable
    """
    for entry, payload in _walk(data):
        if entry.name == name:
            if payload is None:
                logger.debug(f"Entry {name!r} found but not decodable (method {entry.method})")
            return payload
    return None


def list_entries(data: bytes) -> List[str]:
    """Names of all entries reachable through the local headers."""
    return [entry.name for entry, _ in _walk(data)]
