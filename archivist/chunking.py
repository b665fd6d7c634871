"""Sentence-aware text chunking with stable character offsets."""

from typing import List, Optional

from .models import TextChunk

SENTENCE_TERMINATORS = ".!?\n"

# How far to look for a sentence end around the ideal cut point
LOOKBACK_CHARS = 200
LOOKAHEAD_CHARS = 100


def _find_break(text: str, start: int, ideal_end: int) -> Optional[int]:
    """End offset just after the sentence terminator nearest to ``ideal_end``.

    Searches backward first (never before ``start``), then forward.
    """
    floor = max(start, ideal_end - LOOKBACK_CHARS)
    for pos in range(ideal_end - 1, floor - 1, -1):
        if text[pos] in SENTENCE_TERMINATORS and pos + 1 > start:
            return pos + 1

    ceiling = min(len(text), ideal_end + LOOKAHEAD_CHARS)
    for pos in range(ideal_end, ceiling):
        if text[pos] in SENTENCE_TERMINATORS:
            return pos + 1
    return None


def chunk_text(
    text: str,
    *,
    target_size: int = 1200,
    overlap: int = 200,
) -> List[TextChunk]:
    """
    Split text into overlapping chunks that end on sentence boundaries.

    Args:
        text: Normalized (trimmed) document text
        target_size: Preferred chunk length in characters
        overlap: Characters shared between consecutive windows

    Returns:
        Chunks with sequential indices from 0 and ``[start, end)`` offsets
        into ``text``

    Raises:
        ValueError: If ``target_size`` is below 1 or ``overlap`` is negative
    """
    if target_size < 1:
        raise ValueError(f"target_size must be at least 1, got {target_size}")
    if overlap < 0:
        raise ValueError(f"overlap must not be negative, got {overlap}")

    if not text or not text.strip():
        return []

    n = len(text)
    if n <= target_size:
        return [TextChunk(text=text.strip(), index=0, start=0, end=n)]

    chunks: List[TextChunk] = []
    start = 0

    while start < n:
        ideal_end = min(start + target_size, n)
        end = ideal_end
        if ideal_end < n:
            end = _find_break(text, start, ideal_end) or ideal_end

        piece = text[start:end].strip()
        if piece:
            chunks.append(TextChunk(text=piece, index=len(chunks), start=start, end=end))

        if end >= n:
            break

        next_start = end - overlap
        start = next_start if next_start > start else end

    return chunks
