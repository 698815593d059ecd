"""Whitespace-aware overlapping text chunker."""

import logging
from typing import List, Optional

from .types import RagChunk, chunk_metadata

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 900
DEFAULT_CHUNK_OVERLAP = 150
MIN_CHUNK_SIZE = 100
CUT_LOOKBACK = 120
DEFAULT_SOURCE = "unknown"


def normalize_for_chunking(text: str) -> str:
    return text.replace("\r", "").strip()


def _resolve_cut(text: str, start: int, target_end: int) -> int:
    """Pull the cut back to the last whitespace within the lookback window."""
    if target_end >= len(text):
        return len(text)

    floor = min(len(text), max(start, target_end - CUT_LOOKBACK))
    window = text[floor:target_end]
    last_break = max(window.rfind("\n"), window.rfind(" "), window.rfind("\t"))
    if last_break <= 0:
        return target_end
    return floor + last_break


def chunk_text(
    text: str,
    size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
    source: str = DEFAULT_SOURCE,
    page: Optional[int] = None,
) -> List[RagChunk]:
    """
    Split text into ordered, overlapping windows.

    Args:
        text: Source text (carriage returns are dropped, ends trimmed)
        size: Target window size in characters, at least 100
        overlap: Characters shared with the previous window, clamped below size
        source: Metadata source label
        page: Optional page number copied into metadata

    Returns:
        Chunks with strictly increasing chunk_order starting at 0
    """
    normalized = normalize_for_chunking(text)
    if not normalized:
        return []

    size = max(MIN_CHUNK_SIZE, size)
    overlap = max(0, min(overlap, size - 1))

    chunks: List[RagChunk] = []
    cursor = 0
    order = 0

    while cursor < len(normalized):
        target_end = min(cursor + size, len(normalized))
        cut = _resolve_cut(normalized, cursor, target_end)
        window = normalized[cursor:cut].strip()

        if window:
            chunks.append(RagChunk(
                chunk_text=window,
                chunk_order=order,
                metadata=chunk_metadata(source, order, page),
            ))
            order += 1

        if cut >= len(normalized):
            break
        cursor = max(cut - overlap, cursor + 1)

    logger.debug(f"[rag] Chunked {len(normalized)} chars into {len(chunks)} chunks", extra={"source": source})
    return chunks
