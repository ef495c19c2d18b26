# compliance_ai/memory/chunker.py

import logging
from dataclasses import dataclass
from typing import List

from compliance_ai.config import CHARS_PER_TOKEN
from compliance_ai.errors import ValidationError, stage_context

logger = logging.getLogger(__name__)

# Optimistic end bound is this many times the heuristic chunk length
OPTIMISTIC_BOUND_FACTOR = 2

# Sentence boundaries are only looked for near the end of a chunk
BOUNDARY_SEARCH_CHARS = 400
MIN_BOUNDARY_OFFSET = 40
SENTENCE_BOUNDARIES = (". ", ".\n", "\n\n")

# How far behind the previous end a stalled chunk may restart
ADVANCE_SLACK_CHARS = 10


@dataclass(frozen=True)
class Chunk:
    start: int
    end: int
    text: str


async def _max_end_within(
    text: str,
    start: int,
    upper: int,
    max_tokens: int,
    counter,
) -> int:
    """
    Largest end in (start, upper] with count(text[start:end]) <= max_tokens.

    Assumes the counter is monotonic. If it is not, the search still
    terminates inside the bounds; the chunk is just smaller than it
    could have been. Always returns at least start + 1.
    """

    if await counter.count(text[start:upper]) <= max_tokens:
        return upper

    low = start + 1
    high = upper - 1
    best = start + 1

    while low <= high:

        mid = (low + high) // 2

        if await counter.count(text[start:mid]) <= max_tokens:
            best = mid
            low = mid + 1
        else:
            high = mid - 1

    return best


def _trim_to_boundary(text: str, start: int, end: int) -> int:
    """Pull the end back to the latest sentence or paragraph break, if close."""

    window_start = max(start, end - BOUNDARY_SEARCH_CHARS)
    window = text[window_start:end]

    best = -1

    for marker in SENTENCE_BOUNDARIES:
        idx = window.rfind(marker)
        if idx >= MIN_BOUNDARY_OFFSET:
            best = max(best, idx + len(marker))

    if best <= 0:
        return end

    return window_start + best


async def chunk_spans(
    text: str,
    max_tokens_per_chunk: int,
    overlap_tokens: int,
    counter,
) -> List[Chunk]:
    """
    Token-bounded chunker with sentence-aware ends and controlled overlap.

    Guarantees:
    • every chunk is within max_tokens_per_chunk (per the counter)
    • spans cover [0, len(text)) with overlap and no gaps
    • start strictly increases, so the loop always terminates
    • blank input gives no chunks
    """

    if not text or not text.strip():
        logger.warning("Chunking skipped: empty text")
        return []

    if max_tokens_per_chunk <= 0:
        raise ValidationError(f"Invalid chunk size: {max_tokens_per_chunk}")

    if overlap_tokens < 0:
        raise ValidationError(f"Invalid chunk overlap: {overlap_tokens}")

    with stage_context("chunking"):

        total = len(text)
        overlap_chars = overlap_tokens * CHARS_PER_TOKEN
        bound = max_tokens_per_chunk * CHARS_PER_TOKEN * OPTIMISTIC_BOUND_FACTOR

        chunks: List[Chunk] = []
        start = 0

        while start < total:

            upper = min(total, start + bound)

            end = await _max_end_within(
                text, start, upper, max_tokens_per_chunk, counter
            )

            if end < total:
                end = _trim_to_boundary(text, start, end)

            chunks.append(Chunk(start=start, end=end, text=text[start:end]))

            if end >= total:
                break

            next_start = end - overlap_chars

            if next_start <= start:
                next_start = max(start + 1, end - ADVANCE_SLACK_CHARS)

            start = next_start

    logger.info(
        "Chunking completed",
        extra={
            "text_chars": len(text),
            "max_tokens_per_chunk": max_tokens_per_chunk,
            "overlap_tokens": overlap_tokens,
            "chunks_created": len(chunks),
        },
    )

    return chunks


async def chunk_by_tokens(
    text: str,
    max_tokens_per_chunk: int,
    overlap_tokens: int,
    counter,
) -> List[str]:
    spans = await chunk_spans(text, max_tokens_per_chunk, overlap_tokens, counter)
    return [span.text for span in spans]
