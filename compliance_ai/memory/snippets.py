# compliance_ai/memory/snippets.py
"""
Keyword-scored sliding windows for question answering.

Unlike the chunker, windows overlap heavily and only the best-scoring
few are kept, so a passage matching the question is very likely to be
inside at least one window.
"""

import logging
import re
from dataclasses import dataclass
from typing import List

from compliance_ai.config import CHARS_PER_TOKEN
from compliance_ai.errors import stage_context

logger = logging.getLogger(__name__)

SNIPPET_DIVIDER = "\n\n---\n\n"

MIN_KEYWORD_CHARS = 3
PER_OCCURRENCE_WEIGHT = 2
MAX_KEYWORD_CONTRIBUTION = 10

MIN_OVERLAP_RATIO = 0.1
MAX_OVERLAP_RATIO = 0.9

_WORD_RE = re.compile(r"[a-z0-9]+")


@dataclass(frozen=True)
class ScoredWindow:
    text: str
    score: int


def question_keywords(question: str) -> List[str]:
    seen = []
    for word in _WORD_RE.findall((question or "").lower()):
        if len(word) >= MIN_KEYWORD_CHARS and word not in seen:
            seen.append(word)
    return seen


def score_window(window: str, keywords: List[str]) -> int:
    """Occurrences count, but each keyword saturates at 10."""
    lowered = window.lower()
    return sum(
        min(lowered.count(keyword) * PER_OCCURRENCE_WEIGHT, MAX_KEYWORD_CONTRIBUTION)
        for keyword in keywords
    )


def sliding_windows(text: str, window_chars: int, stride: int) -> List[str]:

    windows = []

    start = 0
    while start < len(text):
        windows.append(text[start:start + window_chars])
        if start + window_chars >= len(text):
            break
        start += stride

    return windows


def extract_relevant_snippets(
    text: str,
    question: str,
    target_tokens: int,
    top_k: int = 3,
    overlap_ratio: float = 0.5,
) -> str:
    """
    Return the top-k keyword-dense windows of `text`, joined by a divider.

    Falls back to the head of the text when the question yields no usable
    keywords or no window matches any of them.
    """

    window_chars = max(1, target_tokens) * CHARS_PER_TOKEN
    head = text[:window_chars]

    keywords = question_keywords(question)

    if not keywords:
        logger.info(
            "Snippet extraction: no keywords, using document head",
            extra={"window_chars": window_chars},
        )
        return head

    with stage_context("extraction"):

        ratio = min(max(overlap_ratio, MIN_OVERLAP_RATIO), MAX_OVERLAP_RATIO)
        stride = max(1, int(window_chars * (1 - ratio)))

        scored = [
            ScoredWindow(text=window, score=score_window(window, keywords))
            for window in sliding_windows(text, window_chars, stride)
        ]

        matching = [window for window in scored if window.score > 0]

        if not matching:
            logger.info(
                "Snippet extraction: no matching windows, using document head",
                extra={"windows_scored": len(scored), "keywords": len(keywords)},
            )
            return head

        matching.sort(key=lambda w: w.score, reverse=True)

        selected = matching[: max(1, top_k)]

    logger.info(
        "Snippet extraction completed",
        extra={
            "windows_scored": len(scored),
            "windows_matching": len(matching),
            "windows_selected": len(selected),
            "top_score": selected[0].score,
            "stride": stride,
        },
    )

    return SNIPPET_DIVIDER.join(window.text for window in selected)
