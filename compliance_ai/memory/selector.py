# compliance_ai/memory/selector.py

"""
Budgeted section selection.

Pipeline position:
splitter → scorer → selector → chunker

Produces the "relevant text" for a document: the best-ranked sections
that fit a token budget, or a token-bounded prefix of the raw text when
no single section fits.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List

from compliance_ai.errors import SelectionExhaustedError, require_text, stage_context
from compliance_ai.memory.sections import Section, score_section, split_sections

logger = logging.getLogger(__name__)

# Length preference saturates at this many tokens
LENGTH_PREFERENCE_TOKENS = 1000

# Prefix search never probes past budget * this many characters
PREFIX_CHARS_PER_TOKEN_BOUND = 8


@dataclass(frozen=True)
class ScoredSection:
    section: Section
    keyword_score: int
    token_count: int

    @property
    def composite_score(self) -> float:
        """Keyword score in steps of 2, plus a [0, 1] bonus for being short."""
        length_bonus = max(0, LENGTH_PREFERENCE_TOKENS - self.token_count)
        return self.keyword_score + length_bonus / LENGTH_PREFERENCE_TOKENS


def render_section(section: Section) -> str:
    return f"\n\n=== {section.title} ===\n{section.body}"


async def score_sections(sections: List[Section], counter) -> List[ScoredSection]:
    """Token counts are issued together and awaited as one batch."""

    token_counts = await asyncio.gather(
        *(counter.count(render_section(section)) for section in sections)
    )

    return [
        ScoredSection(
            section=section,
            keyword_score=score_section(section),
            token_count=tokens,
        )
        for section, tokens in zip(sections, token_counts)
    ]


async def longest_prefix_within(text: str, token_budget: int, counter) -> str:
    """
    Binary search for the longest character prefix within the budget.

    Probes are sequential: each midpoint depends on the previous answer.
    """

    if await counter.count(text) <= token_budget:
        return text

    low = 0
    high = min(len(text), token_budget * PREFIX_CHARS_PER_TOKEN_BOUND)

    while low < high:

        mid = (low + high + 1) // 2

        if await counter.count(text[:mid]) <= token_budget:
            low = mid
        else:
            high = mid - 1

    return text[:low]


async def select_relevant_text(full_text: str, token_budget: int, counter) -> str:
    """
    Greedy selection of the highest-ranked sections under a token budget.

    Output order is ranked order, not document order. Sections that would
    overflow are skipped and the scan continues with the rest.
    """

    require_text(full_text, "Document text")

    with stage_context("selection"):
        return await _select(full_text, token_budget, counter)


async def _select(full_text: str, token_budget: int, counter) -> str:

    if token_budget <= 0:
        raise SelectionExhaustedError(f"Token budget must be positive, got {token_budget}")

    sections = split_sections(full_text)

    scored = await score_sections(sections, counter)

    ranked = sorted(scored, key=lambda s: s.composite_score, reverse=True)

    accepted: List[str] = []
    used_tokens = 0
    skipped = 0

    for candidate in ranked:

        if used_tokens + candidate.token_count > token_budget:
            skipped += 1
            continue

        accepted.append(render_section(candidate.section))
        used_tokens += candidate.token_count

    if accepted:

        logger.info(
            "Section selection completed",
            extra={
                "sections_total": len(sections),
                "sections_accepted": len(accepted),
                "sections_skipped": skipped,
                "tokens_used": used_tokens,
                "token_budget": token_budget,
            },
        )

        return "".join(accepted)

    # Every section is larger than the whole budget, or there were none
    prefix = await longest_prefix_within(full_text, token_budget, counter)

    if not prefix:
        raise SelectionExhaustedError(
            f"No text fits within a budget of {token_budget} tokens"
        )

    logger.info(
        "Section selection fell back to prefix",
        extra={
            "sections_total": len(sections),
            "prefix_chars": len(prefix),
            "text_chars": len(full_text),
            "token_budget": token_budget,
        },
    )

    return prefix
