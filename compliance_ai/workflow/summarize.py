# compliance_ai/workflow/summarize.py

"""
Document summarization.

selector → chunker → per-chunk summaries (concurrent) → synthesis

A document that fits one chunk is summarized with a single call.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from compliance_ai.config import (
    SUMMARY_MAX_OUTPUT_TOKENS,
    SUMMARY_TEMPERATURE,
    PipelineConfig,
)
from compliance_ai.errors import require_text, stage_context
from compliance_ai.llm.usage import Usage, total_cost_usd
from compliance_ai.memory.chunker import chunk_by_tokens
from compliance_ai.memory.selector import select_relevant_text
from compliance_ai.prompts.prompt_builder import (
    build_chunk_summary_prompt,
    build_summary_prompt,
    build_synthesis_prompt,
)
from compliance_ai.workflow.parsing import parse_json_response

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SummaryResult:
    summary: str
    key_points: List[str]
    usage: Usage
    cost_usd: Optional[float]
    degraded: bool
    chunk_count: int
    calls: List[Usage] = field(default_factory=list)


def _as_usage(completion) -> Usage:
    return Usage(completion.model, completion.input_tokens, completion.output_tokens)


async def _summarize_chunk(chunk: str, index: int, total: int, client, config: PipelineConfig):
    return await client.complete(
        build_chunk_summary_prompt(chunk, index, total),
        model=config.summary_model,
        max_output_tokens=SUMMARY_MAX_OUTPUT_TOKENS,
        temperature=SUMMARY_TEMPERATURE,
    )


def _render_partial(parsed) -> str:
    """Flatten a partial summary back to text for the synthesis prompt."""

    summary = parsed.data["summary"]
    points = parsed.data.get("keyPoints") or []

    if not points:
        return summary

    bullets = "\n".join(f"- {point}" for point in points)
    return f"{summary}\n{bullets}"


async def summarize_document(
    text: str,
    client,
    counter,
    config: PipelineConfig,
) -> SummaryResult:

    require_text(text, "Document text")

    relevant = await select_relevant_text(text, config.max_document_tokens, counter)

    chunks = await chunk_by_tokens(
        relevant,
        config.max_chunk_tokens,
        config.overlap_tokens,
        counter,
    )

    calls: List[Usage] = []

    if len(chunks) <= 1:

        with stage_context("summarization"):
            completion = await client.complete(
                build_summary_prompt(chunks[0] if chunks else relevant),
                model=config.summary_model,
                max_output_tokens=SUMMARY_MAX_OUTPUT_TOKENS,
                temperature=SUMMARY_TEMPERATURE,
            )

        calls.append(_as_usage(completion))
        final = parse_json_response(completion.text, "summary", ["keyPoints"])

    else:

        # Fan out; gather keeps results in chunk order regardless of completion order
        with stage_context("summarization"):
            partials = await asyncio.gather(
                *(
                    _summarize_chunk(chunk, i, len(chunks), client, config)
                    for i, chunk in enumerate(chunks, 1)
                )
            )

        calls.extend(_as_usage(c) for c in partials)

        partial_texts = [
            _render_partial(parse_json_response(c.text, "summary", ["keyPoints"]))
            for c in partials
        ]

        with stage_context("synthesis"):
            completion = await client.complete(
                build_synthesis_prompt(partial_texts),
                model=config.synthesis_model,
                max_output_tokens=SUMMARY_MAX_OUTPUT_TOKENS,
                temperature=SUMMARY_TEMPERATURE,
            )

        calls.append(_as_usage(completion))
        final = parse_json_response(completion.text, "summary", ["keyPoints"])

    usage = calls[0]
    for call in calls[1:]:
        usage = usage + call

    logger.info(
        "Document summarized",
        extra={
            "chunks": len(chunks),
            "calls": len(calls),
            "input_tokens": usage.input_tokens,
            "output_tokens": usage.output_tokens,
            "degraded": final.degraded,
        },
    )

    return SummaryResult(
        summary=final.data["summary"],
        key_points=final.data["keyPoints"],
        usage=usage,
        cost_usd=total_cost_usd(calls),
        degraded=final.degraded,
        chunk_count=len(chunks),
        calls=calls,
    )
