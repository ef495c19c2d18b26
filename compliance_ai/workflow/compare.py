# compliance_ai/workflow/compare.py

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from compliance_ai.config import COMPARISON_MAX_OUTPUT_TOKENS, SUMMARY_TEMPERATURE, PipelineConfig
from compliance_ai.errors import ValidationError, require_text, stage_context
from compliance_ai.llm.usage import Usage, estimate_cost_usd
from compliance_ai.memory.selector import select_relevant_text
from compliance_ai.prompts.prompt_builder import build_comparison_prompt
from compliance_ai.prompts.system_prompts import COMPARISON_INSTRUCTIONS
from compliance_ai.workflow.parsing import parse_json_response

logger = logging.getLogger(__name__)

COMPARISON_TYPES = tuple(COMPARISON_INSTRUCTIONS)
DEFAULT_COMPARISON_TYPE = "gap_analysis"


@dataclass(frozen=True)
class ComparisonResult:
    comparison: str
    key_findings: List[str]
    score: Optional[float]
    comparison_type: str
    usage: Usage
    cost_usd: Optional[float]
    degraded: bool


def _coerce_score(value) -> Optional[float]:
    """Scores outside 0-100 or non-numeric values are dropped, not clamped."""

    if isinstance(value, bool) or value is None:
        return None

    try:
        score = float(value)
    except (TypeError, ValueError):
        return None

    if 0 <= score <= 100:
        return score

    return None


async def compare_documents(
    text_a: str,
    text_b: str,
    client,
    counter,
    config: PipelineConfig,
    comparison_type: str = DEFAULT_COMPARISON_TYPE,
) -> ComparisonResult:
    """
    Compare two documents. Each is reduced to half the document budget
    so both fit one synthesis call.
    """

    require_text(text_a, "First document text")
    require_text(text_b, "Second document text")

    if comparison_type not in COMPARISON_TYPES:
        raise ValidationError(
            f"Unknown comparison type {comparison_type!r}, "
            f"expected one of {', '.join(COMPARISON_TYPES)}"
        )

    per_document_budget = max(1, config.max_document_tokens // 2)

    relevant_a, relevant_b = await asyncio.gather(
        select_relevant_text(text_a, per_document_budget, counter),
        select_relevant_text(text_b, per_document_budget, counter),
    )

    with stage_context("comparison"):
        completion = await client.complete(
            build_comparison_prompt(relevant_a, relevant_b, comparison_type),
            model=config.synthesis_model,
            max_output_tokens=COMPARISON_MAX_OUTPUT_TOKENS,
            temperature=SUMMARY_TEMPERATURE,
        )

    parsed = parse_json_response(completion.text, "comparison", ["keyFindings"])

    usage = Usage(completion.model, completion.input_tokens, completion.output_tokens)

    score = None if parsed.degraded else _coerce_score(parsed.data.get("score"))

    logger.info(
        "Documents compared",
        extra={
            "comparison_type": comparison_type,
            "key_findings": len(parsed.data["keyFindings"]),
            "score": score,
            "degraded": parsed.degraded,
        },
    )

    return ComparisonResult(
        comparison=parsed.data["comparison"],
        key_findings=parsed.data["keyFindings"],
        score=score,
        comparison_type=comparison_type,
        usage=usage,
        cost_usd=estimate_cost_usd(usage.model, usage.input_tokens, usage.output_tokens),
        degraded=parsed.degraded,
    )
