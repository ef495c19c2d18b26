# compliance_ai/workflow/document_qa.py

"""
Question answering with one-step escalation.

Attempted ──(no low-confidence marker)──▶ done
    │
    └─(marker)──▶ Escalated (larger snippet) ──▶ done

At most one escalation. Upstream failures propagate; nothing here retries.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from compliance_ai.config import (
    ESCALATION_OVERLAP_RATIO,
    ESCALATION_TOP_K,
    QA_MAX_OUTPUT_TOKENS,
    QA_OVERLAP_RATIO,
    QA_TEMPERATURE,
    QA_TOP_K,
    PipelineConfig,
)
from compliance_ai.errors import require_text, stage_context
from compliance_ai.llm.usage import Usage, total_cost_usd
from compliance_ai.memory.snippets import extract_relevant_snippets
from compliance_ai.prompts.prompt_builder import build_qa_prompt

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_PHRASES = (
    r"can[’']?t find",
    r"cannot find",
    r"could(?: not|n[’']?t) find",
    r"unable to find",
    r"insufficient context",
    r"not enough information",
    r"not provided",
    r"not mentioned",
    r"not specified",
    r"does(?: not|n[’']?t) (?:contain|mention|specify)",
    r"unclear",
    r"unspecified",
)

LOW_CONFIDENCE_RE = re.compile("|".join(LOW_CONFIDENCE_PHRASES), re.IGNORECASE)


@dataclass(frozen=True)
class QAResult:
    answer: str
    total_input_tokens: int
    total_output_tokens: int
    escalated: bool
    model: str
    cost_usd: Optional[float] = None
    passes: List[Usage] = field(default_factory=list)


def is_low_confidence(answer: str) -> bool:
    return LOW_CONFIDENCE_RE.search(answer or "") is not None


async def _attempt(
    text: str,
    question: str,
    client,
    model: str,
    target_tokens: int,
    top_k: int,
    overlap_ratio: float,
    escalated: bool,
):

    with stage_context("extraction"):
        excerpt = extract_relevant_snippets(
            text,
            question,
            target_tokens,
            top_k=top_k,
            overlap_ratio=overlap_ratio,
        )

    with stage_context("answering"):
        return await client.complete(
            build_qa_prompt(excerpt, question, escalated=escalated),
            model=model,
            max_output_tokens=QA_MAX_OUTPUT_TOKENS,
            temperature=QA_TEMPERATURE,
        )


async def answer_with_escalation(
    text: str,
    question: str,
    client,
    config: PipelineConfig,
) -> QAResult:
    """
    Answer from a small snippet first; retry once with a larger snippet
    when the first answer admits it could not find support.

    Token totals always cover every call made.
    """

    require_text(text, "Document text")
    require_text(question, "Question")

    first = await _attempt(
        text,
        question,
        client,
        model=config.qa_model,
        target_tokens=config.max_qa_tokens,
        top_k=QA_TOP_K,
        overlap_ratio=QA_OVERLAP_RATIO,
        escalated=False,
    )

    passes = [Usage(first.model, first.input_tokens, first.output_tokens)]

    if not is_low_confidence(first.text):

        logger.info(
            "Question answered on first pass",
            extra={
                "input_tokens": first.input_tokens,
                "output_tokens": first.output_tokens,
            },
        )

        return QAResult(
            answer=first.text,
            total_input_tokens=first.input_tokens,
            total_output_tokens=first.output_tokens,
            escalated=False,
            model=first.model,
            cost_usd=total_cost_usd(passes),
            passes=passes,
        )

    logger.info(
        "Low-confidence answer, escalating",
        extra={"escalation_tokens": config.escalation_qa_tokens},
    )

    second = await _attempt(
        text,
        question,
        client,
        model=config.qa_model,
        target_tokens=config.escalation_qa_tokens,
        top_k=ESCALATION_TOP_K,
        overlap_ratio=ESCALATION_OVERLAP_RATIO,
        escalated=True,
    )

    passes.append(Usage(second.model, second.input_tokens, second.output_tokens))

    total = passes[0] + passes[1]

    logger.info(
        "Question answered after escalation",
        extra={
            "input_tokens": total.input_tokens,
            "output_tokens": total.output_tokens,
            "still_low_confidence": is_low_confidence(second.text),
        },
    )

    return QAResult(
        answer=second.text,
        total_input_tokens=total.input_tokens,
        total_output_tokens=total.output_tokens,
        escalated=True,
        model=second.model,
        cost_usd=total_cost_usd(passes),
        passes=passes,
    )
