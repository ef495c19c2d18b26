# compliance_ai/workflow/chatbot.py

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from compliance_ai.config import (
    CHAT_HISTORY_TURNS,
    QA_MAX_OUTPUT_TOKENS,
    QA_OVERLAP_RATIO,
    QA_TEMPERATURE,
    QA_TOP_K,
    PipelineConfig,
)
from compliance_ai.errors import require_text, stage_context
from compliance_ai.llm.usage import Usage, estimate_cost_usd
from compliance_ai.memory.snippets import extract_relevant_snippets
from compliance_ai.prompts.prompt_builder import build_chat_prompt

logger = logging.getLogger(__name__)

_CHAT_ROLES = ("user", "assistant")


@dataclass(frozen=True)
class ChatResult:
    response: str
    usage: Usage
    cost_usd: Optional[float]
    history_length: int


async def handle_chat_message(
    message: str,
    client,
    config: PipelineConfig,
    document_context: Optional[str] = None,
    history: Optional[List[Dict[str, str]]] = None,
) -> ChatResult:
    """
    General assistant turn. A document, when given, is reduced to the
    snippets most relevant to the message.
    """

    require_text(message, "Message")

    excerpt = None

    if document_context and document_context.strip():
        with stage_context("extraction"):
            excerpt = extract_relevant_snippets(
                document_context,
                message,
                config.max_qa_tokens,
                top_k=QA_TOP_K,
                overlap_ratio=QA_OVERLAP_RATIO,
            )

    turns = [
        turn for turn in (history or [])
        if turn.get("role") in _CHAT_ROLES and turn.get("content")
    ][-CHAT_HISTORY_TURNS:]

    with stage_context("chat"):
        completion = await client.complete(
            build_chat_prompt(message, excerpt, turns),
            model=config.qa_model,
            max_output_tokens=QA_MAX_OUTPUT_TOKENS,
            temperature=QA_TEMPERATURE,
        )

    usage = Usage(completion.model, completion.input_tokens, completion.output_tokens)

    logger.info(
        "Chat message handled",
        extra={
            "has_document": excerpt is not None,
            "history_turns": len(turns),
            "input_tokens": usage.input_tokens,
            "output_tokens": usage.output_tokens,
        },
    )

    return ChatResult(
        response=completion.text,
        usage=usage,
        cost_usd=estimate_cost_usd(usage.model, usage.input_tokens, usage.output_tokens),
        history_length=len(turns),
    )
