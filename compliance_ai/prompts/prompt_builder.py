# compliance_ai/prompts/prompt_builder.py

from typing import Dict, List, Optional

from compliance_ai.prompts.system_prompts import (
    CHATBOT_SYSTEM_PROMPT,
    CHUNK_SUMMARY_INSTRUCTIONS,
    COMPARISON_INSTRUCTIONS,
    COMPARISON_RESPONSE_FORMAT,
    COMPLIANCE_SYSTEM_PROMPT,
    QA_ESCALATION_INSTRUCTIONS,
    QA_FIRST_PASS_INSTRUCTIONS,
    SUMMARY_INSTRUCTIONS,
    SYNTHESIS_INSTRUCTIONS,
)

Message = Dict[str, str]


def _messages(system: str, user: str) -> List[Message]:
    return [
        {"role": "system", "content": system.strip()},
        {"role": "user", "content": user.strip()},
    ]


def build_summary_prompt(text: str) -> List[Message]:
    return _messages(
        COMPLIANCE_SYSTEM_PROMPT,
        f"{SUMMARY_INSTRUCTIONS.strip()}\n\nDOCUMENT:\n{text}",
    )


def build_chunk_summary_prompt(chunk: str, index: int, total: int) -> List[Message]:
    instructions = CHUNK_SUMMARY_INSTRUCTIONS.format(index=index, total=total)
    return _messages(
        COMPLIANCE_SYSTEM_PROMPT,
        f"{instructions.strip()}\n\nDOCUMENT PART:\n{chunk}",
    )


def build_synthesis_prompt(partial_summaries: List[str]) -> List[Message]:
    """Partial summaries must be passed in document order."""

    parts = "\n\n".join(
        f"[Part {i}]\n{summary}"
        for i, summary in enumerate(partial_summaries, 1)
    )

    return _messages(
        COMPLIANCE_SYSTEM_PROMPT,
        f"{SYNTHESIS_INSTRUCTIONS.strip()}\n\n{parts}",
    )


def build_qa_prompt(excerpt: str, question: str, escalated: bool = False) -> List[Message]:

    instructions = QA_ESCALATION_INSTRUCTIONS if escalated else QA_FIRST_PASS_INSTRUCTIONS

    user = f"""
{instructions.strip()}

DOCUMENT EXCERPT:
----------------
{excerpt}
----------------

QUESTION:
{question}
"""

    return _messages(COMPLIANCE_SYSTEM_PROMPT, user)


def build_comparison_prompt(text_a: str, text_b: str, comparison_type: str) -> List[Message]:

    user = f"""
{COMPARISON_INSTRUCTIONS[comparison_type].strip()}

{COMPARISON_RESPONSE_FORMAT.strip()}

DOCUMENT A:
----------------
{text_a}
----------------

DOCUMENT B:
----------------
{text_b}
----------------
"""

    return _messages(COMPLIANCE_SYSTEM_PROMPT, user)


def build_chat_prompt(
    message: str,
    document_excerpt: Optional[str] = None,
    history: Optional[List[Message]] = None,
) -> List[Message]:

    system = CHATBOT_SYSTEM_PROMPT.strip()

    if document_excerpt:
        system = f"{system}\n\nDOCUMENT EXCERPT:\n{document_excerpt}"

    messages: List[Message] = [{"role": "system", "content": system}]

    for turn in history or []:
        messages.append({"role": turn["role"], "content": turn["content"]})

    messages.append({"role": "user", "content": message.strip()})

    return messages
