# compliance_ai/llm/client.py

import logging
import os
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from compliance_ai.config import PipelineConfig
from compliance_ai.errors import UpstreamError
from compliance_ai.memory.tokens import estimate_tokens

logger = logging.getLogger(__name__)

Message = Dict[str, str]


@dataclass(frozen=True)
class Completion:
    text: str
    input_tokens: int
    output_tokens: int
    model: str


class OpenAICompletionClient:
    """
    Async client for the OpenAI chat completions API.

    Retries and backoff are left to the SDK (`max_retries`); anything
    that still fails is raised as UpstreamError.
    """

    def __init__(self, api_key: Optional[str] = None, max_retries: int = 2, timeout: float = 60.0):
        """
        Initialize OpenAI client.

        Args:
            api_key: Defaults to the OPENAI_API_KEY environment variable
            max_retries: SDK-level retries for transient failures
            timeout: Per-request timeout in seconds
        """
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError(
                "OPENAI_API_KEY environment variable not set. "
                "Please set it before running the application."
            )

        self.client = AsyncOpenAI(api_key=api_key, max_retries=max_retries, timeout=timeout)

    async def complete(
        self,
        messages: List[Message],
        model: str,
        max_output_tokens: int,
        temperature: float,
    ) -> Completion:

        start = time.time()

        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_output_tokens,
            )

        except OpenAIError as e:
            logger.error(
                "LLM provider failed",
                extra={
                    "provider": "openai",
                    "model": model,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            raise UpstreamError(f"OpenAI API call failed: {e}") from e

        if not response.choices or response.choices[0].message.content is None:
            raise UpstreamError("OpenAI returned an empty completion")

        usage = response.usage

        completion = Completion(
            text=response.choices[0].message.content.strip(),
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=model,
        )

        logger.info(
            "LLM provider success",
            extra={
                "provider": "openai",
                "model": model,
                "latency_seconds": round(time.time() - start, 3),
                "input_tokens": completion.input_tokens,
                "output_tokens": completion.output_tokens,
            },
        )

        return completion


class SimulatedCompletionClient:
    """
    Deterministic stand-in used in simulation mode. No network calls.

    Token usage is the character heuristic so cost accounting still has
    realistic numbers to work with.
    """

    MOCK_OUTPUT_TOKENS = 120

    def __init__(self):
        self.calls: List[Dict] = []

    async def complete(
        self,
        messages: List[Message],
        model: str,
        max_output_tokens: int,
        temperature: float,
    ) -> Completion:

        prompt_chars = sum(len(m.get("content", "")) for m in messages)
        self.calls.append({"model": model, "prompt_chars": prompt_chars})

        text = (
            f"[MOCK RESPONSE] Simulated {model} completion for a "
            f"{prompt_chars}-character prompt."
        )

        return Completion(
            text=text,
            input_tokens=sum(estimate_tokens(m.get("content", "")) for m in messages),
            output_tokens=min(self.MOCK_OUTPUT_TOKENS, max_output_tokens),
            model=model,
        )


def build_completion_client(config: PipelineConfig):

    if config.simulation_mode:
        logger.info("Completion client: simulated (simulation mode)")
        return SimulatedCompletionClient()

    if not os.getenv("OPENAI_API_KEY"):
        logger.warning(
            "OPENAI_API_KEY not set, falling back to simulated completions"
        )
        return SimulatedCompletionClient()

    return OpenAICompletionClient()
