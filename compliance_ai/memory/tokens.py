# compliance_ai/memory/tokens.py

"""
Token counting for budget decisions.

Two interchangeable counters share one async interface:

• HeuristicTokenCounter: ceil(chars / 4), no I/O
• TiktokenTokenCounter: real BPE counts, degrades to the heuristic

The pipeline only ever awaits `count(text)`; which counter it gets is a
configuration decision made once in `build_token_counter`.
"""

import asyncio
import logging
import math
from typing import Optional

import tiktoken

from compliance_ai.config import (
    CHARS_PER_TOKEN,
    MAX_TOKEN_COUNT_CHARS,
    PipelineConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"


def estimate_tokens(text: str) -> int:
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class HeuristicTokenCounter:
    """Character-ratio estimate. Used in simulation mode and as fallback."""

    name = "heuristic"

    async def count(self, text: str) -> int:
        return estimate_tokens(text)


class TiktokenTokenCounter:
    """
    BPE token counts via tiktoken.

    The encoding is resolved lazily because tiktoken downloads the BPE
    ranks on first use. Any failure, including that download, is logged
    and answered with the heuristic; callers never see an exception.
    If the encoding cannot be loaded at all, the counter stays on the
    heuristic for the rest of its life.
    """

    name = "tiktoken"

    def __init__(
        self,
        encoding_name: str = DEFAULT_ENCODING,
        max_chars: int = MAX_TOKEN_COUNT_CHARS,
    ):
        self.encoding_name = encoding_name
        self.max_chars = max_chars
        self._encoding = None
        self._degraded = False

    def _encode_length(self, text: str) -> int:

        if self._encoding is None:
            self._encoding = tiktoken.get_encoding(self.encoding_name)

        return len(self._encoding.encode(text, disallowed_special=()))

    async def count(self, text: str) -> int:

        if not text:
            return 0

        if self._degraded:
            return estimate_tokens(text)

        sample = text
        if len(sample) > self.max_chars:
            logger.debug(
                "Token count input truncated",
                extra={"original_length": len(text), "max_chars": self.max_chars},
            )
            sample = sample[: self.max_chars]

        try:
            return await asyncio.to_thread(self._encode_length, sample)

        except Exception as e:

            # Encoding never resolved; stop retrying it on every count
            if self._encoding is None:
                self._degraded = True

            logger.warning(
                "Token count failed, using heuristic",
                extra={
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "text_length": len(text),
                },
            )

            return estimate_tokens(text)


def build_token_counter(
    config: PipelineConfig,
    encoding_name: Optional[str] = None,
):
    """Pick the counter for this deployment. Simulation never touches the network."""

    if config.simulation_mode:
        logger.info("Token counter: heuristic (simulation mode)")
        return HeuristicTokenCounter()

    logger.info(
        "Token counter: tiktoken",
        extra={"encoding": encoding_name or DEFAULT_ENCODING},
    )

    return TiktokenTokenCounter(encoding_name=encoding_name or DEFAULT_ENCODING)
