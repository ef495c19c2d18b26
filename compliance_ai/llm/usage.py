# compliance_ai/llm/usage.py

from dataclasses import dataclass
from typing import Iterable, Optional

from compliance_ai.config import get_model_price


@dataclass(frozen=True)
class Usage:
    """Token usage for one or more completion calls."""

    model: str
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        model = self.model if self.model == other.model else f"{self.model}+{other.model}"
        return Usage(
            model=model,
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


def estimate_cost_usd(model: str, input_tokens: int, output_tokens: int) -> Optional[float]:
    """USD for one call, or None when the model has no known price."""

    price = get_model_price(model)

    if price is None:
        return None

    cost = (
        (input_tokens / 1_000_000) * price["input"]
        + (output_tokens / 1_000_000) * price["output"]
    )

    return round(cost, 6)


def total_cost_usd(usages: Iterable[Usage]) -> Optional[float]:
    """
    Sum of per-call costs. Each call is priced with its own model, so mixed
    model runs (chunk summaries + synthesis) are accounted correctly.
    Unknown models make the total unknown.
    """

    total = 0.0

    for usage in usages:
        cost = estimate_cost_usd(usage.model, usage.input_tokens, usage.output_tokens)
        if cost is None:
            return None
        total += cost

    return round(total, 6)
