# tests/test_selector.py
import asyncio

import pytest

from compliance_ai.errors import (
    PipelineStageError,
    SelectionExhaustedError,
    ValidationError,
)
from compliance_ai.memory.selector import (
    longest_prefix_within,
    select_relevant_text,
)
from compliance_ai.memory.tokens import estimate_tokens


class PeakCounter:
    """Heuristic counter that records how many counts were in flight at once."""

    def __init__(self):
        self.inflight = 0
        self.peak = 0

    async def count(self, text):
        self.inflight += 1
        self.peak = max(self.peak, self.inflight)
        await asyncio.sleep(0)
        self.inflight -= 1
        return estimate_tokens(text)


class BrokenCounter:

    async def count(self, text):
        raise RuntimeError("tokenizer offline")


def _policy_document():
    return (
        "1. Hazard Controls\n"
        + "hazard risk ppe " * 200
        + "\n2. Training\n"
        + "Annual training, permit checks and inspection rounds."
        + "\n3. Notes\n"
        + "Printed copies are kept at reception."
    )


class TestSelectRelevantText:

    def test_oversized_sections_are_skipped_not_fatal(self, counter):

        result = asyncio.run(select_relevant_text(_policy_document(), 200, counter))

        assert "=== 2. Training ===" in result
        assert "=== 3. Notes ===" in result
        assert "Hazard Controls" not in result

    def test_output_is_in_rank_order(self, counter):

        result = asyncio.run(select_relevant_text(_policy_document(), 200, counter))

        assert result.index("Training") < result.index("Notes")

    def test_result_fits_budget(self, counter):

        for budget in (30, 200, 900, 6000):
            result = asyncio.run(
                select_relevant_text(_policy_document(), budget, counter)
            )
            assert result
            assert estimate_tokens(result) <= budget

    def test_single_huge_line_falls_back_to_prefix(self, counter):

        text = "A" * 50000

        result = asyncio.run(select_relevant_text(text, 1800, counter))

        assert result == "A" * 7200

    def test_prefix_fallback_is_a_prefix(self, counter):

        text = "SECTION ONE\n" + "a" * 1024 + "\nSECTION TWO\n" + "b" * 1024

        result = asyncio.run(select_relevant_text(text, 100, counter))

        assert text.startswith(result)
        assert len(result) == 400

    def test_tiny_budget_still_returns_text(self, counter):

        result = asyncio.run(select_relevant_text("hello world", 1, counter))

        assert result == "hell"

    def test_empty_text_is_rejected(self, counter):

        with pytest.raises(ValidationError):
            asyncio.run(select_relevant_text("   ", 100, counter))

    def test_non_positive_budget_is_exhausted(self, counter):

        with pytest.raises(SelectionExhaustedError) as exc_info:
            asyncio.run(select_relevant_text("1. Scope\nbody", 0, counter))

        assert exc_info.value.stage == "selection"

    def test_counter_failure_is_attributed_to_selection(self):

        with pytest.raises(PipelineStageError) as exc_info:
            asyncio.run(select_relevant_text("1. Scope\nbody", 100, BrokenCounter()))

        assert exc_info.value.stage == "selection"
        assert exc_info.value.status_code == 500

    def test_section_counts_are_issued_together(self):

        counter = PeakCounter()

        asyncio.run(select_relevant_text(_policy_document(), 6000, counter))

        assert counter.peak == 3


class TestLongestPrefix:

    def test_whole_text_when_it_fits(self, counter):
        assert asyncio.run(longest_prefix_within("short", 10, counter)) == "short"

    def test_prefix_is_maximal(self, counter):

        text = "x" * 1000

        prefix = asyncio.run(longest_prefix_within(text, 25, counter))

        assert len(prefix) == 100
        assert estimate_tokens(text[: len(prefix) + 1]) > 25
