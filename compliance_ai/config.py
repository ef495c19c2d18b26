# compliance_ai/config.py
"""
Configuration for the Compliance Document Assistant.

This file centralizes all tunable parameters for the document pipeline.
Module-level constants are the defaults; `load_config()` builds the
immutable `PipelineConfig` once at startup and callers pass it into every
pipeline entry point.
"""

import os
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


# ========== TOKEN BUDGETS ==========

MAX_DOCUMENT_TOKENS = 6000  # relevant text handed to summarization
MAX_CHUNK_TOKENS = 2800  # ceiling for a single model call
OVERLAP_TOKENS = 300  # carried between consecutive chunks
MAX_QA_TOKENS = 1800  # first-pass Q&A snippet budget
ESCALATION_QA_TOKENS = 3500  # second-pass Q&A snippet budget

# Heuristic used whenever a real tokenizer is unavailable
CHARS_PER_TOKEN = 4

# Longest input sent to the tokenizer in a single count
MAX_TOKEN_COUNT_CHARS = 200_000


# ========== Q&A RETRIEVAL ==========

QA_TOP_K = 3
QA_OVERLAP_RATIO = 0.5

ESCALATION_TOP_K = 4
ESCALATION_OVERLAP_RATIO = 0.6

CHAT_HISTORY_TURNS = 10


# ========== LLM CONFIGURATION ==========

AI_SUMMARY_MODEL = "gpt-4o-mini"  # per-chunk summaries
AI_QA_MODEL = "gpt-4o-mini"  # question answering and chat
AI_SYNTHESIS_MODEL = "gpt-4o"  # final synthesis and comparison

SUMMARY_TEMPERATURE = 0.2
QA_TEMPERATURE = 0.1

SUMMARY_MAX_OUTPUT_TOKENS = 1024
QA_MAX_OUTPUT_TOKENS = 512
COMPARISON_MAX_OUTPUT_TOKENS = 1500


# ========== FILE UPLOAD ==========

MAX_FILE_SIZE_MB = 10
ALLOWED_FILE_EXTENSIONS = [".pdf"]
MAX_DOCUMENT_CHARACTERS = 2_000_000


# ========== SYSTEM CONSTRAINTS ==========

# Caller-level deadline around a whole pipeline invocation
PIPELINE_TIMEOUT_SECONDS = 120.0


# ========== PRICING ==========

# USD per million tokens
MODEL_PRICES_PER_MTOK: Dict[str, Dict[str, float]] = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
    "gpt-4.1": {"input": 2.00, "output": 8.00},
}


def get_model_price(model: str) -> Optional[Dict[str, float]]:
    return MODEL_PRICES_PER_MTOK.get(model)


# ========== RUNTIME CONFIG ==========

class PipelineConfig(BaseModel):
    """Budgets and model choices for one deployment. Immutable."""

    model_config = ConfigDict(frozen=True)

    max_document_tokens: int = Field(MAX_DOCUMENT_TOKENS, ge=1)
    max_chunk_tokens: int = Field(MAX_CHUNK_TOKENS, ge=1)
    overlap_tokens: int = Field(OVERLAP_TOKENS, ge=0)
    max_qa_tokens: int = Field(MAX_QA_TOKENS, ge=1)
    escalation_qa_tokens: int = Field(ESCALATION_QA_TOKENS, ge=1)

    simulation_mode: bool = False

    summary_model: str = AI_SUMMARY_MODEL
    qa_model: str = AI_QA_MODEL
    synthesis_model: str = AI_SYNTHESIS_MODEL

    pipeline_timeout_seconds: float = Field(PIPELINE_TIMEOUT_SECONDS, gt=0)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "0").strip().lower() in ("1", "true", "yes", "on")


def load_config() -> PipelineConfig:
    """
    Build the pipeline configuration from the process environment.

    Called once by the service layer. Unset variables keep the defaults
    above; invalid values raise pydantic's ValidationError at startup.
    """

    overrides = {
        "max_document_tokens": os.getenv("MAX_DOCUMENT_TOKENS"),
        "max_chunk_tokens": os.getenv("MAX_CHUNK_TOKENS"),
        "overlap_tokens": os.getenv("OVERLAP_TOKENS"),
        "max_qa_tokens": os.getenv("MAX_QA_TOKENS"),
        "escalation_qa_tokens": os.getenv("ESCALATION_QA_TOKENS"),
        "summary_model": os.getenv("AI_SUMMARY_MODEL"),
        "qa_model": os.getenv("AI_QA_MODEL"),
        "synthesis_model": os.getenv("AI_SYNTHESIS_MODEL"),
        "pipeline_timeout_seconds": os.getenv("PIPELINE_TIMEOUT_SECONDS"),
    }

    values = {key: value for key, value in overrides.items() if value}

    values["simulation_mode"] = _env_flag("SIMULATION_MODE")

    return PipelineConfig(**values)


# ========== DESIGN TRADE-OFFS (DOCUMENTED) ==========

"""
TRADE-OFF DECISIONS:

1. MAX_DOCUMENT_TOKENS = 6000:
   - Enough for two or three chunks of a typical policy document
   - Larger budgets raise synthesis cost linearly

2. MAX_CHUNK_TOKENS = 2800, OVERLAP_TOKENS = 300:
   - ~10% overlap keeps sentences that straddle a boundary visible twice
   - Chunks end on sentence or paragraph breaks where one is close

3. MAX_QA_TOKENS = 1800 → ESCALATION_QA_TOKENS = 3500:
   - First pass is cheap and usually enough
   - Second pass only when the answer admits it could not find support,
     so the extra spend is bounded to one retry
"""
