# compliance_ai/workflow/parsing.py

"""
Structured parsing of model replies.

A reply that is not the JSON we asked for is not a failure: the call
succeeded, only its shape is wrong. The result is tagged `degraded` and
carries the raw text in the primary field with empty list fields.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Sequence

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


@dataclass(frozen=True)
class ParsedResponse:
    data: Dict[str, Any] = field(default_factory=dict)
    degraded: bool = False
    raw: str = ""


def _strip_fences(raw: str) -> str:

    text = raw.strip()

    match = _FENCE_RE.match(text)
    if match:
        return match.group(1)

    # Some models wrap the object in a sentence; keep the outermost braces
    first, last = text.find("{"), text.rfind("}")
    if first > 0 and last > first:
        return text[first:last + 1]

    return text


def parse_json_response(
    raw: str,
    primary_field: str,
    list_fields: Sequence[str] = (),
) -> ParsedResponse:

    try:
        payload = json.loads(_strip_fences(raw))
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        if primary_field not in payload:
            raise ValueError(f"missing field {primary_field!r}")

    except ValueError as e:

        logger.warning(
            "Model reply was not valid JSON, using raw text",
            extra={
                "primary_field": primary_field,
                "raw_length": len(raw),
                "error": str(e),
            },
        )

        data = {primary_field: raw.strip()}
        data.update({name: [] for name in list_fields})

        return ParsedResponse(data=data, degraded=True, raw=raw)

    data = dict(payload)

    data[primary_field] = str(payload.get(primary_field) or "").strip()

    for name in list_fields:
        value = payload.get(name)
        data[name] = [str(item) for item in value] if isinstance(value, list) else []

    return ParsedResponse(data=data, degraded=False, raw=raw)
