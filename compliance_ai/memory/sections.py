# compliance_ai/memory/sections.py

"""
Heading-based section splitting and keyword relevance scoring.

Both are deliberately coarse: the splitter is a single pass over lines
with no nesting, and the scorer is a ranking signal, not a precision
metric.
"""

import re
from dataclasses import dataclass
from typing import List

DEFAULT_SECTION_TITLE = "Introduction"
MAX_TITLE_CHARS = 120

# "Safety glasses must be worn." starts with a vocabulary word but is a
# sentence; vocabulary-led headings must be short and not end with a period
MAX_VOCABULARY_HEADING_CHARS = 80

HEADING_VOCABULARY = (
    "Section",
    "Policy",
    "Procedure",
    "Scope",
    "Purpose",
    "Hazard",
    "Safety",
    "Responsibilities",
)

COMPLIANCE_KEYWORDS = (
    "ppe",
    "hazard",
    "policy",
    "procedure",
    "risk",
    "training",
    "inspection",
    "permit",
    "lockout",
    "tagout",
    "emergency",
    "evacuation",
    "incident",
    "compliance",
    "regulation",
    "responsibilit",
    "mandatory",
    "requirement",
    "protective",
    "safety",
    "audit",
    "confined space",
)

KEYWORD_WEIGHT = 2

_NUMBERED_RE = re.compile(r"^\d+(?:\.\d+)*[.)]?\s+[A-Z(]")
_MARKDOWN_RE = re.compile(r"^#{1,6}\s*\S")
_CAPS_WORD_RE = re.compile(r"[A-Z]{3,}")
_VOCABULARY_RE = re.compile(
    r"^(%s)\b" % "|".join(HEADING_VOCABULARY),
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Section:
    title: str
    body: str


def is_heading(line: str) -> bool:

    stripped = line.strip()

    if not stripped:
        return False

    if _MARKDOWN_RE.match(stripped) or _NUMBERED_RE.match(stripped):
        return True

    if _CAPS_WORD_RE.search(stripped) and stripped == stripped.upper():
        return True

    if _VOCABULARY_RE.match(stripped):
        return (
            len(stripped) <= MAX_VOCABULARY_HEADING_CHARS
            and not stripped.endswith(".")
        )

    return False


def _clean_title(line: str) -> str:
    title = line.strip().lstrip("#").strip()
    return title[:MAX_TITLE_CHARS]


def split_sections(text: str) -> List[Section]:
    """
    Break raw document text into titled sections.

    Lines before the first heading go under "Introduction". Sections
    whose body is blank are dropped.
    """

    sections: List[Section] = []

    title = DEFAULT_SECTION_TITLE
    body_lines: List[str] = []

    def flush():
        body = "\n".join(body_lines).strip()
        if body:
            sections.append(Section(title=title, body=body))

    for line in (text or "").splitlines():

        if is_heading(line):
            flush()
            title = _clean_title(line)
            body_lines = []
        else:
            body_lines.append(line)

    flush()

    return sections


def score_section(section: Section) -> int:
    """Fixed weight per vocabulary term present. Repetition does not count."""

    haystack = f"{section.title}\n{section.body}".lower()

    return sum(
        KEYWORD_WEIGHT
        for term in COMPLIANCE_KEYWORDS
        if term in haystack
    )
