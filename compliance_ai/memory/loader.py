# compliance_ai/memory/loader.py

"""
PDF text extraction for uploaded compliance documents.

Architecture contract:
loader → selector → chunker → model calls
"""

import io
import logging

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from compliance_ai.config import MAX_DOCUMENT_CHARACTERS
from compliance_ai.errors import FileProcessingError

logger = logging.getLogger(__name__)


# ============================================================
# SAFETY: CHARACTER LIMIT
# ============================================================

def enforce_character_limit(text: str) -> str:

    if not text:
        return ""

    if len(text) > MAX_DOCUMENT_CHARACTERS:

        logger.warning(
            "Text exceeds max character limit, truncating",
            extra={
                "original_length": len(text),
                "max_allowed": MAX_DOCUMENT_CHARACTERS,
            },
        )

        return text[:MAX_DOCUMENT_CHARACTERS]

    return text


# ============================================================
# PDF LOADER
# ============================================================

def load_pdf_text(content: bytes) -> str:

    if not content:
        raise FileProcessingError("Uploaded file is empty")

    try:

        reader = PdfReader(io.BytesIO(content))

        parts = []

        for page in reader.pages:

            text = page.extract_text()

            if text:
                parts.append(text)

    except (PdfReadError, ValueError, KeyError, TypeError) as e:

        logger.warning(
            "PDF parsing failed",
            extra={"error": str(e), "error_type": type(e).__name__},
        )

        raise FileProcessingError(f"Could not read PDF: {e}") from e

    text = "\n".join(parts).strip()

    if not text:
        raise FileProcessingError("No text content could be extracted from PDF")

    return enforce_character_limit(text)
