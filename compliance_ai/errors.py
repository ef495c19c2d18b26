# compliance_ai/errors.py
"""
Error taxonomy for the document pipeline.

Client-class errors (bad input) carry 4xx status codes, service-class
errors (pipeline stage or upstream model failures) carry 5xx. The HTTP
layer maps `status_code` straight onto the response.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


class AppError(Exception):

    status_code = 500
    is_operational = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class FileProcessingError(AppError):
    status_code = 422

    def __init__(self, message: str):
        super().__init__(f"File Processing Error: {message}")


class AIServiceError(AppError):
    """Base for failures inside the AI pipeline. Always service-class."""

    status_code = 500

    def __init__(self, message: str, stage: Optional[str] = None):
        self.stage = stage
        prefix = f"AI Service Error ({stage})" if stage else "AI Service Error"
        super().__init__(f"{prefix}: {message}")
        self.detail = message


class PipelineStageError(AIServiceError):
    """Unrecoverable failure in selection, chunking, extraction or synthesis."""

    is_operational = False


class SelectionExhaustedError(PipelineStageError):
    """No section fit the budget and the prefix fallback produced nothing."""

    def __init__(self, message: str):
        super().__init__(message, stage="selection")


class UpstreamError(AIServiceError):
    """The completion API failed (network, rate limit, malformed reply)."""

    status_code = 502


class PipelineTimeoutError(AIServiceError):
    status_code = 504


def require_text(value: Optional[str], field: str) -> str:
    """Reject empty or whitespace-only input before any pipeline work."""

    if value is None or not value.strip():
        raise ValidationError(f"{field} must not be empty")

    return value


@contextmanager
def stage_context(stage: str) -> Iterator[None]:
    """
    Attribute failures inside the block to a pipeline stage.

    AppErrors that already know their stage pass through. Upstream errors
    without a stage are re-raised with this one; anything unexpected
    becomes a PipelineStageError.
    """

    try:
        yield

    except AIServiceError as e:

        if e.stage is not None:
            raise

        raise type(e)(e.detail, stage=stage) from e

    except AppError:
        raise

    except Exception as e:

        logger.error(
            "Pipeline stage failed",
            extra={
                "stage": stage,
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )

        raise PipelineStageError(str(e) or type(e).__name__, stage=stage) from e
