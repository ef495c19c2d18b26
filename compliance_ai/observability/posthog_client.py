# compliance_ai/observability/posthog_client.py

"""
PostHog product analytics.

- Disabled unless POSTHOG_API_KEY is set
- request_id is the distinct_id
- Never raises into request handling
"""

import os
import logging
from typing import Optional, Dict, Any

from posthog import Posthog


logger = logging.getLogger(__name__)


class PostHogClient:

    def __init__(self, api_key: Optional[str] = None, host: Optional[str] = None):

        self._enabled = False
        self._client: Optional[Posthog] = None

        api_key = api_key or os.getenv("POSTHOG_API_KEY")
        host = host or os.getenv("POSTHOG_HOST", "https://app.posthog.com")

        if not api_key:
            logger.info("PostHog disabled: POSTHOG_API_KEY not set")
            return

        try:

            self._client = Posthog(
                project_api_key=api_key,
                host=host,
                timeout=5,
                flush_interval=1,
            )

            self._enabled = True

            logger.info("PostHog client initialized", extra={"host": host})

        except Exception as e:

            logger.error(
                "PostHog initialization failed",
                extra={"error": str(e)}
            )

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _track(
        self,
        distinct_id: str,
        event: str,
        properties: Optional[Dict[str, Any]] = None,
    ):
        """Analytics must never break a request, so failures are only logged."""

        if not self._enabled or not self._client:
            return

        try:

            self._client.capture(
                distinct_id=distinct_id,
                event=event,
                properties=properties or {},
            )

        except Exception as e:

            logger.warning(
                "PostHog tracking failed",
                extra={"event": event, "error": str(e)}
            )

    # ==========================================================
    # DOCUMENTS
    # ==========================================================

    def track_document_upload(self, distinct_id: str, document_id: int, size_bytes: int, text_chars: int):

        self._track(
            distinct_id,
            "document_uploaded",
            {
                "document_id": document_id,
                "size_bytes": size_bytes,
                "text_chars": text_chars,
            },
        )

    def track_summary(
        self,
        distinct_id: str,
        document_id: int,
        chunks: int,
        input_tokens: int,
        output_tokens: int,
        degraded: bool,
    ):

        self._track(
            distinct_id,
            "document_summarized",
            {
                "document_id": document_id,
                "chunks": chunks,
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "degraded": degraded,
            },
        )

    # ==========================================================
    # QUESTIONS / CHAT / COMPARISON
    # ==========================================================

    def track_question(
        self,
        distinct_id: str,
        document_id: int,
        question: str,
        latency: float,
        escalated: bool,
        cached: bool,
    ):

        self._track(
            distinct_id,
            "question_asked",
            {
                "document_id": document_id,
                "question_length": len(question),
                "latency_seconds": latency,
                "escalated": escalated,
                "cached": cached,
            },
        )

    def track_chat(self, distinct_id: str, has_document: bool, history_length: int):

        self._track(
            distinct_id,
            "chat_message",
            {"has_document": has_document, "history_length": history_length},
        )

    def track_comparison(self, distinct_id: str, comparison_type: str, degraded: bool):

        self._track(
            distinct_id,
            "documents_compared",
            {"comparison_type": comparison_type, "degraded": degraded},
        )

    # ==========================================================
    # ERRORS
    # ==========================================================

    def track_error(
        self,
        distinct_id: str,
        error_type: str,
        error_message: str,
        endpoint: str,
        stage: Optional[str] = None,
    ):

        self._track(
            distinct_id,
            "system_error",
            {
                "error_type": error_type,
                "error_message": error_message,
                "endpoint": endpoint,
                "stage": stage,
            },
        )


posthog_client = PostHogClient()
