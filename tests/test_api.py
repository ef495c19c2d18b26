# tests/test_api.py
import asyncio
import json

from compliance_ai.config import PipelineConfig
from compliance_ai.errors import UpstreamError


class TestHealthEndpoint:
    """Test the /health endpoint."""

    def test_health_check_no_documents(self, client):
        """Health check should work even with no documents uploaded."""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["total_documents"] == 0
        assert data["simulation_mode"] is True

    def test_health_check_with_documents(self, client, upload_sample_document):
        upload_sample_document()

        response = client.get("/health")

        assert response.json()["total_documents"] == 1

    def test_root_lists_endpoints(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["health"] == "/health"

    def test_request_id_header(self, client):
        response = client.get("/health")
        assert response.headers["X-Request-ID"]

    def test_metrics(self, client):
        client.get("/health")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.json()["total_requests"] == 1
        assert "p95_latency" in response.json()

    def test_metrics_record_llm_usage(self, client, upload_sample_document):
        upload_sample_document()

        data = client.get("/metrics").json()

        assert data["llm_input_tokens"] > 0
        assert data["llm_cost_usd"] > 0

    def test_analytics_disabled_without_key(self):
        from compliance_ai.observability.posthog_client import posthog_client

        assert posthog_client.enabled is False


class TestUploadEndpoint:
    """Test the /documents/upload endpoint with various inputs."""

    def test_upload_valid_pdf(self, client, sample_pdf_content):
        response = client.post(
            "/documents/upload",
            files={"file": ("policy.pdf", sample_pdf_content, "application/pdf")}
        )

        assert response.status_code == 200
        data = response.json()

        assert data["id"] == 1
        assert data["filename"] == "policy.pdf"
        assert data["text_chars"] > 0
        assert data["processing_status"] == "pending"

    def test_upload_runs_background_analysis(self, client, upload_sample_document):
        doc_id = upload_sample_document()

        response = client.get(f"/documents/{doc_id}/status")

        assert response.status_code == 200
        data = response.json()
        assert data["processing_status"] == "completed"
        assert data["has_summary"] is True

        detail = client.get(f"/documents/{doc_id}").json()
        assert detail["summary"].startswith("[MOCK RESPONSE]")

    def test_failed_analysis_marks_document(
        self, client, upload_sample_document, scripted_client, monkeypatch
    ):
        from compliance_ai.api import routes

        monkeypatch.setattr(
            routes, "llm_client", scripted_client([UpstreamError("service unavailable")])
        )

        doc_id = upload_sample_document()

        response = client.get(f"/documents/{doc_id}/status")

        assert response.json()["processing_status"] == "failed"

    def test_upload_wrong_file_extension(self, client, non_pdf_content):
        """Non-PDF file should be rejected."""
        response = client.post(
            "/documents/upload",
            files={"file": ("document.txt", non_pdf_content, "text/plain")}
        )

        assert response.status_code == 400
        assert "PDF" in response.json()["detail"]

    def test_upload_file_too_large(self, client, large_pdf_content):
        """File larger than limit should be rejected."""
        response = client.post(
            "/documents/upload",
            files={"file": ("huge.pdf", large_pdf_content, "application/pdf")}
        )

        assert response.status_code == 413
        assert "too large" in response.json()["detail"].lower()

    def test_upload_empty_file(self, client):
        response = client.post(
            "/documents/upload",
            files={"file": ("empty.pdf", b"", "application/pdf")}
        )

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "File Processing Error: Uploaded file is empty"
        assert data["request_id"]


class TestDocumentEndpoints:

    def test_list_documents(self, client, upload_sample_document):
        upload_sample_document("a.pdf")
        upload_sample_document("b.pdf")

        data = client.get("/documents").json()

        assert data["total_documents"] == 2
        assert [d["original_name"] for d in data["items"]] == ["a.pdf", "b.pdf"]

    def test_missing_document_is_404(self, client):
        response = client.get("/documents/999")

        assert response.status_code == 404
        assert response.json()["error"] == "Document 999 not found"

    def test_delete_document(self, client, upload_sample_document):
        doc_id = upload_sample_document()

        response = client.delete(f"/documents/{doc_id}")
        assert response.status_code == 200

        assert client.get(f"/documents/{doc_id}").status_code == 404
        assert client.delete(f"/documents/{doc_id}").status_code == 404

    def test_status_stream_closes_when_completed(self, client, upload_sample_document):
        doc_id = upload_sample_document()

        response = client.get(f"/documents/{doc_id}/status/stream")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"

        events = [
            json.loads(line[len("data: "):])
            for line in response.text.split("\n\n")
            if line.startswith("data: ")
        ]

        assert len(events) == 1
        assert events[0]["id"] == doc_id
        assert events[0]["processing_status"] == "completed"
        assert events[0]["has_summary"] is True
        assert events[0]["timestamp"]

    def test_status_stream_polls_until_time_limit(self, client, monkeypatch):
        from compliance_ai.api import routes

        doc_id = routes.document_store.create_document("a.pdf", "a.pdf", 10, "Wear PPE.")

        monkeypatch.setattr(routes, "STATUS_POLL_SECONDS", 0.01)
        monkeypatch.setattr(routes, "STATUS_STREAM_MAX_SECONDS", 0.05)

        response = client.get(f"/documents/{doc_id}/status/stream")

        events = [part for part in response.text.split("\n\n") if part.startswith("data: ")]

        assert len(events) > 1
        assert all('"processing_status": "pending"' in event for event in events)

    def test_status_stream_missing_document(self, client):
        response = client.get("/documents/999/status/stream")

        assert response.status_code == 404

    def test_summarize_endpoint(self, client, upload_sample_document):
        doc_id = upload_sample_document()

        response = client.post(f"/documents/{doc_id}/summarize")

        assert response.status_code == 200
        data = response.json()
        assert data["chunks"] == 1
        assert data["degraded"] is True
        assert data["usage"]["model"] == "gpt-4o-mini"
        assert data["cost_usd"] is not None


class TestAskEndpoint:

    def test_ask_question(self, client, upload_sample_document):
        doc_id = upload_sample_document()

        response = client.post(
            f"/documents/{doc_id}/ask",
            json={"question": "What PPE is mandatory?"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["answer"].startswith("[MOCK RESPONSE]")
        assert data["cached"] is False
        assert data["escalated"] is False
        assert data["conversation_id"].startswith("qa_")
        assert data["usage"]["input_tokens"] > 0

    def test_repeated_question_is_cached(self, client, upload_sample_document):
        doc_id = upload_sample_document()

        first = client.post(f"/documents/{doc_id}/ask", json={"question": "What PPE is mandatory?"})
        second = client.post(f"/documents/{doc_id}/ask", json={"question": "what ppe is mandatory?"})

        assert second.status_code == 200
        assert second.json()["cached"] is True
        assert second.json()["answer"] == first.json()["answer"]
        assert second.json()["conversation_id"] == first.json()["conversation_id"]

    def test_escalation_is_reported(self, client, upload_sample_document, scripted_client, monkeypatch):
        from compliance_ai.api import routes

        doc_id = upload_sample_document()

        monkeypatch.setattr(
            routes,
            "llm_client",
            scripted_client(["I can't find this in the document.", "See section 2."]),
        )

        data = client.post(
            f"/documents/{doc_id}/ask", json={"question": "Where is the assembly point?"}
        ).json()

        assert data["escalated"] is True
        assert data["answer"] == "See section 2."
        assert data["usage"]["input_tokens"] == 200

    def test_question_too_short(self, client, upload_sample_document):
        doc_id = upload_sample_document()

        response = client.post(f"/documents/{doc_id}/ask", json={"question": "hi"})

        assert response.status_code == 422

    def test_whitespace_question(self, client, upload_sample_document):
        doc_id = upload_sample_document()

        response = client.post(f"/documents/{doc_id}/ask", json={"question": "     "})

        assert response.status_code == 422

    def test_ask_missing_document(self, client):
        response = client.post("/documents/42/ask", json={"question": "What PPE?"})

        assert response.status_code == 404

    def test_upstream_failure_is_502(self, client, upload_sample_document, scripted_client, monkeypatch):
        from compliance_ai.api import routes

        doc_id = upload_sample_document()

        monkeypatch.setattr(routes, "llm_client", scripted_client([UpstreamError("down")]))

        response = client.post(f"/documents/{doc_id}/ask", json={"question": "What PPE?"})

        assert response.status_code == 502
        assert response.json()["error"] == "AI Service Error (answering): down"

    def test_deadline_is_504(self, client, upload_sample_document, scripted_client, monkeypatch):
        from compliance_ai.api import routes

        doc_id = upload_sample_document()

        monkeypatch.setattr(
            routes, "config", PipelineConfig(simulation_mode=True, pipeline_timeout_seconds=0.05)
        )
        monkeypatch.setattr(
            routes,
            "llm_client",
            scripted_client(lambda messages, model: asyncio.sleep(1, result="late")),
        )

        response = client.post(f"/documents/{doc_id}/ask", json={"question": "What PPE?"})

        assert response.status_code == 504


class TestConversationEndpoints:

    def test_chat_creates_and_continues_conversation(self, client):
        first = client.post("/documents/chat", json={"message": "Do I need gloves?"})

        assert first.status_code == 200
        conversation_id = first.json()["conversation_id"]
        assert conversation_id.startswith("chat_")
        assert first.json()["history_length"] == 2

        second = client.post(
            "/documents/chat",
            json={"message": "And boots?", "conversation_id": conversation_id}
        )

        assert second.json()["conversation_id"] == conversation_id
        assert second.json()["history_length"] == 4

        history = client.get(f"/documents/conversations/{conversation_id}").json()
        assert history["count"] == 4
        assert history["messages"][0]["content"] == "Do I need gloves?"

    def test_chat_with_document(self, client, upload_sample_document):
        doc_id = upload_sample_document()

        response = client.post(
            "/documents/chat",
            json={"message": "What is mandatory?", "document_id": doc_id}
        )

        assert response.status_code == 200

        listed = client.get("/documents/conversations", params={"document_id": doc_id}).json()
        assert listed["count"] == 1

    def test_chat_with_missing_document(self, client):
        response = client.post("/documents/chat", json={"message": "Hello", "document_id": 7})

        assert response.status_code == 404

    def test_download_conversation(self, client):
        conversation_id = client.post(
            "/documents/chat", json={"message": "Do I need gloves?"}
        ).json()["conversation_id"]

        response = client.get(f"/documents/conversations/{conversation_id}/download")

        assert response.status_code == 200
        assert response.headers["content-type"] == "text/plain; charset=utf-8"

        disposition = response.headers["content-disposition"]
        assert disposition.startswith(f'attachment; filename="conversation_{conversation_id}_')
        assert disposition.endswith('.txt"')

        text = response.text
        assert text.startswith(f"Conversation Export\nConversation ID: {conversation_id}\n")
        assert "=" * 50 in text
        assert "] User:\nDo I need gloves?\n" in text
        assert "\n---\n\n[" in text
        assert "] Assistant:\n[MOCK RESPONSE]" in text

    def test_download_unknown_conversation_is_404(self, client):
        response = client.get("/documents/conversations/chat_unknown/download")

        assert response.status_code == 404
        assert response.json()["error"] == "Conversation not found or has no messages"

    def test_unknown_conversation_is_empty(self, client):
        data = client.get("/documents/conversations/chat_unknown").json()

        assert data["count"] == 0


class TestCompareEndpoint:

    def test_compare_documents(self, client, upload_sample_document):
        first = upload_sample_document("a.pdf")
        second = upload_sample_document("b.pdf")

        response = client.post(
            "/documents/compare",
            json={"document1_id": first, "document2_id": second, "comparison_type": "similarity"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["comparison_type"] == "similarity"
        assert data["degraded"] is True
        assert data["usage"]["model"] == "gpt-4o"

    def test_compare_missing_document(self, client, upload_sample_document):
        doc_id = upload_sample_document()

        response = client.post(
            "/documents/compare",
            json={"document1_id": doc_id, "document2_id": 99}
        )

        assert response.status_code == 404

    def test_compare_unknown_type(self, client, upload_sample_document):
        doc_id = upload_sample_document()

        response = client.post(
            "/documents/compare",
            json={"document1_id": doc_id, "document2_id": doc_id, "comparison_type": "vibes"}
        )

        assert response.status_code == 422
