# tests/conftest.py
import asyncio
import os
import sys

import pytest

# Add project root to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Service singletons are built at import time, so the environment must be
# set before anything from compliance_ai.main is imported
os.environ["SIMULATION_MODE"] = "1"
os.environ["DOCUMENT_STORE_PATH"] = ""
os.environ["METRICS_PATH"] = ""
os.environ["LOG_DIR"] = ""
os.environ.pop("POSTHOG_API_KEY", None)

from fastapi.testclient import TestClient

from compliance_ai.config import PipelineConfig
from compliance_ai.llm.client import Completion, SimulatedCompletionClient
from compliance_ai.main import app
from compliance_ai.memory.store import DocumentStore
from compliance_ai.memory.tokens import HeuristicTokenCounter


class ScriptedClient:
    """
    Completion client that replays canned replies.

    `replies` is either a list (consumed in order, the last one repeats)
    or a callable(messages, model) -> str. A reply that is an exception
    instance is raised instead of returned.
    """

    def __init__(self, replies, input_tokens=100, output_tokens=50):
        self.replies = replies
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.calls = []

    async def complete(self, messages, model, max_output_tokens, temperature):

        self.calls.append(
            {
                "messages": messages,
                "model": model,
                "max_output_tokens": max_output_tokens,
                "temperature": temperature,
            }
        )

        if callable(self.replies):
            reply = self.replies(messages, model)
        elif len(self.replies) > 1:
            reply = self.replies.pop(0)
        else:
            reply = self.replies[0]

        if asyncio.iscoroutine(reply):
            reply = await reply

        if isinstance(reply, Exception):
            raise reply

        return Completion(
            text=reply,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            model=model,
        )


def build_pdf(lines):
    """Single-page PDF with one Helvetica text line per entry."""

    content = ["BT", "/F1 12 Tf", "14 TL", "72 720 Td"]

    for line in lines:
        escaped = line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        content.append(f"({escaped}) Tj T*")

    content.append("ET")

    stream = "\n".join(content).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []

    for number, body in enumerate(objects, 1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_offset = len(out)

    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset

    out += b"trailer\n<< /Size %d /Root 1 0 R >>\n" % (len(objects) + 1)
    out += b"startxref\n%d\n%%%%EOF\n" % xref_offset

    return bytes(out)


@pytest.fixture
def client():
    """
    FastAPI test client.

    Used to make requests to the API in tests.
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def reset_app_state(monkeypatch):
    """
    Fresh in-memory store and simulated services for every test.
    """
    from compliance_ai.api import routes
    from compliance_ai.observability.metrics import metrics_tracker

    monkeypatch.setattr(routes, "document_store", DocumentStore(path=None))
    monkeypatch.setattr(routes, "llm_client", SimulatedCompletionClient())
    monkeypatch.setattr(routes, "token_counter", HeuristicTokenCounter())
    metrics_tracker.reset()

    yield


@pytest.fixture
def counter():
    return HeuristicTokenCounter()


@pytest.fixture
def config():
    return PipelineConfig(simulation_mode=True)


@pytest.fixture
def scripted_client():
    """Factory: scripted_client(["reply", ...]) or scripted_client(fn)."""
    return ScriptedClient


@pytest.fixture
def sample_pdf_content():
    """Small policy document with real, extractable text."""
    return build_pdf(
        [
            "SAFETY POLICY",
            "This policy applies to all warehouse staff.",
            "1. Personal Protective Equipment",
            "Hard hats and safety glasses are mandatory in the loading bay.",
            "2. Emergency Procedures",
            "Evacuate through the nearest exit and report to the assembly point.",
        ]
    )


@pytest.fixture
def upload_sample_document(client, sample_pdf_content):
    """
    Upload a sample document and return its ID.
    """
    def _upload(name="policy.pdf"):
        response = client.post(
            "/documents/upload",
            files={"file": (name, sample_pdf_content, "application/pdf")}
        )
        assert response.status_code == 200, f"Upload failed: {response.json()}"
        return response.json()["id"]

    return _upload


@pytest.fixture
def large_pdf_content():
    """
    PDF-looking payload larger than the size limit.
    """
    return b"%PDF-1.4\n" + b"x" * (11 * 1024 * 1024) + b"\n%%EOF"


@pytest.fixture
def non_pdf_content():
    return b"This is a plain text file, not a PDF."
