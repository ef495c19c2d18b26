import asyncio
import json
import logging
import os
import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import Response, StreamingResponse

from compliance_ai.config import ALLOWED_FILE_EXTENSIONS, MAX_FILE_SIZE_MB, load_config
from compliance_ai.errors import NotFoundError, PipelineTimeoutError, ValidationError
from compliance_ai.llm.client import build_completion_client
from compliance_ai.memory.loader import load_pdf_text
from compliance_ai.memory.store import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PROCESSING,
    DocumentStore,
)
from compliance_ai.memory.tokens import build_token_counter
from compliance_ai.models import (
    AskRequest,
    AskResponse,
    ChatRequest,
    ChatResponse,
    CompareRequest,
    CompareResponse,
    ConversationHistoryResponse,
    DeleteDocumentResponse,
    DocumentDetail,
    DocumentInfo,
    DocumentStatusResponse,
    HealthResponse,
    ListConversationsResponse,
    ListDocumentsResponse,
    SummaryResponse,
    UploadResponse,
    UsageInfo,
)
from compliance_ai.observability.metrics import metrics_tracker
from compliance_ai.observability.posthog_client import posthog_client
from compliance_ai.workflow.chatbot import handle_chat_message
from compliance_ai.workflow.compare import compare_documents
from compliance_ai.workflow.document_qa import answer_with_escalation
from compliance_ai.workflow.summarize import summarize_document


# ============================================================
# LOGGER
# ============================================================

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================
# SERVICE SINGLETONS (BUILT ONCE FROM CONFIG)
# ============================================================

config = load_config()

token_counter = build_token_counter(config)

llm_client = build_completion_client(config)

document_store = DocumentStore(
    path=os.getenv("DOCUMENT_STORE_PATH", "storage/documents.json") or None
)


# Status stream polls the store; clients reconnect after the cap
STATUS_POLL_SECONDS = 2.0
STATUS_STREAM_MAX_SECONDS = 300.0

MAX_EXPORT_MESSAGES = 1000



# ============================================================
# HELPERS
# ============================================================

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


async def run_with_deadline(coro, operation: str):
    """Caller-level deadline: in-flight sibling calls are abandoned on timeout."""

    try:
        return await asyncio.wait_for(coro, timeout=config.pipeline_timeout_seconds)

    except asyncio.TimeoutError as e:
        raise PipelineTimeoutError(
            f"{operation} exceeded {config.pipeline_timeout_seconds}s deadline",
            stage=operation,
        ) from e


def get_document_or_404(document_id: int) -> dict:

    doc = document_store.get_document(document_id)

    if doc is None:
        raise NotFoundError(f"Document {document_id} not found")

    return doc


def require_document_text(doc: dict) -> str:

    text = doc.get("text_content") or ""

    if not text.strip():
        raise ValidationError(f"Document {doc['id']} has no text content")

    return text


def validate_upload(file: UploadFile, content: bytes):

    name = (file.filename or "").lower()

    if not any(name.endswith(ext) for ext in ALLOWED_FILE_EXTENSIONS):
        raise HTTPException(status_code=400, detail="Only PDF files are allowed")

    size_mb = len(content) / (1024 * 1024)

    if size_mb > MAX_FILE_SIZE_MB:
        raise HTTPException(
            status_code=413,
            detail=f"File too large: {size_mb:.2f}MB",
        )


def _usage_info(usage) -> UsageInfo:
    return UsageInfo(
        model=usage.model,
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
    )


async def status_events(document_id: int):
    """Server-sent status events until analysis finishes or the stream times out."""

    deadline = time.monotonic() + STATUS_STREAM_MAX_SECONDS

    while True:

        doc = document_store.get_document(document_id)

        if doc is None:
            return

        payload = {
            "id": doc["id"],
            "processing_status": doc["processing_status"],
            "has_summary": bool(doc["summary"]),
            "has_key_points": bool(doc["key_points"]),
            "timestamp": datetime.utcnow().isoformat(),
        }

        yield f"data: {json.dumps(payload)}\n\n"

        if doc["processing_status"] in (STATUS_COMPLETED, STATUS_FAILED):
            return

        if time.monotonic() >= deadline:
            logger.info("Status stream closed at time limit", extra={"document_id": document_id})
            return

        await asyncio.sleep(STATUS_POLL_SECONDS)


def format_conversation_export(conversation_id: str, messages, exported_at: datetime) -> str:

    body = "\n---\n\n".join(
        f"[{m['created_at']}] {'User' if m['role'] == 'user' else 'Assistant'}:\n{m['content']}\n"
        for m in messages
    )

    header = (
        "Conversation Export\n"
        f"Conversation ID: {conversation_id}\n"
        f"Exported: {exported_at.isoformat()}\n\n"
        + "=" * 50
        + "\n\n"
    )

    return header + body


async def analyze_document(document_id: int, text: str):
    """Background summarization after upload. Failures only mark the document."""

    document_store.update_status(document_id, STATUS_PROCESSING)

    try:

        result = await run_with_deadline(
            summarize_document(text, llm_client, token_counter, config),
            "summarization",
        )

    except Exception as e:

        document_store.update_status(document_id, STATUS_FAILED)

        logger.error(
            "Background analysis failed",
            extra={
                "document_id": document_id,
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )

        return

    document_store.update_analysis(document_id, result.summary, result.key_points)

    metrics_tracker.record_usage(
        result.usage.input_tokens,
        result.usage.output_tokens,
        result.cost_usd,
    )

    logger.info(
        "Background analysis completed",
        extra={"document_id": document_id, "chunks": result.chunk_count},
    )


# ============================================================
# HEALTH / METRICS
# ============================================================

@router.get("/health", response_model=HealthResponse)
def health_check():

    stats = document_store.get_stats()

    return HealthResponse(
        status="healthy",
        total_documents=stats["total_documents"],
        total_conversations=stats["total_conversations"],
        simulation_mode=config.simulation_mode,
    )


@router.get("/metrics")
def get_metrics():

    return metrics_tracker.get_metrics()


# ============================================================
# UPLOAD DOCUMENT
# ============================================================

@router.post("/documents/upload", response_model=UploadResponse)
async def upload_document(
    request: Request,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
):

    content = await file.read()

    validate_upload(file, content)

    text = load_pdf_text(content)

    document_id = document_store.create_document(
        filename=file.filename,
        original_name=file.filename,
        size_bytes=len(content),
        text=text,
    )

    background_tasks.add_task(analyze_document, document_id, text)

    posthog_client.track_document_upload(
        distinct_id=_request_id(request),
        document_id=document_id,
        size_bytes=len(content),
        text_chars=len(text),
    )

    return UploadResponse(
        id=document_id,
        filename=file.filename,
        text_chars=len(text),
        processing_status=document_store.get_document(document_id)["processing_status"],
    )


# ============================================================
# CONVERSATIONS (BEFORE PARAMETERIZED DOCUMENT ROUTES)
# ============================================================

@router.get("/documents/conversations", response_model=ListConversationsResponse)
def list_conversations(
    document_id: Optional[int] = Query(None, gt=0),
    limit: int = Query(20, ge=1, le=200),
):

    conversations = document_store.list_conversations(document_id, limit)

    return ListConversationsResponse(conversations=conversations, count=len(conversations))


@router.get(
    "/documents/conversations/{conversation_id}",
    response_model=ConversationHistoryResponse,
)
def get_conversation(conversation_id: str, limit: int = Query(50, ge=1, le=1000)):

    messages = document_store.get_messages(conversation_id, limit)

    return ConversationHistoryResponse(
        conversation_id=conversation_id,
        messages=messages,
        count=len(messages),
    )


@router.get("/documents/conversations/{conversation_id}/download")
def download_conversation(conversation_id: str):

    messages = document_store.get_messages(conversation_id, MAX_EXPORT_MESSAGES)

    if not messages:
        raise NotFoundError("Conversation not found or has no messages")

    now = datetime.utcnow()

    content = format_conversation_export(conversation_id, messages, now)
    file_name = f"conversation_{conversation_id}_{now.strftime('%Y-%m-%d')}.txt"

    logger.info(
        "Conversation downloaded",
        extra={
            "conversation_id": conversation_id,
            "message_count": len(messages),
            "file_name": file_name,
        },
    )

    return Response(
        content=content,
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


# ============================================================
# CHAT / COMPARE
# ============================================================

@router.post("/documents/chat", response_model=ChatResponse)
async def chat(payload: ChatRequest, request: Request):

    document_context = None

    if payload.document_id is not None:
        document_context = get_document_or_404(payload.document_id).get("text_content")

    conversation_id = payload.conversation_id

    if conversation_id:
        document_store.ensure_conversation(conversation_id, payload.document_id)
    else:
        conversation_id = document_store.create_conversation("chat", payload.document_id)

    history = [
        {"role": m["role"], "content": m["content"]}
        for m in document_store.get_messages(conversation_id, 20)
    ]

    result = await run_with_deadline(
        handle_chat_message(
            payload.message,
            llm_client,
            config,
            document_context=document_context,
            history=history,
        ),
        "chat",
    )

    document_store.add_message(conversation_id, "user", payload.message)
    document_store.add_message(conversation_id, "assistant", result.response)

    metrics_tracker.record_usage(
        result.usage.input_tokens, result.usage.output_tokens, result.cost_usd
    )

    posthog_client.track_chat(
        distinct_id=_request_id(request),
        has_document=document_context is not None,
        history_length=len(history),
    )

    return ChatResponse(
        response=result.response,
        conversation_id=conversation_id,
        history_length=len(history) + 2,
        usage=_usage_info(result.usage),
        cost_usd=result.cost_usd,
    )


@router.post("/documents/compare", response_model=CompareResponse)
async def compare(payload: CompareRequest, request: Request):

    text_a = require_document_text(get_document_or_404(payload.document1_id))
    text_b = require_document_text(get_document_or_404(payload.document2_id))

    result = await run_with_deadline(
        compare_documents(
            text_a,
            text_b,
            llm_client,
            token_counter,
            config,
            comparison_type=payload.comparison_type,
        ),
        "comparison",
    )

    metrics_tracker.record_usage(
        result.usage.input_tokens, result.usage.output_tokens, result.cost_usd
    )

    posthog_client.track_comparison(
        distinct_id=_request_id(request),
        comparison_type=result.comparison_type,
        degraded=result.degraded,
    )

    return CompareResponse(
        comparison=result.comparison,
        key_findings=result.key_findings,
        score=result.score,
        comparison_type=result.comparison_type,
        degraded=result.degraded,
        usage=_usage_info(result.usage),
        cost_usd=result.cost_usd,
    )


# ============================================================
# DOCUMENTS
# ============================================================

@router.get("/documents", response_model=ListDocumentsResponse)
def list_documents():

    items = [DocumentInfo(**doc) for doc in document_store.list_documents()]

    return ListDocumentsResponse(items=items, total_documents=len(items))


@router.get("/documents/{document_id}", response_model=DocumentDetail)
def get_document(document_id: int):

    return DocumentDetail(**get_document_or_404(document_id))


@router.get("/documents/{document_id}/status", response_model=DocumentStatusResponse)
def get_document_status(document_id: int):

    doc = get_document_or_404(document_id)

    return DocumentStatusResponse(
        id=doc["id"],
        processing_status=doc["processing_status"],
        has_summary=bool(doc["summary"]),
        has_key_points=bool(doc["key_points"]),
        created_at=doc["created_at"],
    )


@router.get("/documents/{document_id}/status/stream")
def stream_document_status(document_id: int):

    get_document_or_404(document_id)

    return StreamingResponse(
        status_events(document_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/documents/{document_id}/summarize", response_model=SummaryResponse)
async def summarize(document_id: int, request: Request):

    text = require_document_text(get_document_or_404(document_id))

    result = await run_with_deadline(
        summarize_document(text, llm_client, token_counter, config),
        "summarization",
    )

    document_store.update_analysis(document_id, result.summary, result.key_points)

    metrics_tracker.record_usage(
        result.usage.input_tokens, result.usage.output_tokens, result.cost_usd
    )

    posthog_client.track_summary(
        distinct_id=_request_id(request),
        document_id=document_id,
        chunks=result.chunk_count,
        input_tokens=result.usage.input_tokens,
        output_tokens=result.usage.output_tokens,
        degraded=result.degraded,
    )

    return SummaryResponse(
        document_id=document_id,
        summary=result.summary,
        key_points=result.key_points,
        chunks=result.chunk_count,
        degraded=result.degraded,
        usage=_usage_info(result.usage),
        cost_usd=result.cost_usd,
    )


@router.post("/documents/{document_id}/ask", response_model=AskResponse)
async def ask_question(document_id: int, payload: AskRequest, request: Request):

    start_time = time.time()

    text = require_document_text(get_document_or_404(document_id))

    cached = document_store.find_cached_answer(document_id, payload.question)

    if cached:

        logger.info(
            "Returning cached answer from conversation",
            extra={
                "document_id": document_id,
                "conversation_id": cached["conversation_id"],
            },
        )

        posthog_client.track_question(
            distinct_id=_request_id(request),
            document_id=document_id,
            question=payload.question,
            latency=time.time() - start_time,
            escalated=False,
            cached=True,
        )

        return AskResponse(
            answer=cached["answer"],
            cached=True,
            conversation_id=cached["conversation_id"],
        )

    result = await run_with_deadline(
        answer_with_escalation(text, payload.question, llm_client, config),
        "answering",
    )

    conversation_id = document_store.create_conversation("qa", document_id)
    document_store.add_message(conversation_id, "user", payload.question)
    document_store.add_message(conversation_id, "assistant", result.answer)

    metrics_tracker.record_usage(
        result.total_input_tokens,
        result.total_output_tokens,
        result.cost_usd,
        escalated=result.escalated,
    )

    posthog_client.track_question(
        distinct_id=_request_id(request),
        document_id=document_id,
        question=payload.question,
        latency=time.time() - start_time,
        escalated=result.escalated,
        cached=False,
    )

    return AskResponse(
        answer=result.answer,
        cached=False,
        conversation_id=conversation_id,
        escalated=result.escalated,
        usage=UsageInfo(
            model=result.model,
            input_tokens=result.total_input_tokens,
            output_tokens=result.total_output_tokens,
        ),
        cost_usd=result.cost_usd,
    )


@router.delete("/documents/{document_id}", response_model=DeleteDocumentResponse)
def delete_document(document_id: int):

    if not document_store.soft_delete(document_id):
        raise NotFoundError(f"Document {document_id} not found")

    logger.info("Document soft-deleted", extra={"document_id": document_id})

    return DeleteDocumentResponse(id=document_id, message="Document deleted successfully")
