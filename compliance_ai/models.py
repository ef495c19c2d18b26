from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class UsageInfo(BaseModel):
    model: str
    input_tokens: int
    output_tokens: int


class UploadResponse(BaseModel):
    """Response after uploading a document."""
    id: int
    filename: str
    text_chars: int
    processing_status: str
    message: str = "Document uploaded; analysis started"


class DocumentInfo(BaseModel):
    id: int
    original_name: str
    size_bytes: int
    processing_status: str
    created_at: str


class DocumentDetail(DocumentInfo):
    summary: Optional[str] = None
    key_points: Optional[List[str]] = None


class ListDocumentsResponse(BaseModel):
    items: List[DocumentInfo]
    total_documents: int


class DocumentStatusResponse(BaseModel):
    id: int
    processing_status: str
    has_summary: bool
    has_key_points: bool
    created_at: str


class DeleteDocumentResponse(BaseModel):
    id: int
    message: str


class SummaryResponse(BaseModel):
    document_id: int
    summary: str
    key_points: List[str]
    chunks: int
    degraded: bool
    usage: UsageInfo
    cost_usd: Optional[float] = None


class AskRequest(BaseModel):
    """Request to ask a question about a document."""
    question: str = Field(..., min_length=3, max_length=1000)

    @field_validator("question")
    @classmethod
    def validate_question(cls, v):
        """Ensure question is not just whitespace."""
        if not v.strip():
            raise ValueError("Question cannot be empty or only whitespace")
        return v.strip()


class AskResponse(BaseModel):
    answer: str
    cached: bool
    conversation_id: str
    escalated: bool = False
    usage: Optional[UsageInfo] = None
    cost_usd: Optional[float] = None


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=1000)
    document_id: Optional[int] = Field(None, gt=0)
    conversation_id: Optional[str] = Field(None, max_length=100)

    @field_validator("message")
    @classmethod
    def validate_message(cls, v):
        if not v.strip():
            raise ValueError("Message cannot be empty or only whitespace")
        return v.strip()


class ChatResponse(BaseModel):
    response: str
    conversation_id: str
    history_length: int
    usage: UsageInfo
    cost_usd: Optional[float] = None


class CompareRequest(BaseModel):
    document1_id: int = Field(..., gt=0)
    document2_id: int = Field(..., gt=0)
    comparison_type: Literal["gap_analysis", "similarity", "differences"] = "gap_analysis"


class CompareResponse(BaseModel):
    comparison: str
    key_findings: List[str]
    score: Optional[float] = None
    comparison_type: str
    degraded: bool
    usage: UsageInfo
    cost_usd: Optional[float] = None


class ConversationInfo(BaseModel):
    conversation_id: str
    document_id: Optional[int] = None
    created_at: str
    message_count: int


class ListConversationsResponse(BaseModel):
    conversations: List[ConversationInfo]
    count: int


class ConversationMessage(BaseModel):
    role: str
    content: str
    created_at: str


class ConversationHistoryResponse(BaseModel):
    conversation_id: str
    messages: List[ConversationMessage]
    count: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    total_documents: int
    total_conversations: int
    simulation_mode: bool
