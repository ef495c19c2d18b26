import json
import logging
import os
import threading
import uuid
from datetime import datetime
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


class DocumentStore:
    """
    In-memory document and conversation registry with JSON persistence.

    Guarantees:
    • thread-safe mutations
    • soft-deleted documents are invisible to readers
    • persistence failures are logged, never raised to the request
    """

    def __init__(self, path: Optional[str] = "storage/documents.json"):

        self._path = path
        self._lock = threading.Lock()

        self._documents: Dict[int, dict] = {}
        self._conversations: Dict[str, dict] = {}
        self._next_id = 1

        self._load()

    # ============================================================
    # PERSISTENCE
    # ============================================================

    def _load(self):

        if not self._path or not os.path.exists(self._path):
            logger.info("Document store file not found. Starting fresh.")
            return

        try:

            with open(self._path, "r") as f:
                data = json.load(f)

            self._documents = {int(k): v for k, v in data.get("documents", {}).items()}
            self._conversations = data.get("conversations", {})
            self._next_id = max(self._documents, default=0) + 1

            logger.info(
                "Document store loaded",
                extra={
                    "documents": len(self._documents),
                    "conversations": len(self._conversations),
                },
            )

        except (OSError, ValueError) as e:

            logger.error(
                "Document store load failed",
                extra={"error": str(e)},
            )

    def _save(self):

        if not self._path:
            return

        try:

            directory = os.path.dirname(self._path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            with open(self._path, "w") as f:
                json.dump(
                    {
                        "documents": self._documents,
                        "conversations": self._conversations,
                    },
                    f,
                )

        except OSError as e:

            logger.error(
                "Document store save failed",
                extra={"error": str(e)},
            )

    # ============================================================
    # DOCUMENTS
    # ============================================================

    def create_document(self, filename: str, original_name: str, size_bytes: int, text: str) -> int:

        with self._lock:

            doc_id = self._next_id
            self._next_id += 1

            self._documents[doc_id] = {
                "id": doc_id,
                "filename": filename,
                "original_name": original_name,
                "size_bytes": size_bytes,
                "text_content": text,
                "summary": None,
                "key_points": None,
                "processing_status": STATUS_PENDING,
                "created_at": datetime.utcnow().isoformat(),
                "deleted": False,
            }

            self._save()

        logger.info("Document stored", extra={"document_id": doc_id})

        return doc_id

    def get_document(self, doc_id: int) -> Optional[dict]:

        with self._lock:

            doc = self._documents.get(doc_id)

            if doc is None or doc["deleted"]:
                return None

            return dict(doc)

    def list_documents(self) -> List[dict]:
        with self._lock:
            return [dict(d) for d in self._documents.values() if not d["deleted"]]

    def update_status(self, doc_id: int, status: str):

        with self._lock:
            if doc_id in self._documents:
                self._documents[doc_id]["processing_status"] = status
                self._save()

    def update_analysis(self, doc_id: int, summary: str, key_points: List[str]):

        with self._lock:
            if doc_id in self._documents:
                self._documents[doc_id].update(
                    summary=summary,
                    key_points=key_points,
                    processing_status=STATUS_COMPLETED,
                )
                self._save()

    def soft_delete(self, doc_id: int) -> bool:

        with self._lock:

            doc = self._documents.get(doc_id)

            if doc is None or doc["deleted"]:
                return False

            doc["deleted"] = True
            self._save()

        return True

    # ============================================================
    # CONVERSATIONS
    # ============================================================

    def create_conversation(self, prefix: str, document_id: Optional[int] = None) -> str:

        conversation_id = f"{prefix}_{uuid.uuid4().hex[:12]}"

        with self._lock:
            self._conversations[conversation_id] = {
                "conversation_id": conversation_id,
                "document_id": document_id,
                "created_at": datetime.utcnow().isoformat(),
                "messages": [],
            }
            self._save()

        return conversation_id

    def ensure_conversation(self, conversation_id: str, document_id: Optional[int] = None):

        with self._lock:
            if conversation_id not in self._conversations:
                self._conversations[conversation_id] = {
                    "conversation_id": conversation_id,
                    "document_id": document_id,
                    "created_at": datetime.utcnow().isoformat(),
                    "messages": [],
                }
                self._save()

    def add_message(self, conversation_id: str, role: str, content: str):

        with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                raise KeyError(conversation_id)
            conversation["messages"].append(
                {
                    "role": role,
                    "content": content,
                    "created_at": datetime.utcnow().isoformat(),
                }
            )
            self._save()

    def get_messages(self, conversation_id: str, limit: int = 50) -> List[dict]:

        with self._lock:

            conversation = self._conversations.get(conversation_id)

            if conversation is None:
                return []

            return [dict(m) for m in conversation["messages"][-limit:]]

    def list_conversations(self, document_id: Optional[int] = None, limit: int = 20) -> List[dict]:

        with self._lock:
            items = [
                {
                    "conversation_id": c["conversation_id"],
                    "document_id": c["document_id"],
                    "created_at": c["created_at"],
                    "message_count": len(c["messages"]),
                }
                for c in self._conversations.values()
                if document_id is None or c["document_id"] == document_id
            ]

        items.sort(key=lambda c: c["created_at"], reverse=True)

        return items[:limit]

    def find_cached_answer(self, document_id: int, question: str) -> Optional[dict]:
        """Earlier answer to the same question (case-insensitive) for this document."""

        wanted = question.strip().lower()

        with self._lock:

            for conversation in self._conversations.values():

                if conversation["document_id"] != document_id:
                    continue

                messages = conversation["messages"]

                for i in range(len(messages) - 1):
                    if (
                        messages[i]["role"] == "user"
                        and messages[i]["content"].strip().lower() == wanted
                        and messages[i + 1]["role"] == "assistant"
                    ):
                        return {
                            "answer": messages[i + 1]["content"],
                            "conversation_id": conversation["conversation_id"],
                        }

        return None

    # ============================================================
    # STATS
    # ============================================================

    def get_stats(self) -> Dict[str, int]:

        # Lock is not reentrant, so count inline instead of via list_documents
        with self._lock:
            return {
                "total_documents": sum(
                    1 for d in self._documents.values() if not d["deleted"]
                ),
                "total_conversations": len(self._conversations),
            }
