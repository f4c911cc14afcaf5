"""
Document Ingestion and Retrieval Module

Makes uploaded files and linked videos answerable in chat:
- Content extraction (PDF, Word, spreadsheets, slides, YouTube transcripts)
- Chunking and embedding
- Namespace-per-document vector storage
- Ingestion state machine with retries and idempotent short-circuits
- Retrieval and per-message context assembly
"""

from docchat.core.documents.models import (
    Chunk,
    DocumentRecord,
    DocumentType,
    IngestionOutcome,
    ProcessingStatus,
    RetrievalResult,
)
from docchat.core.documents.repository import DocumentRepository
from docchat.core.documents.orchestrator import IngestionOrchestrator
from docchat.core.documents.retrieval import RetrievalAssembler
from docchat.core.documents.context import (
    ConversationContextBuilder,
    MessageContext,
    DOCUMENT_ERROR_PREFIX,
    YOUTUBE_ERROR_PREFIX,
)

__all__ = [
    "Chunk",
    "DocumentRecord",
    "DocumentType",
    "IngestionOutcome",
    "ProcessingStatus",
    "RetrievalResult",
    "DocumentRepository",
    "IngestionOrchestrator",
    "RetrievalAssembler",
    "ConversationContextBuilder",
    "MessageContext",
    "DOCUMENT_ERROR_PREFIX",
    "YOUTUBE_ERROR_PREFIX",
]
