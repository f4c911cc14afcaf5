"""
Domain models for document ingestion.

Plain dataclasses and enums shared by the pipeline stages. The ORM rows in
docchat.core.database.models are converted to DocumentRecord at the
repository boundary so the pipeline never touches a Session.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

from docchat.core.documents.errors import InvalidTransitionError


class DocumentType(str, enum.Enum):
    """Kind of content a chat is grounded in."""
    PDF = "pdf"
    DOC = "doc"
    SHEET = "sheet"
    SLIDES = "slides"
    IMAGE = "image"
    YOUTUBE = "youtube"
    WEB = "web"
    URL = "url"
    UNKNOWN = "unknown"

    @classmethod
    def from_value(cls, value: Optional[str]) -> "DocumentType":
        """Parse a stored type, accepting the legacy plural/alias spellings."""
        if not value:
            return cls.UNKNOWN
        normalized = _TYPE_ALIASES.get(value.strip().lower(), value.strip().lower())
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_vectorized(self) -> bool:
        """Whether this type goes through extract -> chunk -> embed -> store."""
        return self in VECTORIZED_TYPES


_TYPE_ALIASES = {
    "docs": "doc",
    "docx": "doc",
    "sheets": "sheet",
    "xlsx": "sheet",
    "pptx": "slides",
    "video": "youtube",
}

VECTORIZED_TYPES = frozenset({
    DocumentType.PDF,
    DocumentType.DOC,
    DocumentType.SHEET,
    DocumentType.SLIDES,
    DocumentType.YOUTUBE,
})


class ProcessingStatus(str, enum.Enum):
    """
    Ingestion lifecycle states.

    idle -> processing -> completed | failed
    failed -> processing only on explicit retry
    """
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def from_value(cls, value: Optional[str]) -> "ProcessingStatus":
        if not value:
            return cls.IDLE
        try:
            return cls(value)
        except ValueError:
            return cls.IDLE


class ProcessingEvent(str, enum.Enum):
    START = "start"            # begin a pipeline run
    SUCCEED = "succeed"        # all chunks stored
    FAIL = "fail"              # a stage failed
    RECONCILE = "reconcile"    # vector store already holds the namespace


_S = ProcessingStatus
_E = ProcessingEvent

# (state, event) -> next state. Anything missing is illegal.
_TRANSITIONS: Dict[Tuple[ProcessingStatus, ProcessingEvent], ProcessingStatus] = {
    (_S.IDLE, _E.START): _S.PROCESSING,
    (_S.IDLE, _E.RECONCILE): _S.COMPLETED,
    (_S.PROCESSING, _E.SUCCEED): _S.COMPLETED,
    (_S.PROCESSING, _E.FAIL): _S.FAILED,
    (_S.PROCESSING, _E.RECONCILE): _S.COMPLETED,
    (_S.COMPLETED, _E.RECONCILE): _S.COMPLETED,
    (_S.FAILED, _E.START): _S.PROCESSING,
}


def transition(
    current: ProcessingStatus,
    event: ProcessingEvent,
    stale: bool = False,
) -> ProcessingStatus:
    """
    Compute the next processing status.

    A START from PROCESSING is only legal when the running attempt is stale
    (its worker died); otherwise two runs would overlap.

    Raises:
        InvalidTransitionError: if the event is not allowed in this state
    """
    if current == _S.PROCESSING and event == _E.START:
        if stale:
            return _S.PROCESSING
        raise InvalidTransitionError("Cannot start ingestion while a fresh attempt is processing")

    next_state = _TRANSITIONS.get((current, event))
    if next_state is None:
        raise InvalidTransitionError(f"Illegal transition: {current.value} --{event.value}-->")
    return next_state


@dataclass
class DocumentRecord:
    """The fields of a persisted file row that ingestion reads and writes."""
    id: str
    type: DocumentType
    source_location: Optional[str] = None
    processing_status: ProcessingStatus = ProcessingStatus.IDLE
    processing_error: Optional[str] = None
    indexed_chunk_count: Optional[int] = None
    extracted_text: Optional[str] = None
    name: Optional[str] = None
    mime_type: Optional[str] = None
    processing_started_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "DocumentRecord":
        """Build from a docchat.core.database.models.File row."""
        return cls(
            id=row.id,
            type=DocumentType.from_value(row.type),
            source_location=row.url,
            processing_status=ProcessingStatus.from_value(row.processing_status),
            processing_error=row.processing_error,
            indexed_chunk_count=row.indexed_chunks,
            extracted_text=row.full_text,
            name=row.name,
            mime_type=row.mime_type,
            processing_started_at=row.processing_started_at,
        )


@dataclass
class Chunk:
    """A bounded slice of a document's text; the unit of embedding."""
    text: str
    source_document_id: str
    ordinal: int
    start_offset: int = 0


@dataclass
class RetrievalResult:
    """One passage returned by a similarity query."""
    text: str
    similarity_score: float
    ordinal: Optional[int] = None


@dataclass
class IngestionOutcome:
    """Result of one ingest() call. Never carries an exception."""
    document_id: str
    status: ProcessingStatus
    chunk_count: int = 0
    error: Optional[str] = None
    short_circuited: bool = False
    attempts: Dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == ProcessingStatus.COMPLETED
