"""
Ingestion Orchestrator

Drives one document from idle to completed/failed:

    extract -> chunk -> embed -> store

Every status change is written (and committed) before the next step runs,
so anyone reading the row sees the state of the in-flight run. ingest()
never raises; failures end up in processing_error and in the returned
IngestionOutcome.

Short-circuits:
- failed: the stored error is returned until retry() is called
- completed, or vectors already stored: nothing to do (status reconciled)
- processing and not stale: another run owns the document
"""

import asyncio
import logging
import weakref
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Optional, TypeVar

from docchat.core.documents.chunker import TextChunker
from docchat.core.documents.embeddings import EmbeddingClient
from docchat.core.documents.errors import (
    DocChatError,
    ExtractionError,
    UnsupportedTypeError,
)
from docchat.core.documents.extractor import ContentExtractor
from docchat.core.documents.models import (
    DocumentRecord,
    DocumentType,
    IngestionOutcome,
    ProcessingEvent,
    ProcessingStatus,
    transition,
)
from docchat.core.documents.repository import DocumentRepository
from docchat.core.documents.retry import MAX_RETRIES, RETRY_DELAY_SECONDS, retry_async
from docchat.core.documents.storage import BlobStorage
from docchat.core.documents.vector_store import VectorStoreGateway

logger = logging.getLogger(__name__)

T = TypeVar("T")

DOCUMENT_NOT_FOUND_MESSAGE = "Document not found."
STILL_PROCESSING_MESSAGE = "This document is still being processed. Please try again in a moment."
DEFAULT_FAILURE_MESSAGE = "Processing failed for an unknown reason. Please try again."
STALE_AFTER_SECONDS = 900


class DocumentLocks:
    """
    Per-document asyncio locks, shared by every orchestrator in the process.

    Entries disappear once no run holds or waits for the lock.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, document_id: str) -> asyncio.Lock:
        lock = self._locks.get(document_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[document_id] = lock
        return lock


class IngestionOrchestrator:
    """
    State machine around the ingestion pipeline.

    Runs for the same document are serialized by a per-document lock; runs
    for different documents proceed independently.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        storage: BlobStorage,
        extractor: ContentExtractor,
        chunker: TextChunker,
        embedding_client: EmbeddingClient,
        gateway: VectorStoreGateway,
        max_attempts: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
        call_timeout: Optional[float] = None,
        stale_after_seconds: int = STALE_AFTER_SECONDS,
        locks: Optional[DocumentLocks] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            repository: Reads/writes the document row
            storage: Downloads uploaded file content
            extractor: Turns content into text
            chunker: Splits text into chunks
            embedding_client: Embeds chunks
            gateway: Stores vectors
            max_attempts: Attempts per external call (fetch, embed)
            retry_delay: Seconds between attempts
            call_timeout: Per-attempt deadline in seconds (None = no deadline)
            stale_after_seconds: Age after which a processing row is re-attempted
            locks: Lock registry shared across orchestrators (default: private)
        """
        self.repository = repository
        self.storage = storage
        self.extractor = extractor
        self.chunker = chunker
        self.embedding_client = embedding_client
        self.gateway = gateway
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.call_timeout = call_timeout
        self.stale_after = timedelta(seconds=stale_after_seconds)
        self.locks = locks or DocumentLocks()

    # =========================================================================
    # Public API
    # =========================================================================

    async def ingest(self, document_id: str) -> IngestionOutcome:
        """
        Make a document searchable, or report why it cannot be.

        A failed document is not re-processed; its stored error is returned.
        """
        return await self._guarded(document_id, explicit_retry=False)

    async def retry(self, document_id: str) -> IngestionOutcome:
        """Re-run ingestion for a failed document (explicit user action)."""
        return await self._guarded(document_id, explicit_retry=True)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _guarded(self, document_id: str, explicit_retry: bool) -> IngestionOutcome:
        async with self.locks.lock_for(document_id):
            try:
                # Re-read under the lock: a previous holder may have finished
                document = await self.repository.get_document(document_id)
                if document is None:
                    logger.warning(f"Ingestion requested for unknown document {document_id}")
                    return IngestionOutcome(
                        document_id=document_id,
                        status=ProcessingStatus.FAILED,
                        error=DOCUMENT_NOT_FOUND_MESSAGE,
                    )
                return await self._ingest_document(document, explicit_retry)
            except Exception as e:
                logger.exception(f"Ingestion of {document_id} failed unexpectedly: {e}")
                return IngestionOutcome(
                    document_id=document_id,
                    status=ProcessingStatus.FAILED,
                    error=_failure_message(e),
                )

    def _is_stale(self, document: DocumentRecord) -> bool:
        started = document.processing_started_at
        if started is None:
            return True
        if started.tzinfo is None:
            started = started.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) - started > self.stale_after

    async def _ingest_document(self, document: DocumentRecord, explicit_retry: bool) -> IngestionOutcome:
        status = document.processing_status

        if status == ProcessingStatus.FAILED and not explicit_retry:
            logger.info(f"Document {document.id} previously failed; returning stored error")
            return IngestionOutcome(
                document_id=document.id,
                status=ProcessingStatus.FAILED,
                error=document.processing_error or DEFAULT_FAILURE_MESSAGE,
                short_circuited=True,
            )

        if status == ProcessingStatus.COMPLETED:
            return IngestionOutcome(
                document_id=document.id,
                status=ProcessingStatus.COMPLETED,
                chunk_count=document.indexed_chunk_count or 0,
                short_circuited=True,
            )

        stale = False
        if status == ProcessingStatus.PROCESSING:
            stale = self._is_stale(document)
            if not stale:
                logger.info(f"Document {document.id} is being processed by another worker")
                return IngestionOutcome(
                    document_id=document.id,
                    status=ProcessingStatus.PROCESSING,
                    error=STILL_PROCESSING_MESSAGE,
                    short_circuited=True,
                )
            logger.warning(f"Document {document.id} stuck in processing since "
                           f"{document.processing_started_at}; re-attempting")

        if status != ProcessingStatus.FAILED:
            stored = await self.gateway.vector_count(document.id)
            if stored > 0:
                return await self._reconcile(document, stored)

        return await self._run_pipeline(document, stale)

    async def _reconcile(self, document: DocumentRecord, stored: int) -> IngestionOutcome:
        """Vectors exist but the row disagrees: trust the vector store."""
        new_status = transition(document.processing_status, ProcessingEvent.RECONCILE)
        logger.info(f"Reconciling document {document.id}: {stored} vectors already stored, "
                    f"{document.processing_status.value} -> {new_status.value}")
        await self.repository.update_document(
            document.id,
            processing_status=new_status,
            processing_error=None,
            indexed_chunk_count=stored,
        )
        return IngestionOutcome(
            document_id=document.id,
            status=new_status,
            chunk_count=stored,
            short_circuited=True,
        )

    async def _run_pipeline(self, document: DocumentRecord, stale: bool) -> IngestionOutcome:
        status = transition(document.processing_status, ProcessingEvent.START, stale=stale)
        await self.repository.update_document(
            document.id,
            processing_status=status,
            processing_error=None,
            processing_started_at=datetime.now(timezone.utc),
        )
        logger.info(f"Processing document {document.id} ({document.type.value})")

        attempts: Dict[str, int] = {}
        try:
            return await self._process(document, status, attempts)
        except Exception as e:
            # Terminal status write failed
            message = _failure_message(e)
            logger.exception(f"Recording the outcome of {document.id} failed: {message}")
            await self._record_failure(document.id, message)
            return IngestionOutcome(
                document_id=document.id,
                status=ProcessingStatus.FAILED,
                error=message,
                attempts=attempts,
            )

    async def _process(
        self,
        document: DocumentRecord,
        status: ProcessingStatus,
        attempts: Dict[str, int],
    ) -> IngestionOutcome:
        try:
            text = await self._extract_text(document, attempts)
            chunks = self.chunker.split(text, document.id)
            if not chunks:
                raise ExtractionError("The document does not contain any text to index.")
            logger.info(f"Document {document.id}: {len(text)} characters in {len(chunks)} chunks")

            vectors = await self._with_retry(
                "embed",
                lambda: self.embedding_client.embed_batch([chunk.text for chunk in chunks]),
                f"Embedding {len(chunks)} chunks of {document.id}",
                attempts,
            )
            await self.gateway.upsert(document.id, chunks, vectors)
        except Exception as e:
            message = _failure_message(e)
            status = transition(status, ProcessingEvent.FAIL)
            logger.error(f"Processing document {document.id} failed: {message}")
            await self.repository.update_document(
                document.id,
                processing_status=status,
                processing_error=message,
            )
            return IngestionOutcome(
                document_id=document.id,
                status=status,
                error=message,
                attempts=attempts,
            )

        status = transition(status, ProcessingEvent.SUCCEED)
        await self.repository.update_document(
            document.id,
            processing_status=status,
            processing_error=None,
            indexed_chunk_count=len(chunks),
            extracted_text=text,
        )
        logger.info(f"Document {document.id} completed with {len(chunks)} chunks")
        return IngestionOutcome(
            document_id=document.id,
            status=status,
            chunk_count=len(chunks),
            attempts=attempts,
        )

    async def _record_failure(self, document_id: str, message: str) -> None:
        """Best-effort move of a 'processing' row to 'failed'."""
        try:
            await self.repository.update_document(
                document_id,
                processing_status=ProcessingStatus.FAILED,
                processing_error=message,
            )
        except Exception as e:
            logger.error(f"Could not mark {document_id} as failed; it stays 'processing' until stale: {e}")

    async def _extract_text(self, document: DocumentRecord, attempts: Dict[str, int]) -> str:
        if not document.type.is_vectorized:
            raise UnsupportedTypeError(document.type.value)

        if document.type == DocumentType.YOUTUBE:
            return await self._with_retry(
                "fetch",
                lambda: self.extractor.extract_transcript(document.source_location),
                f"Transcript fetch for {document.id}",
                attempts,
            )

        blob = await self._with_retry(
            "fetch",
            lambda: self.storage.download_blob(document.source_location),
            f"Download of {document.id}",
            attempts,
        )
        return await self.extractor.extract(blob, document.type)

    async def _with_retry(
        self,
        stage: str,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
        attempts: Dict[str, int],
    ) -> T:
        async def counted():
            attempts[stage] = attempts.get(stage, 0) + 1
            return await operation()

        return await retry_async(
            counted,
            operation_name=operation_name,
            max_attempts=self.max_attempts,
            delay=self.retry_delay,
            timeout=self.call_timeout,
        )


def _failure_message(error: BaseException) -> str:
    """User-facing text for a failed run (never a traceback)."""
    if isinstance(error, DocChatError):
        message = str(error).strip()
    else:
        message = f"{type(error).__name__}: {error}".strip()
    return message or DEFAULT_FAILURE_MESSAGE
