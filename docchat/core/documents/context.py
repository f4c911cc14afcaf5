"""
Conversation Context Builder

Decides, per chat message, what the conversational model gets to see:

- image:                    the image bytes (multimodal input)
- web, url, youtube w/o ID: the URL itself
- pdf, doc, sheet, slides,
  youtube:                  passages retrieved for the message (ingesting
                            first if the document is still idle)
- unknown with cached text: the cached text inline

Failures never escape: they become an ERROR context whose text starts with
DOCUMENT_ERROR_PREFIX or YOUTUBE_ERROR_PREFIX. The chat UI matches on these
prefixes to render its error affordance, so they must not change. A document
that another run is still ingesting yields a PENDING context instead, whose
text carries no error prefix.
"""

import enum
import logging
import mimetypes
from dataclasses import dataclass
from typing import Optional

from docchat.core.documents.models import DocumentRecord, DocumentType, ProcessingStatus
from docchat.core.documents.orchestrator import (
    DEFAULT_FAILURE_MESSAGE,
    STILL_PROCESSING_MESSAGE,
    IngestionOrchestrator,
)
from docchat.core.documents.retrieval import RetrievalAssembler
from docchat.core.documents.storage import BlobStorage
from docchat.core.documents.youtube import extract_video_id

logger = logging.getLogger(__name__)

DOCUMENT_ERROR_PREFIX = "I couldn't process this document: "
YOUTUBE_ERROR_PREFIX = "I couldn't process this YouTube video: "
IMAGE_ACCESS_ERROR = "I couldn't access the image file. Please try uploading the image again."

DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"


class ContentKind(str, enum.Enum):
    """How a document's content reaches the model."""
    RETRIEVE_AT_QUERY_TIME = "retrieve-at-query-time"
    INLINE_CONTENT = "inline-content"
    IMAGE = "image"
    URL = "url"
    PENDING = "pending"
    ERROR = "error"
    NONE = "none"


@dataclass
class ContentResolution:
    kind: ContentKind
    text: Optional[str] = None
    image_bytes: Optional[bytes] = None
    mime_type: Optional[str] = None
    url: Optional[str] = None


class ContextKind(str, enum.Enum):
    """What a single conversational turn is grounded in."""
    GROUNDED_TEXT = "grounded-text"
    IMAGE = "image"
    URL = "url"
    INLINE_TEXT = "inline-text"
    PENDING = "pending"
    ERROR = "error"
    NONE = "none"


@dataclass
class MessageContext:
    kind: ContextKind
    text: Optional[str] = None
    image_bytes: Optional[bytes] = None
    mime_type: Optional[str] = None
    url: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.kind == ContextKind.ERROR


def error_prefix_for(document_type: DocumentType) -> str:
    """Sentinel prefix for a document type's failure messages."""
    if document_type == DocumentType.YOUTUBE:
        return YOUTUBE_ERROR_PREFIX
    return DOCUMENT_ERROR_PREFIX


def _guess_image_mime_type(document: DocumentRecord) -> str:
    if document.mime_type and document.mime_type.startswith("image/"):
        return document.mime_type
    for candidate in (document.name, document.source_location):
        if candidate:
            guessed, _ = mimetypes.guess_type(candidate)
            if guessed and guessed.startswith("image/"):
                return guessed
    return DEFAULT_IMAGE_MIME_TYPE


class ConversationContextBuilder:
    """Per-message dispatch from a document to model context."""

    def __init__(
        self,
        orchestrator: IngestionOrchestrator,
        assembler: RetrievalAssembler,
        storage: BlobStorage,
    ):
        self.orchestrator = orchestrator
        self.assembler = assembler
        self.storage = storage

    def _error(self, document: DocumentRecord, message: Optional[str]) -> ContentResolution:
        return ContentResolution(
            kind=ContentKind.ERROR,
            text=error_prefix_for(document.type) + (message or DEFAULT_FAILURE_MESSAGE),
        )

    async def resolve_content(self, document: DocumentRecord) -> ContentResolution:
        """
        Work out how this document's content is delivered.

        Ingests idle documents on the way. Never raises.
        """
        try:
            return await self._resolve(document)
        except Exception as e:
            logger.exception(f"Resolving content for {document.id} failed: {e}")
            return self._error(document, str(e) or None)

    async def _resolve(self, document: DocumentRecord) -> ContentResolution:
        document_type = document.type

        if document_type == DocumentType.IMAGE:
            try:
                image_bytes = await self.storage.download_blob(document.source_location)
            except Exception as e:
                logger.warning(f"Could not download image {document.id}: {e}")
                return ContentResolution(kind=ContentKind.ERROR, text=IMAGE_ACCESS_ERROR)
            return ContentResolution(
                kind=ContentKind.IMAGE,
                image_bytes=image_bytes,
                mime_type=_guess_image_mime_type(document),
            )

        if document_type in (DocumentType.WEB, DocumentType.URL) or (
            document_type == DocumentType.YOUTUBE and not extract_video_id(document.source_location)
        ):
            if not document.source_location:
                return ContentResolution(kind=ContentKind.NONE)
            return ContentResolution(kind=ContentKind.URL, url=document.source_location)

        if document_type.is_vectorized:
            if document.processing_status == ProcessingStatus.FAILED:
                return self._error(document, document.processing_error)
            if document.processing_status == ProcessingStatus.COMPLETED:
                return ContentResolution(kind=ContentKind.RETRIEVE_AT_QUERY_TIME)

            outcome = await self.orchestrator.ingest(document.id)
            if outcome.ok:
                return ContentResolution(kind=ContentKind.RETRIEVE_AT_QUERY_TIME)
            if outcome.status == ProcessingStatus.PROCESSING:
                # Another run owns the document; not a failure
                return ContentResolution(kind=ContentKind.PENDING, text=outcome.error or STILL_PROCESSING_MESSAGE)
            return self._error(document, outcome.error)

        if document.extracted_text and document.extracted_text.strip():
            return ContentResolution(kind=ContentKind.INLINE_CONTENT, text=document.extracted_text)
        return ContentResolution(kind=ContentKind.NONE)

    async def build(self, document: DocumentRecord, message: str) -> MessageContext:
        """
        Build the context for one user message. Never raises.

        Args:
            document: The document the chat is about
            message: The user's message (used as the retrieval query)
        """
        resolution = await self.resolve_content(document)

        if resolution.kind == ContentKind.RETRIEVE_AT_QUERY_TIME:
            try:
                text = await self.assembler.retrieve(document.id, message)
            except Exception as e:
                logger.error(f"Retrieval for {document.id} failed: {e}")
                return MessageContext(
                    kind=ContextKind.ERROR,
                    text=error_prefix_for(document.type) + (str(e) or DEFAULT_FAILURE_MESSAGE),
                )
            return MessageContext(kind=ContextKind.GROUNDED_TEXT, text=text)

        if resolution.kind == ContentKind.INLINE_CONTENT:
            return MessageContext(kind=ContextKind.INLINE_TEXT, text=resolution.text)
        if resolution.kind == ContentKind.IMAGE:
            return MessageContext(
                kind=ContextKind.IMAGE,
                image_bytes=resolution.image_bytes,
                mime_type=resolution.mime_type,
            )
        if resolution.kind == ContentKind.URL:
            return MessageContext(kind=ContextKind.URL, url=resolution.url)
        if resolution.kind == ContentKind.PENDING:
            return MessageContext(kind=ContextKind.PENDING, text=resolution.text)
        if resolution.kind == ContentKind.ERROR:
            return MessageContext(kind=ContextKind.ERROR, text=resolution.text)
        return MessageContext(kind=ContextKind.NONE)
