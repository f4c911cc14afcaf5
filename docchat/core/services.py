"""
Service Composition

Two lifetimes:
- SharedClients: created once per process (API clients, storage, locks)
- ServiceContainer: one per unit of work, bound to a database session

Nothing in the pipeline reaches for module-level singletons; everything is
wired here and passed in.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from docchat.core.ai.providers.base import BaseChatProvider
from docchat.core.ai.providers.openai import OpenAIChatProvider
from docchat.core.chat import ChatService
from docchat.core.config import Settings, get_settings
from docchat.core.documents.chunker import TextChunker
from docchat.core.documents.context import ConversationContextBuilder
from docchat.core.documents.embeddings import EmbeddingClient
from docchat.core.documents.extractor import ContentExtractor
from docchat.core.documents.orchestrator import DocumentLocks, IngestionOrchestrator
from docchat.core.documents.repository import DocumentRepository
from docchat.core.documents.retrieval import RetrievalAssembler
from docchat.core.documents.storage import BlobStorage, create_blob_storage
from docchat.core.documents.vector_store import PgVectorIndex, VectorStoreGateway
from docchat.core.documents.youtube import TranscriptFetcher

logger = logging.getLogger(__name__)


@dataclass
class SharedClients:
    """Long-lived collaborators, safe to share between requests."""
    settings: Settings
    storage: BlobStorage
    extractor: ContentExtractor
    chunker: TextChunker
    embedding_client: EmbeddingClient
    chat_provider: Optional[BaseChatProvider] = None
    locks: DocumentLocks = field(default_factory=DocumentLocks)


@dataclass
class ServiceContainer:
    """Services bound to one database session."""
    repository: DocumentRepository
    gateway: VectorStoreGateway
    orchestrator: IngestionOrchestrator
    assembler: RetrievalAssembler
    context_builder: ConversationContextBuilder
    chat: ChatService


def create_shared_clients(settings: Optional[Settings] = None) -> SharedClients:
    """
    Build the process-wide clients from settings.

    Raises:
        ConfigurationError: If blob storage is not configured
    """
    settings = settings or get_settings()

    chat_provider = None
    if settings.openai_api_key:
        chat_provider = OpenAIChatProvider(
            model=settings.openai_chat_model,
            api_key=settings.openai_api_key,
            temperature=settings.chat_temperature,
            max_tokens=settings.chat_max_tokens,
        )
    else:
        logger.warning("OPENAI_API_KEY not set: embeddings and chat will fail until configured")

    return SharedClients(
        settings=settings,
        storage=create_blob_storage(settings),
        extractor=ContentExtractor(TranscriptFetcher()),
        chunker=TextChunker(chunk_size=settings.chunk_size, chunk_overlap=settings.chunk_overlap),
        embedding_client=EmbeddingClient(
            api_key=settings.openai_api_key,
            model=settings.openai_embedding_model,
            dimensions=settings.embedding_dimensions,
        ),
        chat_provider=chat_provider,
    )


def build_services(shared: SharedClients, db: Session) -> ServiceContainer:
    """Wire the pipeline for one database session."""
    settings = shared.settings
    timeout = settings.external_call_timeout_seconds

    repository = DocumentRepository(db)
    gateway = VectorStoreGateway(
        PgVectorIndex(db),
        max_attempts=settings.max_retries,
        retry_delay=settings.retry_delay_seconds,
        timeout=timeout,
    )
    orchestrator = IngestionOrchestrator(
        repository=repository,
        storage=shared.storage,
        extractor=shared.extractor,
        chunker=shared.chunker,
        embedding_client=shared.embedding_client,
        gateway=gateway,
        max_attempts=settings.max_retries,
        retry_delay=settings.retry_delay_seconds,
        call_timeout=timeout,
        stale_after_seconds=settings.processing_stale_after_seconds,
        locks=shared.locks,
    )
    assembler = RetrievalAssembler(
        shared.embedding_client,
        gateway,
        default_k=settings.retrieval_top_k,
        max_attempts=settings.max_retries,
        retry_delay=settings.retry_delay_seconds,
        call_timeout=timeout,
    )
    context_builder = ConversationContextBuilder(orchestrator, assembler, shared.storage)

    return ServiceContainer(
        repository=repository,
        gateway=gateway,
        orchestrator=orchestrator,
        assembler=assembler,
        context_builder=context_builder,
        chat=ChatService(repository, context_builder, shared.chat_provider),
    )
