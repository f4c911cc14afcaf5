"""
Vector Store Gateway

Namespace-scoped vector storage:
- namespace_has_vectors: existence check used for idempotent ingestion
- upsert: replace a namespace's vectors (retried on transient failures)
- query_top_k: nearest-neighbour search within one namespace

The backend is a VectorIndex; PgVectorIndex stores vectors in PostgreSQL
with pgvector. Tests plug in an in-memory index.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from docchat.core.database.models import DocumentChunk
from docchat.core.documents.errors import VectorStoreError
from docchat.core.documents.models import Chunk, RetrievalResult
from docchat.core.documents.retry import MAX_RETRIES, RETRY_DELAY_SECONDS, retry_async

logger = logging.getLogger(__name__)


@dataclass
class VectorRecord:
    """A chunk with its embedding, as written to the index."""
    ordinal: int
    text: str
    vector: List[float]


class VectorIndex(ABC):
    """Backend contract for the gateway."""

    @abstractmethod
    async def count(self, namespace: str) -> int:
        """Number of vectors stored under a namespace."""
        pass

    @abstractmethod
    async def replace(self, namespace: str, records: Sequence[VectorRecord]) -> None:
        """Atomically replace every vector of a namespace."""
        pass

    @abstractmethod
    async def search(self, namespace: str, vector: List[float], k: int) -> List[RetrievalResult]:
        """Up to k nearest records in a namespace (any order)."""
        pass


class PgVectorIndex(VectorIndex):
    """
    pgvector-backed index over the document_chunks table.

    Replacing deletes and inserts in one transaction, so re-running ingestion
    for a document never leaves duplicate vectors behind.
    """

    def __init__(self, db: Session):
        self.db = db

    async def count(self, namespace: str) -> int:
        try:
            stmt = select(func.count(DocumentChunk.id)).where(DocumentChunk.namespace == namespace)
            return int(self.db.execute(stmt).scalar() or 0)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise VectorStoreError(f"Vector count failed: {e}") from e

    async def replace(self, namespace: str, records: Sequence[VectorRecord]) -> None:
        try:
            self.db.execute(delete(DocumentChunk).where(DocumentChunk.namespace == namespace))
            self.db.add_all([
                DocumentChunk(
                    namespace=namespace,
                    ordinal=record.ordinal,
                    text=record.text.replace('\x00', ''),
                    embedding=record.vector,
                )
                for record in records
            ])
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise VectorStoreError(f"Vector upsert failed: {e}") from e

    async def search(self, namespace: str, vector: List[float], k: int) -> List[RetrievalResult]:
        try:
            distance = DocumentChunk.embedding.cosine_distance(vector)
            stmt = (
                select(DocumentChunk.text, DocumentChunk.ordinal, distance.label("distance"))
                .where(DocumentChunk.namespace == namespace)
                .order_by(distance)
                .limit(k)
            )
            rows = self.db.execute(stmt).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise VectorStoreError(f"Vector search failed: {e}") from e

        return [
            RetrievalResult(text=row.text, similarity_score=1.0 - float(row.distance), ordinal=row.ordinal)
            for row in rows
        ]


class VectorStoreGateway:
    """
    Gateway over a VectorIndex.

    One instance per process; it holds no per-request state.
    """

    def __init__(
        self,
        index: VectorIndex,
        max_attempts: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
        timeout: Optional[float] = None,
    ):
        self.index = index
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.timeout = timeout

    async def vector_count(self, namespace: str) -> int:
        """
        Number of vectors stored under a namespace.

        A backend failure is reported as 0 so callers fall back to running
        ingestion instead of failing.
        """
        try:
            return await self.index.count(namespace)
        except Exception as e:
            logger.warning(f"Could not check vectors for namespace {namespace}: {e}")
            return 0

    async def namespace_has_vectors(self, namespace: str) -> bool:
        """Check whether a namespace holds at least one vector."""
        return await self.vector_count(namespace) > 0

    async def upsert(self, namespace: str, chunks: Sequence[Chunk], vectors: Sequence[List[float]]) -> None:
        """
        Store vectors for a namespace, replacing any previous ones.

        Transient failures are retried (3 attempts, fixed 1s delay).

        Raises:
            ValueError: chunks and vectors differ in length
            VectorStoreError: The backend kept failing
        """
        if len(chunks) != len(vectors):
            raise ValueError(f"Got {len(vectors)} vectors for {len(chunks)} chunks")

        records = [
            VectorRecord(ordinal=chunk.ordinal, text=chunk.text, vector=list(vector))
            for chunk, vector in zip(chunks, vectors)
        ]

        await retry_async(
            lambda: self.index.replace(namespace, records),
            operation_name=f"Vector upsert for {namespace}",
            max_attempts=self.max_attempts,
            delay=self.retry_delay,
            timeout=self.timeout,
        )
        logger.info(f"Stored {len(records)} vectors in namespace {namespace}")

    async def query_top_k(self, namespace: str, query_vector: List[float], k: int) -> List[RetrievalResult]:
        """Nearest-neighbour search in one namespace, most similar first."""
        results = await self.index.search(namespace, query_vector, k)
        return sorted(results, key=lambda r: r.similarity_score, reverse=True)[:k]
