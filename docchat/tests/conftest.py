"""
Shared fixtures: in-memory stand-ins for every external collaborator.

- FakeRepository: document rows in a dict, records every status write
- FakeStorage: blobs in a dict
- FakeEmbeddingClient: deterministic bag-of-words vectors
- InMemoryVectorIndex: namespace -> records, cosine search, scripted failures
- FakeTranscriptFetcher: scripted caption segments or errors
"""

# Load .env before importing docchat so Settings sees the same environment as the app
from pathlib import Path
from dotenv import load_dotenv

_repo_root = Path(__file__).parent.parent.parent
load_dotenv(_repo_root / ".env")

import math
from dataclasses import replace
from typing import Dict, List, Optional, Sequence
from unittest.mock import patch

import pytest

from docchat.core.documents.chunker import TextChunker
from docchat.core.documents.errors import BlobNotFoundError, VectorStoreError
from docchat.core.documents.extractor import ContentExtractor
from docchat.core.documents.models import DocumentRecord, DocumentType, ProcessingStatus, RetrievalResult
from docchat.core.documents.orchestrator import IngestionOrchestrator
from docchat.core.documents.retrieval import RetrievalAssembler
from docchat.core.documents.storage import BlobStorage
from docchat.core.documents.vector_store import VectorIndex, VectorRecord, VectorStoreGateway
from docchat.core.documents.youtube import TranscriptSegment

EMBEDDING_SIZE = 16


# =============================================================================
# Fakes
# =============================================================================

class FakeRepository:
    """In-memory persistence collaborator."""

    def __init__(self):
        self.documents: Dict[str, DocumentRecord] = {}
        self.status_history: Dict[str, List[ProcessingStatus]] = {}
        self.updates: List[dict] = []

    def add(
        self,
        document_id: str,
        document_type: DocumentType,
        source_location: Optional[str] = None,
        **fields,
    ) -> DocumentRecord:
        record = DocumentRecord(
            id=document_id,
            type=document_type,
            source_location=source_location,
            **fields,
        )
        self.documents[document_id] = record
        self.status_history[document_id] = [record.processing_status]
        return record

    async def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        record = self.documents.get(document_id)
        return replace(record) if record else None

    async def update_document(self, document_id: str, **fields) -> None:
        self.updates.append({"id": document_id, **fields})
        record = self.documents[document_id]
        for name, value in fields.items():
            setattr(record, name, value)
        if "processing_status" in fields:
            self.status_history[document_id].append(fields["processing_status"])


class FakeStorage(BlobStorage):
    """Blob storage backed by a dict."""

    def __init__(self, blobs: Optional[Dict[str, bytes]] = None):
        super().__init__()
        self.blobs = blobs or {}
        self.downloads = 0

    async def download_blob(self, pointer: str) -> bytes:
        self.downloads += 1
        if pointer not in self.blobs:
            raise BlobNotFoundError("Could not find the file in storage.")
        return self.blobs[pointer]


def _bag_of_words(text: str) -> List[float]:
    vector = [0.0] * EMBEDDING_SIZE
    for word in text.lower().split():
        vector[sum(ord(c) for c in word) % EMBEDDING_SIZE] += 1.0
    if not any(vector):
        vector[0] = 1.0
    return vector


class FakeEmbeddingClient:
    """Deterministic embedding client; fails the first `fail_times` calls."""

    def __init__(self, fail_times: int = 0, error: Optional[Exception] = None):
        self.fail_times = fail_times
        self.error = error
        self.batch_calls = 0
        self.embedded_texts: List[str] = []

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.batch_calls += 1
        if self.batch_calls <= self.fail_times:
            raise self.error
        self.embedded_texts.extend(texts)
        return [_bag_of_words(text) for text in texts]

    async def embed_one(self, text: str) -> List[float]:
        return (await self.embed_batch([text]))[0]


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryVectorIndex(VectorIndex):
    """Vector index in a dict; replace() can be scripted to fail."""

    def __init__(self, fail_times: int = 0):
        self.namespaces: Dict[str, List[VectorRecord]] = {}
        self.fail_times = fail_times
        self.replace_calls = 0

    async def count(self, namespace: str) -> int:
        return len(self.namespaces.get(namespace, []))

    async def replace(self, namespace: str, records: Sequence[VectorRecord]) -> None:
        self.replace_calls += 1
        if self.replace_calls <= self.fail_times:
            raise VectorStoreError(f"Upsert failed (attempt {self.replace_calls})")
        self.namespaces[namespace] = list(records)

    async def search(self, namespace: str, vector: List[float], k: int) -> List[RetrievalResult]:
        scored = [
            RetrievalResult(text=r.text, similarity_score=_cosine(vector, r.vector), ordinal=r.ordinal)
            for r in self.namespaces.get(namespace, [])
        ]
        # Deliberately unsorted beyond the cut; the gateway orders results
        return sorted(scored, key=lambda r: r.similarity_score, reverse=True)[:k][::-1]


class FakeTranscriptFetcher:
    """Caption-fetch collaborator returning scripted segments or raising."""

    def __init__(self, segments: Optional[List[TranscriptSegment]] = None, error: Optional[Exception] = None):
        self.segments = segments or []
        self.error = error
        self.calls: List[str] = []

    async def fetch_transcript(self, video_id: str) -> List[TranscriptSegment]:
        self.calls.append(video_id)
        if self.error is not None:
            raise self.error
        return list(self.segments)


class FakePage:
    def __init__(self, text: Optional[str]):
        self._text = text

    def extract_text(self):
        return self._text


class FakePdf:
    """Stand-in for the object pdfplumber.open() returns."""

    def __init__(self, page_texts: List[Optional[str]]):
        self.pages = [FakePage(text) for text in page_texts]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def repository():
    """In-memory document repository."""
    return FakeRepository()


@pytest.fixture
def storage():
    """In-memory blob storage."""
    return FakeStorage()


@pytest.fixture
def embedding_client():
    """Deterministic embedding client."""
    return FakeEmbeddingClient()


@pytest.fixture
def vector_index():
    """In-memory vector index."""
    return InMemoryVectorIndex()


@pytest.fixture
def gateway(vector_index):
    """Gateway over the in-memory index with no retry delay."""
    return VectorStoreGateway(vector_index, max_attempts=3, retry_delay=0)


@pytest.fixture
def transcript_fetcher():
    """Caption fetcher with a short default transcript."""
    return FakeTranscriptFetcher(segments=[
        TranscriptSegment(text="Welcome to the channel.", start=0.0),
        TranscriptSegment(text="Today we talk about vector databases.", start=2.5),
    ])


@pytest.fixture
def extractor(transcript_fetcher):
    """Real extractor with the fake caption fetcher."""
    return ContentExtractor(transcript_fetcher)


@pytest.fixture
def chunker():
    return TextChunker(chunk_size=1000, chunk_overlap=200)


@pytest.fixture
def orchestrator(repository, storage, extractor, chunker, embedding_client, gateway):
    """Orchestrator wired entirely to in-memory collaborators."""
    return IngestionOrchestrator(
        repository=repository,
        storage=storage,
        extractor=extractor,
        chunker=chunker,
        embedding_client=embedding_client,
        gateway=gateway,
        max_attempts=3,
        retry_delay=0,
    )


@pytest.fixture
def assembler(embedding_client, gateway):
    return RetrievalAssembler(embedding_client, gateway, retry_delay=0)


@pytest.fixture
def fake_pdf():
    """Factory for pdfplumber.open() return values."""
    return FakePdf


@pytest.fixture
def make_index():
    """Factory for in-memory vector indexes with scripted failures."""
    return InMemoryVectorIndex


@pytest.fixture
def make_embedding_client():
    """Factory for fake embedding clients with scripted failures."""
    return FakeEmbeddingClient


@pytest.fixture
def make_transcript_fetcher():
    """Factory for fake caption fetchers."""
    return FakeTranscriptFetcher


@pytest.fixture
def hello_pdf(fake_pdf):
    """pdfplumber.open() yields one long page of 'Hello World. ' text."""
    with patch("docchat.core.documents.extractor.pdfplumber.open",
               return_value=fake_pdf(["Hello World. " * 200])) as mocked:
        yield mocked
