"""
Tests for the HTTP API.

Tests:
- Ingest / retry endpoints
- Chat endpoint
- Transcript availability check
- API key verification
- Health check and unconfigured service
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from docchat.api.auth import verify_api_key
from docchat.api.dependencies import get_services, get_shared_clients
from docchat.api.routes import chat, documents, youtube
from docchat.core.ai.providers.base import ChatResponse, TokenUsage
from docchat.core.chat import ChatService
from docchat.core.config import Settings
from docchat.core.documents.context import YOUTUBE_ERROR_PREFIX, ConversationContextBuilder
from docchat.core.documents.errors import NoTranscriptError
from docchat.core.documents.models import DocumentType, ProcessingStatus
from docchat.core.services import ServiceContainer


def create_test_app():
    """Create test app with the API routers and auth disabled."""
    app = FastAPI()
    app.include_router(documents.router)
    app.include_router(chat.router)
    app.include_router(youtube.router)
    app.dependency_overrides[verify_api_key] = lambda: None
    return app


@pytest.fixture
def provider():
    provider = MagicMock()
    provider.complete = AsyncMock(return_value=ChatResponse(text="It covers Q1.", usage=TokenUsage(1, 1, 2)))
    return provider


@pytest.fixture
def services(repository, gateway, orchestrator, assembler, storage, provider):
    builder = ConversationContextBuilder(orchestrator, assembler, storage)
    return ServiceContainer(
        repository=repository,
        gateway=gateway,
        orchestrator=orchestrator,
        assembler=assembler,
        context_builder=builder,
        chat=ChatService(repository, builder, provider),
    )


@pytest.fixture
def client(services, extractor):
    app = create_test_app()
    app.dependency_overrides[get_services] = lambda: services
    app.dependency_overrides[get_shared_clients] = lambda: SimpleNamespace(extractor=extractor)
    return TestClient(app)


class TestDocumentEndpoints:
    """Tests for /api/documents."""

    def test_ingest(self, client, repository, storage, hello_pdf):
        storage.blobs["file-storage/report.pdf"] = b"%PDF-1.7"
        repository.add("doc-1", DocumentType.PDF, "file-storage/report.pdf")

        response = client.post("/api/documents/doc-1/ingest")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["chunk_count"] >= 2
        assert data["error"] is None
        assert data["attempts"] == {"fetch": 1, "embed": 1}

    def test_ingest_failed_document(self, client, repository):
        repository.add(
            "doc-1", DocumentType.PDF, "file-storage/report.pdf",
            processing_status=ProcessingStatus.FAILED,
            processing_error="The PDF file is empty. Please upload the file again.",
        )

        data = client.post("/api/documents/doc-1/ingest").json()

        assert data["status"] == "failed"
        assert data["error"] == "The PDF file is empty. Please upload the file again."
        assert data["short_circuited"] is True

    def test_retry(self, client, repository, storage, hello_pdf):
        storage.blobs["file-storage/report.pdf"] = b"%PDF-1.7"
        repository.add(
            "doc-1", DocumentType.PDF, "file-storage/report.pdf",
            processing_status=ProcessingStatus.FAILED,
            processing_error="Temporary failure",
        )

        data = client.post("/api/documents/doc-1/retry").json()

        assert data["status"] == "completed"

    def test_unknown_document(self, client):
        data = client.post("/api/documents/missing/ingest").json()

        assert data["status"] == "failed"
        assert data["error"] == "Document not found."


class TestChatEndpoint:
    """Tests for /api/chat."""

    def test_reply(self, client, repository, provider):
        repository.add("note-1", DocumentType.UNKNOWN, None, extracted_text="Q1 notes")

        response = client.post("/api/chat/note-1/messages", json={
            "message": "What is covered?",
            "history": [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello"}],
        })

        assert response.status_code == 200
        assert response.json() == {"reply": "It covers Q1.", "is_error": False, "context_kind": "inline-text"}
        messages = provider.complete.call_args.args[0]
        assert [m.role for m in messages] == ["user", "assistant", "user"]

    def test_error_sentinel(self, client, repository, transcript_fetcher):
        transcript_fetcher.error = NoTranscriptError("No transcript available for this YouTube video.")
        repository.add("vid-1", DocumentType.YOUTUBE, "https://youtu.be/dQw4w9WgXcQ")

        data = client.post("/api/chat/vid-1/messages", json={"message": "Summarize"}).json()

        assert data["is_error"] is True
        assert data["reply"] == YOUTUBE_ERROR_PREFIX + "No transcript available for this YouTube video."
        assert data["context_kind"] == "error"

    def test_empty_message_rejected(self, client):
        response = client.post("/api/chat/doc-1/messages", json={"message": ""})
        assert response.status_code == 422

    def test_invalid_role_rejected(self, client):
        response = client.post("/api/chat/doc-1/messages", json={
            "message": "Hi", "history": [{"role": "system", "content": "x"}],
        })
        assert response.status_code == 422


class TestTranscriptCheck:
    """Tests for /api/youtube/check-transcript."""

    def test_by_video_id(self, client, transcript_fetcher):
        response = client.get("/api/youtube/check-transcript", params={"videoId": "dQw4w9WgXcQ"})

        assert response.status_code == 200
        assert response.json() == {"available": True, "error": None}
        assert transcript_fetcher.calls == ["dQw4w9WgXcQ"]

    def test_by_url_without_captions(self, client, transcript_fetcher):
        transcript_fetcher.error = NoTranscriptError("disabled")

        data = client.get(
            "/api/youtube/check-transcript", params={"url": "https://youtu.be/dQw4w9WgXcQ"}
        ).json()

        assert data["available"] is False
        assert "No transcript available" in data["error"]

    def test_invalid_url(self, client):
        data = client.get("/api/youtube/check-transcript", params={"url": "https://example.com"}).json()

        assert data == {"available": False, "error": "Invalid YouTube URL. Could not extract video ID."}

    def test_missing_parameters(self, client):
        response = client.get("/api/youtube/check-transcript")

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing videoId parameter"


class TestApiKey:
    """Tests for X-API-Key verification."""

    @pytest.fixture
    def secured_client(self, services):
        app = FastAPI()
        app.include_router(documents.router)
        app.dependency_overrides[get_services] = lambda: services
        with patch("docchat.api.auth.get_settings", return_value=Settings(api_key="s3cret")):
            yield TestClient(app)

    def test_missing_key(self, secured_client):
        assert secured_client.post("/api/documents/doc-1/ingest").status_code == 401

    def test_wrong_key(self, secured_client):
        response = secured_client.post("/api/documents/doc-1/ingest", headers={"X-API-Key": "nope"})
        assert response.status_code == 403

    def test_correct_key(self, secured_client):
        response = secured_client.post("/api/documents/doc-1/ingest", headers={"X-API-Key": "s3cret"})
        assert response.status_code == 200

    def test_no_key_configured(self, services, repository):
        repository.add("doc-1", DocumentType.PDF, "file-storage/report.pdf")
        app = FastAPI()
        app.include_router(documents.router)
        app.dependency_overrides[get_services] = lambda: services
        with patch("docchat.api.auth.get_settings", return_value=Settings(api_key=None)):
            response = TestClient(app).post("/api/documents/doc-1/ingest", headers={"X-API-Key": "anything"})

        assert response.status_code == 500
        assert response.json()["detail"] == "API_KEY not configured on server"
        assert repository.updates == []


class TestApp:
    """Tests for the assembled application."""

    def test_health_and_unconfigured_service(self):
        from docchat.api.main import app

        app.state.shared_clients = None
        client = TestClient(app)

        health = client.get("/health").json()
        assert health["status"] == "healthy"
        assert health["configured"] is False

        response = client.get("/api/youtube/check-transcript", params={"videoId": "dQw4w9WgXcQ"})
        assert response.status_code == 503
