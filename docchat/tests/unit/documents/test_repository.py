"""
Tests for DocumentRepository against an in-memory SQLite database.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from docchat.core.database.models import File
from docchat.core.documents.models import DocumentType, ProcessingStatus
from docchat.core.documents.repository import DocumentRepository


@pytest.fixture
def db_session():
    """Session on a fresh in-memory database holding only the files table."""
    engine = create_engine("sqlite://")
    File.__table__.create(engine)
    session = sessionmaker(bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def repo(db_session):
    return DocumentRepository(db_session)


class TestDocumentRepository:
    """Tests for reading and writing file rows."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, repo):
        created = await repo.create_document("docx", "user-1/notes.docx", name="notes.docx", document_id="doc-1")

        document = await repo.get_document("doc-1")

        assert created.id == "doc-1"
        assert document.type == DocumentType.DOC
        assert document.source_location == "user-1/notes.docx"
        assert document.processing_status == ProcessingStatus.IDLE
        assert document.indexed_chunk_count is None

    @pytest.mark.asyncio
    async def test_generated_id(self, repo):
        created = await repo.create_document("pdf")
        assert created.id
        assert (await repo.get_document(created.id)).type == DocumentType.PDF

    @pytest.mark.asyncio
    async def test_get_missing(self, repo):
        assert await repo.get_document("does-not-exist") is None

    @pytest.mark.asyncio
    async def test_update_processing_fields(self, repo, db_session):
        await repo.create_document("pdf", "a.pdf", document_id="doc-1")

        await repo.update_document(
            "doc-1",
            processing_status=ProcessingStatus.COMPLETED,
            processing_error=None,
            indexed_chunk_count=4,
            extracted_text="Full text",
        )

        row = db_session.get(File, "doc-1")
        assert row.processing_status == "completed"
        assert row.indexed_chunks == 4
        assert row.full_text == "Full text"

        document = await repo.get_document("doc-1")
        assert document.processing_status == ProcessingStatus.COMPLETED
        assert document.indexed_chunk_count == 4

    @pytest.mark.asyncio
    async def test_null_characters_removed(self, repo):
        await repo.create_document("pdf", "a.pdf", document_id="doc-1")

        await repo.update_document("doc-1", extracted_text="bro\x00ken", processing_error="x\x00y")

        document = await repo.get_document("doc-1")
        assert document.extracted_text == "broken"
        assert document.processing_error == "xy"

    @pytest.mark.asyncio
    async def test_unwritable_field(self, repo):
        await repo.create_document("pdf", "a.pdf", document_id="doc-1")

        with pytest.raises(ValueError, match="user_id"):
            await repo.update_document("doc-1", user_id="someone-else")

    @pytest.mark.asyncio
    async def test_unknown_stored_type(self, repo, db_session):
        db_session.add(File(id="doc-2", type="spreadsheet-v0", processing_status="bogus"))
        db_session.commit()

        document = await repo.get_document("doc-2")

        assert document.type == DocumentType.UNKNOWN
        assert document.processing_status == ProcessingStatus.IDLE
