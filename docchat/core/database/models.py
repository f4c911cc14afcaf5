"""
SQLAlchemy Database Models

Stores:
- Uploaded files and URLs (one row per chat source) with their processing state
- Chunk vectors for semantic retrieval, one namespace per file

The files table is owned by the hosting application; the ingestion core only
writes the processing_* fields, indexed_chunks and full_text.
"""
import uuid

from sqlalchemy import Column, String, Integer, DateTime, Text, Index
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
from pgvector.sqlalchemy import Vector

Base = declarative_base()

# Must match the embedding model (text-embedding-3-small)
EMBEDDING_DIMENSIONS = 1536


def _new_id() -> str:
    return str(uuid.uuid4())


class File(Base):
    """
    An uploaded file or linked URL that a chat is grounded in.

    processing_status lifecycle:
        idle -> processing -> completed | failed
    """
    __tablename__ = "files"

    id = Column(String(64), primary_key=True, default=_new_id)
    user_id = Column(String(64), index=True)

    name = Column(String(500))
    type = Column(String(20), nullable=False, default="unknown")  # pdf, doc, sheet, slides, image, youtube, web, url
    mime_type = Column(String(127))
    url = Column(Text)  # Storage pointer or external URL, depending on type

    # Processing state
    processing_status = Column(String(20), nullable=False, default="idle")
    processing_error = Column(Text)
    processing_started_at = Column(DateTime(timezone=True))
    indexed_chunks = Column(Integer)
    full_text = Column(Text)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_files_processing_status', 'processing_status'),
    )

    def __repr__(self) -> str:
        return f"<File(id={self.id}, type={self.type}, status={self.processing_status})>"


class DocumentChunk(Base):
    """
    One embedded chunk of a file's extracted text.

    namespace is the owning file id; every query is scoped to exactly one
    namespace so retrieval never crosses documents.
    """
    __tablename__ = "document_chunks"

    id = Column(String(64), primary_key=True, default=_new_id)
    namespace = Column(String(64), nullable=False)
    ordinal = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    embedding = Column(Vector(EMBEDDING_DIMENSIONS), nullable=False)
    created_at = Column(DateTime(timezone=True), default=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_document_chunks_namespace', 'namespace'),
        Index('uq_document_chunks_namespace_ordinal', 'namespace', 'ordinal', unique=True),
        # HNSW cosine index is created by the migration
    )

    def __repr__(self) -> str:
        return f"<DocumentChunk(namespace={self.namespace}, ordinal={self.ordinal})>"
