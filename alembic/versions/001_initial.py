"""Create files and document_chunks tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

- files: uploaded files / linked URLs with their processing state
- document_chunks: chunk vectors, one namespace (file id) per document

Vector index: HNSW with cosine distance (1536 dimensions for
text-embedding-3-small).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create ingestion tables."""
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    # ==========================================================================
    # files - one row per chat source
    # ==========================================================================
    op.create_table('files',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=True),

        sa.Column('name', sa.String(500), nullable=True),
        sa.Column('type', sa.String(20), nullable=False, server_default='unknown'),
        sa.Column('mime_type', sa.String(127), nullable=True),
        sa.Column('url', sa.Text(), nullable=True),

        # Processing state machine: idle -> processing -> completed | failed
        sa.Column('processing_status', sa.String(20), nullable=False, server_default='idle'),
        sa.Column('processing_error', sa.Text(), nullable=True),
        sa.Column('processing_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('indexed_chunks', sa.Integer(), nullable=True),
        sa.Column('full_text', sa.Text(), nullable=True),

        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True, server_default=sa.text('now()')),

        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_files_user_id', 'files', ['user_id'])
    op.create_index('idx_files_processing_status', 'files', ['processing_status'])

    # ==========================================================================
    # document_chunks - embedded chunks, namespace = files.id
    # ==========================================================================
    op.create_table('document_chunks',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('namespace', sa.String(64), nullable=False),
        sa.Column('ordinal', sa.Integer(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )

    # Add vector column using raw SQL (pgvector)
    op.execute("ALTER TABLE document_chunks ADD COLUMN embedding vector(1536) NOT NULL")

    op.create_index('idx_document_chunks_namespace', 'document_chunks', ['namespace'])
    op.create_index(
        'uq_document_chunks_namespace_ordinal', 'document_chunks', ['namespace', 'ordinal'], unique=True
    )

    op.execute("""
        CREATE INDEX idx_document_chunks_embedding
        ON document_chunks
        USING hnsw (embedding vector_cosine_ops)
    """)


def downgrade() -> None:
    """Drop ingestion tables."""
    op.drop_table('document_chunks')
    op.drop_table('files')
