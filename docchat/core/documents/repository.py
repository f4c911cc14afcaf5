"""
Document Repository

Persistence collaborator for ingestion: reads a file row and writes back the
processing fields. Every update is committed immediately so concurrent
readers see each status transition as it happens.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from docchat.core.database.models import File
from docchat.core.documents.models import DocumentRecord, DocumentType, ProcessingStatus

logger = logging.getLogger(__name__)

# DocumentRecord attribute -> File column
_FIELD_COLUMNS = {
    "processing_status": "processing_status",
    "processing_error": "processing_error",
    "processing_started_at": "processing_started_at",
    "indexed_chunk_count": "indexed_chunks",
    "extracted_text": "full_text",
    "source_location": "url",
    "mime_type": "mime_type",
    "name": "name",
}


def _sanitize_text(text: Optional[str]) -> Optional[str]:
    """
    Remove null characters that PostgreSQL refuses to store in text columns.

    They show up in badly encoded PDFs and raw byte decodes.
    """
    if text is None:
        return None
    return text.replace('\x00', '')


class DocumentRepository:
    """
    Repository for the file rows ingestion operates on.

    Only the fields listed in _FIELD_COLUMNS can be written; the rest of the
    row belongs to the hosting application.
    """

    def __init__(self, db: Session):
        self.db = db

    async def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        """Get a document by ID, or None if it does not exist."""
        row = self.db.get(File, document_id)
        if row is None:
            return None
        # Another session may have written since we last looked
        self.db.refresh(row)
        return DocumentRecord.from_row(row)

    async def update_document(self, document_id: str, **fields: Any) -> None:
        """
        Persist a partial update and commit it.

        Args:
            document_id: File ID
            **fields: DocumentRecord attribute names and their new values

        Raises:
            ValueError: If a field is not writable
        """
        values: Dict[str, Any] = {}
        for name, value in fields.items():
            column = _FIELD_COLUMNS.get(name)
            if column is None:
                raise ValueError(f"Field '{name}' is not writable by ingestion")
            if isinstance(value, (ProcessingStatus, DocumentType)):
                value = value.value
            if isinstance(value, str):
                value = _sanitize_text(value)
            values[column] = value

        if not values:
            return

        stmt = update(File).where(File.id == document_id).values(**values)
        self.db.execute(stmt)
        self.db.commit()
        logger.debug(f"Updated document {document_id}: {sorted(values)}")

    async def create_document(
        self,
        document_type: str,
        source_location: Optional[str] = None,
        name: Optional[str] = None,
        mime_type: Optional[str] = None,
        user_id: Optional[str] = None,
        document_id: Optional[str] = None,
    ) -> DocumentRecord:
        """
        Create a new file row in the idle state.

        Used by tests and scripts; the hosting application normally creates
        rows on upload.
        """
        row = File(
            type=DocumentType.from_value(document_type).value,
            url=source_location,
            name=name,
            mime_type=mime_type,
            user_id=user_id,
            processing_status=ProcessingStatus.IDLE.value,
        )
        if document_id:
            row.id = document_id
        self.db.add(row)
        self.db.commit()
        logger.info(f"Created document {row.id} ({row.type})")
        return DocumentRecord.from_row(row)

