"""
Document ingestion API endpoints

- Trigger ingestion of an uploaded file or video
- Explicitly retry a failed ingestion
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from docchat.api.auth import verify_api_key
from docchat.api.dependencies import get_services
from docchat.core.documents.models import IngestionOutcome
from docchat.core.services import ServiceContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["documents"])


class IngestionResponse(BaseModel):
    """Result of an ingestion request."""
    document_id: str
    status: str
    chunk_count: int = 0
    error: Optional[str] = None
    short_circuited: bool = False
    attempts: Dict[str, int] = {}

    @classmethod
    def from_outcome(cls, outcome: IngestionOutcome) -> "IngestionResponse":
        return cls(
            document_id=outcome.document_id,
            status=outcome.status.value,
            chunk_count=outcome.chunk_count,
            error=outcome.error,
            short_circuited=outcome.short_circuited,
            attempts=dict(outcome.attempts),
        )


@router.post("/{document_id}/ingest", response_model=IngestionResponse)
async def ingest_document(
    document_id: str,
    services: ServiceContainer = Depends(get_services),
    _: Optional[str] = Depends(verify_api_key),
):
    """
    Ingest a document.

    Idempotent: completed documents return immediately, failed documents
    return their stored error (use /retry to re-run).
    """
    outcome = await services.orchestrator.ingest(document_id)
    return IngestionResponse.from_outcome(outcome)


@router.post("/{document_id}/retry", response_model=IngestionResponse)
async def retry_document(
    document_id: str,
    services: ServiceContainer = Depends(get_services),
    _: Optional[str] = Depends(verify_api_key),
):
    """Re-run ingestion for a failed document."""
    logger.info(f"Retry requested for document {document_id}")
    outcome = await services.orchestrator.retry(document_id)
    return IngestionResponse.from_outcome(outcome)
