"""
YouTube API endpoints

- Check whether a video has a transcript before it is added to a chat
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from docchat.api.auth import verify_api_key
from docchat.api.dependencies import get_shared_clients
from docchat.core.documents.youtube import check_transcript_availability, check_video_transcript
from docchat.core.services import SharedClients

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/youtube", tags=["youtube"])


class TranscriptAvailabilityResponse(BaseModel):
    """Whether captions can be fetched for a video."""
    available: bool
    error: Optional[str] = None


@router.get("/check-transcript", response_model=TranscriptAvailabilityResponse)
async def check_transcript(
    video_id: Optional[str] = Query(None, alias="videoId"),
    url: Optional[str] = Query(None),
    shared: SharedClients = Depends(get_shared_clients),
    _: Optional[str] = Depends(verify_api_key),
):
    """Check transcript availability by video ID or full YouTube URL."""
    if not video_id and not url:
        raise HTTPException(status_code=400, detail="Missing videoId parameter")

    fetcher = shared.extractor.transcript_fetcher
    logger.info(f"Checking transcript availability for {video_id or url}")
    if video_id:
        result = await check_video_transcript(video_id, fetcher)
    else:
        result = await check_transcript_availability(url, fetcher)
    return TranscriptAvailabilityResponse(**result)
