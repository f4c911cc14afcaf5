"""
YouTube helpers: video ID parsing and transcript fetching.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from youtube_transcript_api import (
    CouldNotRetrieveTranscript,
    NoTranscriptFound,
    TranscriptsDisabled,
    VideoUnavailable,
    YouTubeTranscriptApi,
)

from docchat.core.documents.errors import InvalidSourceError, NoTranscriptError

logger = logging.getLogger(__name__)

# watch?v=ID, youtu.be/ID, embed/ID, v/ID, u/x/ID, &v=ID
_VIDEO_ID_PATTERN = re.compile(r"^.*(youtu\.be/|v/|u/\w/|embed/|shorts/|watch\?v=|&v=)([^#&?]*).*")
VIDEO_ID_LENGTH = 11


@dataclass
class TranscriptSegment:
    """One caption line."""
    text: str
    start: float = 0.0


def extract_video_id(url: Optional[str]) -> Optional[str]:
    """Return the 11-character video ID of a YouTube URL, or None."""
    if not url:
        return None
    match = _VIDEO_ID_PATTERN.match(url.strip())
    if match and len(match.group(2)) == VIDEO_ID_LENGTH:
        return match.group(2)
    return None


def is_youtube_url(url: Optional[str]) -> bool:
    """Check if a URL points at YouTube."""
    if not url:
        return False
    return "youtube.com" in url or "youtu.be" in url


def require_video_id(url: Optional[str]) -> str:
    """
    Parse the video ID or fail with a user-facing message.

    Raises:
        InvalidSourceError: If the URL is not a YouTube video URL
    """
    video_id = extract_video_id(url)
    if not video_id or not is_youtube_url(url):
        raise InvalidSourceError("Invalid YouTube URL. Could not extract video ID.")
    return video_id


def _describe_transcript_error(error: Exception) -> str:
    if isinstance(error, TranscriptsDisabled):
        return "captions are disabled for this video"
    if isinstance(error, NoTranscriptFound):
        return "no captions were found for this video"
    if isinstance(error, VideoUnavailable):
        return "the video is unavailable, private or has been removed"
    return str(error).strip().splitlines()[0] if str(error).strip() else type(error).__name__


class TranscriptFetcher:
    """
    Caption-fetch collaborator backed by youtube-transcript-api.

    `languages` is an order of preference, not a filter: when none of them
    is available the first caption track the video offers is used
    (manually created tracks are listed before generated ones).
    """

    def __init__(self, api: Optional[YouTubeTranscriptApi] = None, languages: Optional[List[str]] = None):
        self._api = api
        self.languages = languages or ["en"]

    @property
    def api(self) -> YouTubeTranscriptApi:
        """Lazy load the transcript API client."""
        if self._api is None:
            self._api = YouTubeTranscriptApi()
        return self._api

    def _select_transcript(self, video_id: str, transcripts):
        try:
            return transcripts.find_transcript(self.languages)
        except NoTranscriptFound:
            pass

        for transcript in transcripts:
            logger.info(f"No {'/'.join(self.languages)} captions for {video_id}, using '{transcript.language_code}'")
            return transcript
        raise NoTranscriptFound(video_id, list(self.languages), transcripts)

    def _fetch_sync(self, video_id: str) -> List[TranscriptSegment]:
        transcripts = self.api.list(video_id)
        fetched = self._select_transcript(video_id, transcripts).fetch()
        return [TranscriptSegment(text=snippet.text, start=snippet.start) for snippet in fetched]

    async def fetch_transcript(self, video_id: str) -> List[TranscriptSegment]:
        """
        Fetch the ordered caption segments of a video.

        Raises:
            NoTranscriptError: Captions disabled, video private/missing, or the fetch failed
        """
        logger.info(f"Fetching transcript for YouTube video: {video_id}")
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._fetch_sync, video_id)
        except CouldNotRetrieveTranscript as e:
            reason = _describe_transcript_error(e)
            logger.warning(f"No transcript for {video_id}: {reason}")
            raise NoTranscriptError(f"No transcript available for this YouTube video ({reason}).") from e
        except Exception as e:
            # The library surfaces HTTP/parse failures as assorted exception types
            logger.warning(f"Transcript fetch failed for {video_id}: {e}")
            raise NoTranscriptError(
                f"No transcript available for this YouTube video ({_describe_transcript_error(e)})."
            ) from e


TRANSCRIPT_UNAVAILABLE_MESSAGE = (
    "No transcript available for this video. "
    "The video might not have captions, or they might be disabled."
)


async def check_video_transcript(video_id: str, fetcher: Optional[TranscriptFetcher] = None) -> dict:
    """
    Check whether a video has a usable transcript by fetching it.

    Returns:
        {"available": bool, "error": Optional[str]}
    """
    fetcher = fetcher or TranscriptFetcher()
    try:
        segments = await fetcher.fetch_transcript(video_id)
    except NoTranscriptError:
        return {"available": False, "error": TRANSCRIPT_UNAVAILABLE_MESSAGE}

    if not any(segment.text and segment.text.strip() for segment in segments):
        return {"available": False, "error": "No transcript available for this video"}
    return {"available": True, "error": None}


async def check_transcript_availability(url: str, fetcher: Optional[TranscriptFetcher] = None) -> dict:
    """
    Check a YouTube URL before upload: valid video ID and captions present.

    Returns:
        {"available": bool, "error": Optional[str]}
    """
    video_id = extract_video_id(url)
    if not video_id:
        return {"available": False, "error": "Invalid YouTube URL. Could not extract video ID."}
    return await check_video_transcript(video_id, fetcher)
