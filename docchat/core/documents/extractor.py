"""
Content Extractor

Type-specific raw-text extraction:
- PDF (pdfplumber)
- Word documents (python-docx, raw byte decode fallback)
- Spreadsheets (openpyxl)
- Slide decks (python-pptx, raw byte decode fallback)
- YouTube captions (youtube-transcript-api)

Every "no usable text" condition raises an ExtractionError with a message
that tells the user what is wrong with *their* file; those messages end up
verbatim in the chat.
"""

import asyncio
import io
import logging
import re
import warnings
from typing import Callable, List, Optional, Union

import openpyxl
import pdfplumber
from docx import Document as DocxDocument
from pptx import Presentation

from docchat.core.documents.errors import ExtractionError, NoTranscriptError, UnsupportedTypeError
from docchat.core.documents.models import DocumentType
from docchat.core.documents.youtube import TranscriptFetcher, require_video_id

logger = logging.getLogger(__name__)

# Below this many characters an Office document is treated as unreadable
MIN_TEXT_LENGTH = 50

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufffd]")
_TAG_LIKE = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")
_ALPHANUMERIC = re.compile(r"[A-Za-z0-9]")


# =============================================================================
# Format parsers (blocking, run in an executor)
# =============================================================================

def _parse_pdf(data: bytes) -> List[str]:
    """Return the text of every page (empty string for pages without text)."""
    pages = []
    with warnings.catch_warnings():
        warnings.filterwarnings('ignore')
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page in pdf.pages:
                pages.append(page.extract_text() or "")
    return pages


def _parse_docx(data: bytes) -> str:
    doc = DocxDocument(io.BytesIO(data))
    parts = [p.text for p in doc.paragraphs if p.text and p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text and cell.text.strip()]
            if cells:
                parts.append(' | '.join(cells))
    return '\n'.join(parts)


def _parse_xlsx(data: bytes) -> str:
    wb = openpyxl.load_workbook(io.BytesIO(data), data_only=True, read_only=True)
    try:
        rows = []
        for sheet in wb.worksheets:
            for row in sheet.iter_rows(values_only=True):
                cells = [str(value) for value in row if value is not None and str(value) != ""]
                if cells:
                    rows.append(' | '.join(cells))
        return '\n'.join(rows)
    finally:
        wb.close()


def _parse_pptx(data: bytes) -> str:
    prs = Presentation(io.BytesIO(data))
    text_parts = []
    for i, slide in enumerate(prs.slides, 1):
        slide_text = []
        for shape in slide.shapes:
            if getattr(shape, 'has_text_frame', False) and shape.text_frame.text.strip():
                slide_text.append(shape.text_frame.text.strip())
        if slide_text:
            text_parts.append(f"Slide {i}:\n" + '\n'.join(slide_text))
    return '\n\n'.join(text_parts)


def decode_document_bytes(data: bytes) -> str:
    """
    Best-effort text from a binary Word document.

    Decodes the raw bytes, drops control characters and collapses whitespace.
    """
    text = data.decode('utf-8', errors='ignore')
    text = _CONTROL_CHARS.sub(' ', text)
    return _WHITESPACE.sub(' ', text).strip()


def decode_slide_bytes(data: bytes) -> str:
    """
    Best-effort text from a slide deck.

    Drops control characters and tag-like markup, keeps lines with at least
    one letter or digit.
    """
    text = data.decode('utf-8', errors='ignore')
    text = _CONTROL_CHARS.sub('\n', text)
    text = _TAG_LIKE.sub(' ', text)
    lines = []
    for line in text.splitlines():
        line = _WHITESPACE.sub(' ', line).strip()
        if line and _ALPHANUMERIC.search(line):
            lines.append(line)
    return '\n'.join(lines)


# =============================================================================
# Extractor
# =============================================================================

class ContentExtractor:
    """
    Turns a blob (or a video URL) into plain text.

    Parsing libraries are synchronous, so they run in the default executor to
    keep the event loop free.
    """

    def __init__(self, transcript_fetcher: Optional[TranscriptFetcher] = None):
        self.transcript_fetcher = transcript_fetcher or TranscriptFetcher()

    async def extract(self, blob: bytes, declared_type: Union[DocumentType, str]) -> str:
        """
        Extract plain text from file content.

        Args:
            blob: Raw file bytes
            declared_type: Document type stored on the file row

        Returns:
            Extracted text

        Raises:
            UnsupportedTypeError: No extractor for this type
            ExtractionError: The file has no usable text
        """
        document_type = declared_type if isinstance(declared_type, DocumentType) \
            else DocumentType.from_value(declared_type)

        handlers = {
            DocumentType.PDF: self._extract_pdf,
            DocumentType.DOC: self._extract_doc,
            DocumentType.SHEET: self._extract_sheet,
            DocumentType.SLIDES: self._extract_slides,
        }
        handler = handlers.get(document_type)
        if handler is None:
            raise UnsupportedTypeError(document_type.value)

        text = await handler(blob or b"")
        logger.info(f"Extracted {len(text)} characters from {document_type.value} content")
        return text

    async def _run(self, func: Callable, data: bytes):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, data)

    async def _extract_pdf(self, data: bytes) -> str:
        if not data:
            raise ExtractionError("The PDF file is empty. Please upload the file again.")

        try:
            pages = await self._run(_parse_pdf, data)
        except Exception as e:
            logger.warning(f"PDF parsing failed: {e}")
            raise ExtractionError(
                "Could not read the PDF file. It may be corrupted or password-protected."
            ) from e

        if not pages:
            raise ExtractionError("The PDF file has no pages.")

        text = '\n\n'.join(page.strip() for page in pages if page.strip())
        if not text:
            raise ExtractionError(
                "No text could be extracted from this PDF. "
                "It may be a scanned image or an empty document."
            )
        return text

    async def _extract_doc(self, data: bytes) -> str:
        text = ""
        try:
            text = (await self._run(_parse_docx, data)).strip()
        except Exception as e:
            logger.info(f"Structured Word parsing failed, falling back to raw decode: {e}")

        if len(text) < MIN_TEXT_LENGTH:
            text = decode_document_bytes(data)

        if len(text) < MIN_TEXT_LENGTH:
            raise ExtractionError(
                "Could not extract readable text from the Word document. "
                "The file may be corrupted or contain only images."
            )
        return text

    async def _extract_sheet(self, data: bytes) -> str:
        try:
            text = (await self._run(_parse_xlsx, data)).strip()
        except Exception as e:
            logger.warning(f"Spreadsheet parsing failed: {e}")
            raise ExtractionError(
                "Could not read the spreadsheet. Please upload it as an .xlsx file."
            ) from e

        if len(text) < MIN_TEXT_LENGTH:
            raise ExtractionError(
                "The spreadsheet contains too little text to analyze. "
                "Make sure the cells contain data rather than only charts or images."
            )
        return text

    async def _extract_slides(self, data: bytes) -> str:
        text = ""
        try:
            text = (await self._run(_parse_pptx, data)).strip()
        except Exception as e:
            logger.info(f"Structured slide parsing failed, falling back to raw decode: {e}")

        if len(text) < MIN_TEXT_LENGTH:
            text = decode_slide_bytes(data)

        if len(text) < MIN_TEXT_LENGTH:
            raise ExtractionError(
                "Could not extract readable text from the presentation. "
                "The slides may contain only images."
            )
        return text

    async def extract_transcript(self, video_url: str) -> str:
        """
        Fetch a YouTube transcript and join its segments with spaces.

        Raises:
            InvalidSourceError: URL has no valid video ID
            NoTranscriptError: No captions, or the captions are empty
        """
        video_id = require_video_id(video_url)
        segments = await self.transcript_fetcher.fetch_transcript(video_id)

        text = ' '.join(segment.text.strip() for segment in segments if segment.text and segment.text.strip())
        if not text:
            raise NoTranscriptError("No transcript content found for this YouTube video.")

        logger.info(f"Fetched transcript for {video_id}: {len(segments)} segments, {len(text)} characters")
        return text
