"""
Text Chunker

Splits extracted text into overlapping passages for embedding.

Splitting is hierarchical: paragraphs first, then lines, sentences, words and
finally raw characters, so a chunk only breaks mid-word when a single word is
longer than the chunk size. Pieces are tracked as spans of the source text,
which keeps every chunk's start_offset exact and guarantees that no text is
dropped between chunks.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from docchat.core.documents.models import Chunk

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_SEPARATORS = ("\n\n", "\n", ". ", " ", "")

Span = Tuple[int, int]


class TextChunker:
    """
    Recursive character splitter with overlap.

    Deterministic: the same text and parameters always give the same chunks.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        separators: Optional[Sequence[str]] = None,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be between 0 and chunk_size")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = tuple(separators) if separators else DEFAULT_SEPARATORS

    def split(self, text: str, document_id: str) -> List[Chunk]:
        """
        Split text into ordered chunks.

        Args:
            text: Extracted document text
            document_id: Namespace the chunks belong to

        Returns:
            Chunks in document order; empty only when text is blank
        """
        if not text or not text.strip():
            return []

        pieces = self._split_span(text, 0, len(text), self.separators)
        chunks = []
        for start, end in self._merge(pieces):
            raw = text[start:end]
            stripped = raw.strip()
            if not stripped:
                continue
            offset = start + (len(raw) - len(raw.lstrip()))
            chunks.append(Chunk(
                text=stripped,
                source_document_id=document_id,
                ordinal=len(chunks),
                start_offset=offset,
            ))

        logger.debug(f"Split {len(text)} characters into {len(chunks)} chunks for {document_id}")
        return chunks

    def _split_span(self, text: str, start: int, end: int, separators: Sequence[str]) -> List[Span]:
        """Cut [start, end) into contiguous spans no longer than chunk_size."""
        if end - start <= self.chunk_size:
            return [(start, end)]

        separator = ""
        remaining: Sequence[str] = ()
        for i, candidate in enumerate(separators):
            if candidate == "" or text.find(candidate, start, end) != -1:
                separator = candidate
                remaining = separators[i + 1:]
                break

        if separator == "":
            return [
                (pos, min(pos + self.chunk_size, end))
                for pos in range(start, end, self.chunk_size)
            ]

        spans: List[Span] = []
        pos = start
        while pos < end:
            hit = text.find(separator, pos, end)
            # Separator stays attached to the piece it terminates
            piece_end = end if hit == -1 else hit + len(separator)
            if piece_end - pos > self.chunk_size:
                spans.extend(self._split_span(text, pos, piece_end, remaining))
            else:
                spans.append((pos, piece_end))
            pos = piece_end
        return spans

    def _merge(self, pieces: List[Span]) -> List[Span]:
        """Greedily join adjacent pieces, carrying a tail of whole pieces as overlap."""
        merged: List[Span] = []
        current: List[Span] = []
        total = 0

        for piece in pieces:
            length = piece[1] - piece[0]
            if current and total + length > self.chunk_size:
                merged.append((current[0][0], current[-1][1]))
                while current and (
                    total > self.chunk_overlap or total + length > self.chunk_size
                ):
                    total -= current[0][1] - current[0][0]
                    current.pop(0)
            current.append(piece)
            total += length

        if current:
            merged.append((current[0][0], current[-1][1]))
        return merged
