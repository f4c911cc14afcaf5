"""
Error taxonomy for ingestion and retrieval.

- ValidationError: the input can never succeed (unsupported type, empty
  content, bad URL). Never retried; the message is shown to the user.
- TransientServiceError: an upstream hiccup. Retried with a fixed delay.
- ConfigurationError: missing credentials or wiring. Never retried.

Messages of ValidationError subclasses are user-facing and end up verbatim
in chat, so keep them specific and actionable.
"""
import asyncio


class DocChatError(Exception):
    """Base class for all ingestion/retrieval errors."""
    pass


# =============================================================================
# Validation (terminal)
# =============================================================================

class ValidationError(DocChatError):
    """Input can not be processed, no matter how often we try."""
    pass


class ExtractionError(ValidationError):
    """No usable text could be extracted from the content."""
    pass


class UnsupportedTypeError(ExtractionError):
    """Document type has no extractor."""

    def __init__(self, document_type: str):
        self.document_type = document_type
        super().__init__(f"Unsupported document type: {document_type}")


class NoTranscriptError(ExtractionError):
    """A video has no retrievable transcript (disabled, private, missing)."""
    pass


class InvalidSourceError(ValidationError):
    """Source location is malformed (e.g. not a YouTube URL)."""
    pass


class BlobNotFoundError(ValidationError):
    """The stored file is missing from blob storage."""
    pass


# =============================================================================
# Transient (retryable)
# =============================================================================

class TransientServiceError(DocChatError):
    """Upstream failure that may succeed on retry."""
    pass


class EmbeddingServiceError(TransientServiceError):
    """Embedding API call failed."""
    pass


class VectorStoreError(TransientServiceError):
    """Vector database call failed."""
    pass


class StorageError(TransientServiceError):
    """Blob storage call failed."""
    pass


# =============================================================================
# Configuration (terminal)
# =============================================================================

class ConfigurationError(DocChatError):
    """Service is not configured (missing API key, index, ...)."""
    pass


class EmbeddingConfigurationError(ConfigurationError, EmbeddingServiceError):
    """Embedding client is missing credentials."""
    pass


# =============================================================================
# Programming errors
# =============================================================================

class InvalidTransitionError(AssertionError):
    """An illegal processing_status transition was requested."""
    pass


def is_retryable(error: BaseException) -> bool:
    """
    Decide whether an operation that raised `error` is worth another attempt.

    Configuration errors are checked first because EmbeddingConfigurationError
    is also an EmbeddingServiceError.
    """
    if isinstance(error, (ConfigurationError, ValidationError)):
        return False
    if isinstance(error, TransientServiceError):
        return True
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True
    return False
