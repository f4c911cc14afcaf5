"""
Embedding Client

Converts chunk texts and queries into vectors with the OpenAI embeddings API.

The client does not retry: the caller owns the retry policy. A batch either
returns one vector per input or raises; partial results are never returned.
"""

import asyncio
import logging
from typing import List, Optional

from openai import APIConnectionError, APITimeoutError, AuthenticationError, OpenAI, OpenAIError

from docchat.core.documents.errors import EmbeddingConfigurationError, EmbeddingServiceError

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
EMBEDDING_DIMENSIONS = 1536
# Inputs per API request; larger batches are sent as several requests
MAX_BATCH_SIZE = 100


class EmbeddingClient:
    """
    Thin wrapper around the OpenAI embeddings endpoint.

    Created once by the composition root and shared for the process lifetime;
    the underlying OpenAI client is created on first use.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int = EMBEDDING_DIMENSIONS,
        client=None,
    ):
        """
        Initialize the embedding client.

        Args:
            api_key: OpenAI API key. Required unless `client` is given.
            model: Embedding model name
            dimensions: Vector size; must match the vector table
            client: Pre-built OpenAI client (tests). If None, lazy-loaded.
        """
        self.api_key = api_key
        self.model = model
        self.dimensions = dimensions
        self._client = client

    @property
    def client(self):
        """Lazy load the OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise EmbeddingConfigurationError(
                    "Embedding service is not configured: OPENAI_API_KEY is missing."
                )
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def _create_sync(self, texts: List[str]) -> List[List[float]]:
        kwargs = {"model": self.model, "input": texts}
        if self.model.startswith("text-embedding-3"):
            kwargs["dimensions"] = self.dimensions
        response = self.client.embeddings.create(**kwargs)
        data = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in data]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Embed a list of texts.

        Args:
            texts: Non-empty texts to embed

        Returns:
            One vector per input, in input order

        Raises:
            EmbeddingConfigurationError: Missing or rejected credentials
            EmbeddingServiceError: Upstream failure or malformed response
        """
        if not texts:
            return []
        if any(not text or not text.strip() for text in texts):
            raise ValueError("Cannot generate embedding for empty text")

        # Resolve credentials before touching the executor
        self.client

        loop = asyncio.get_running_loop()
        vectors: List[List[float]] = []
        for start in range(0, len(texts), MAX_BATCH_SIZE):
            batch = texts[start:start + MAX_BATCH_SIZE]
            try:
                result = await loop.run_in_executor(None, self._create_sync, batch)
            except AuthenticationError as e:
                raise EmbeddingConfigurationError(f"Embedding service rejected the API key: {e}") from e
            except (APIConnectionError, APITimeoutError) as e:
                raise EmbeddingServiceError(f"Could not reach the embedding service: {e}") from e
            except OpenAIError as e:
                raise EmbeddingServiceError(f"Embedding request failed: {e}") from e

            if len(result) != len(batch):
                raise EmbeddingServiceError(
                    f"Embedding service returned {len(result)} vectors for {len(batch)} texts"
                )
            vectors.extend(result)

        logger.debug(f"Embedded {len(texts)} texts with {self.model}")
        return vectors

    async def embed_one(self, text: str) -> List[float]:
        """Embed a single text (e.g. a chat query)."""
        vectors = await self.embed_batch([text])
        return vectors[0]
