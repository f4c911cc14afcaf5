"""
Retrieval Assembler

Turns a chat message into grounding text for one document:
embed the query, search the document's namespace, join the passages.
"""

import logging
from typing import Optional

from docchat.core.documents.embeddings import EmbeddingClient
from docchat.core.documents.retry import MAX_RETRIES, RETRY_DELAY_SECONDS, retry_async
from docchat.core.documents.vector_store import VectorStoreGateway

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
NO_RELEVANT_SECTIONS = "No relevant sections found in the document for this question."
PASSAGE_SEPARATOR = "\n\n"


class RetrievalAssembler:
    """Builds the grounded text block for a conversational turn."""

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        gateway: VectorStoreGateway,
        default_k: int = DEFAULT_TOP_K,
        max_attempts: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
        call_timeout: Optional[float] = None,
    ):
        self.embedding_client = embedding_client
        self.gateway = gateway
        self.default_k = default_k
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.call_timeout = call_timeout

    async def retrieve(self, document_id: str, query: str, k: Optional[int] = None) -> str:
        """
        Retrieve the passages most relevant to a query.

        Args:
            document_id: Namespace to search
            query: The user's message
            k: Number of passages (default 5)

        Returns:
            Passages joined by blank lines, most similar first, or
            NO_RELEVANT_SECTIONS when nothing matched. Never empty.

        Raises:
            EmbeddingServiceError: Query embedding failed after retries
        """
        if not query or not query.strip():
            return NO_RELEVANT_SECTIONS

        k = k or self.default_k
        vector = await retry_async(
            lambda: self.embedding_client.embed_one(query),
            operation_name=f"Query embedding for {document_id}",
            max_attempts=self.max_attempts,
            delay=self.retry_delay,
            timeout=self.call_timeout,
        )
        results = await self.gateway.query_top_k(document_id, vector, k)

        passages = [r.text.strip() for r in results if r.text and r.text.strip()]
        if not passages:
            logger.info(f"No relevant sections in {document_id} for query")
            return NO_RELEVANT_SECTIONS

        logger.debug(f"Retrieved {len(passages)} passages from {document_id} "
                     f"(top score {results[0].similarity_score:.3f})")
        return PASSAGE_SEPARATOR.join(passages)
