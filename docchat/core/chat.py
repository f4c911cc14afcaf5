"""
Chat Service

One conversational turn: build the context for the user's message, pick the
system prompt, call the model and return text the chat can always render.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from docchat.core.ai.prompts import create_rag_system_prompt, create_youtube_system_prompt
from docchat.core.ai.providers.base import BaseChatProvider, ChatMessage, ImageInput
from docchat.core.documents.context import (
    DOCUMENT_ERROR_PREFIX,
    ContextKind,
    ConversationContextBuilder,
    MessageContext,
)
from docchat.core.documents.models import DocumentType
from docchat.core.documents.repository import DocumentRepository

logger = logging.getLogger(__name__)

MODEL_ERROR_PREFIX = "I'm sorry, I encountered an error: "
MODEL_NOT_CONFIGURED_MESSAGE = "The chat model is not configured."


@dataclass
class ChatReply:
    """Assistant reply for one turn."""
    text: str
    is_error: bool = False
    context_kind: Optional[ContextKind] = None


class ChatService:
    """Answers chat messages about a single document."""

    def __init__(
        self,
        repository: DocumentRepository,
        context_builder: ConversationContextBuilder,
        provider: Optional[BaseChatProvider],
    ):
        self.repository = repository
        self.context_builder = context_builder
        self.provider = provider

    def _system_prompt(self, document_type: DocumentType, context: MessageContext) -> Optional[str]:
        if context.kind == ContextKind.GROUNDED_TEXT:
            if document_type == DocumentType.YOUTUBE:
                return create_youtube_system_prompt(context.text)
            return create_rag_system_prompt(context.text)
        if context.kind == ContextKind.INLINE_TEXT:
            return create_rag_system_prompt(context.text)
        if context.kind == ContextKind.URL:
            return create_rag_system_prompt(context.url)
        return None

    async def send_message(
        self,
        document_id: str,
        history: List[ChatMessage],
        message: str,
    ) -> ChatReply:
        """
        Answer a user message.

        Args:
            document_id: Document the chat is about
            history: Previous turns, oldest first
            message: The new user message

        Returns:
            ChatReply; errors are returned as reply text, never raised
        """
        document = await self.repository.get_document(document_id)
        if document is None:
            return ChatReply(text=DOCUMENT_ERROR_PREFIX + "Document not found.", is_error=True)

        context = await self.context_builder.build(document, message)
        if context.is_error:
            # Ingestion already failed; the model has nothing to ground on
            return ChatReply(text=context.text, is_error=True, context_kind=context.kind)
        if context.kind == ContextKind.PENDING:
            return ChatReply(text=context.text, context_kind=context.kind)

        if self.provider is None:
            return ChatReply(
                text=MODEL_ERROR_PREFIX + MODEL_NOT_CONFIGURED_MESSAGE,
                is_error=True,
                context_kind=context.kind,
            )

        image = None
        if context.kind == ContextKind.IMAGE:
            image = ImageInput(data=context.image_bytes, mime_type=context.mime_type)

        messages = list(history) + [ChatMessage(role="user", content=message)]
        try:
            response = await self.provider.complete(
                messages,
                system_prompt=self._system_prompt(document.type, context),
                image=image,
            )
        except Exception as e:
            logger.error(f"Chat completion for {document_id} failed: {e}")
            return ChatReply(text=MODEL_ERROR_PREFIX + str(e), is_error=True, context_kind=context.kind)

        return ChatReply(text=response.text, context_kind=context.kind)
