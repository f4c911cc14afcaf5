"""
Base Chat Provider Interface

Defines the abstract interface for conversational model providers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional
import time
import logging

logger = logging.getLogger(__name__)


@dataclass
class TokenUsage:
    """Token usage information from LLM API call."""
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatMessage:
    """One turn of conversation history."""
    role: str  # "user" or "assistant"
    content: str


@dataclass
class ImageInput:
    """Raw image passed to a multimodal model."""
    data: bytes
    mime_type: str = "image/jpeg"


@dataclass
class ChatResponse:
    """Unified response from any chat provider."""
    text: str
    usage: TokenUsage
    latency_ms: int = 0  # Set by base class


class BaseChatProvider(ABC):
    """
    Base interface for conversational model providers.

    The chat service only sends history plus optional grounding and reads
    text back; everything provider-specific lives in _complete_impl.
    """

    def __init__(self, model: str, temperature: float = 0.7, max_tokens: int = 8192):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

        # Usage tracking
        self.total_requests = 0
        self.total_tokens = 0

    async def complete(
        self,
        messages: List[ChatMessage],
        system_prompt: Optional[str] = None,
        image: Optional[ImageInput] = None,
    ) -> ChatResponse:
        """
        Get a text completion.

        Args:
            messages: Conversation history, oldest first; the last one is
                      the message being answered
            system_prompt: Optional system instructions (grounding text)
            image: Optional image attached to the last message

        Returns:
            ChatResponse with text and usage
        """
        start_time = time.time()

        response = await self._complete_impl(messages, system_prompt, image)

        response.latency_ms = int((time.time() - start_time) * 1000)

        self.total_requests += 1
        self.total_tokens += response.usage.total_tokens

        logger.info(
            f"{self.model}: {response.usage.total_tokens} tokens, {response.latency_ms}ms"
        )

        return response

    @abstractmethod
    async def _complete_impl(
        self,
        messages: List[ChatMessage],
        system_prompt: Optional[str],
        image: Optional[ImageInput],
    ) -> ChatResponse:
        """
        Provider-specific implementation of completion.

        Must be implemented by each provider.
        """
        pass

    def get_stats(self) -> dict:
        """Get provider usage statistics."""
        return {
            "model": self.model,
            "requests": self.total_requests,
            "tokens": self.total_tokens,
            "avg_tokens_per_request": (
                self.total_tokens / max(1, self.total_requests)
            )
        }
