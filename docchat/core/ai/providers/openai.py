"""
OpenAI Provider Implementation

Wraps LangChain's ChatOpenAI for chat completions, including image input.
"""

import base64
import logging
from typing import List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from docchat.core.documents.errors import ConfigurationError
from .base import BaseChatProvider, ChatMessage, ChatResponse, ImageInput, TokenUsage

logger = logging.getLogger(__name__)

# Rough characters-per-token ratio when the API reports no usage
CHARS_PER_TOKEN_ESTIMATE = 4


class OpenAIChatProvider(BaseChatProvider):
    """OpenAI chat provider using LangChain."""

    def __init__(
        self,
        model: str,
        api_key: Optional[str],
        temperature: float = 0.7,
        max_tokens: int = 8192,
        client=None,
    ):
        super().__init__(model, temperature, max_tokens)

        if client is not None:
            self.client = client
            return

        if not api_key:
            raise ConfigurationError("Chat model is not configured: OPENAI_API_KEY is missing.")

        self.client = ChatOpenAI(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=api_key,
        )

    def _build_messages(
        self,
        messages: List[ChatMessage],
        system_prompt: Optional[str],
        image: Optional[ImageInput],
    ) -> List[BaseMessage]:
        result: List[BaseMessage] = []
        if system_prompt:
            result.append(SystemMessage(content=system_prompt))

        for i, message in enumerate(messages):
            is_last = i == len(messages) - 1
            if message.role == "assistant":
                result.append(AIMessage(content=message.content))
            elif is_last and image is not None:
                encoded = base64.b64encode(image.data).decode("ascii")
                result.append(HumanMessage(content=[
                    {"type": "text", "text": message.content},
                    {"type": "image_url", "image_url": {"url": f"data:{image.mime_type};base64,{encoded}"}},
                ]))
            else:
                result.append(HumanMessage(content=message.content))
        return result

    async def _complete_impl(
        self,
        messages: List[ChatMessage],
        system_prompt: Optional[str],
        image: Optional[ImageInput],
    ) -> ChatResponse:
        """Get a completion from OpenAI via LangChain."""
        lc_messages = self._build_messages(messages, system_prompt, image)
        try:
            result = await self.client.ainvoke(lc_messages)
        except Exception as e:
            logger.error(f"OpenAI API error: {e}")
            raise

        text = result.content if isinstance(result.content, str) else str(result.content)

        usage_metadata = getattr(result, "usage_metadata", None)
        if usage_metadata:
            prompt_tokens = usage_metadata.get("input_tokens", 0)
            completion_tokens = usage_metadata.get("output_tokens", 0)
        else:
            logger.warning("Could not extract exact token usage from LangChain, using estimation")
            prompt_chars = sum(len(m.content) for m in messages) + len(system_prompt or "")
            prompt_tokens = prompt_chars // CHARS_PER_TOKEN_ESTIMATE
            completion_tokens = len(text) // CHARS_PER_TOKEN_ESTIMATE

        return ChatResponse(
            text=text,
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )
