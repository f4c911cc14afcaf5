"""
Chat Provider Abstraction Layer

Provides a unified interface for conversational model providers.
"""

from .base import BaseChatProvider, ChatMessage, ChatResponse, ImageInput, TokenUsage
from .openai import OpenAIChatProvider

__all__ = [
    'BaseChatProvider',
    'ChatMessage',
    'ChatResponse',
    'ImageInput',
    'TokenUsage',
    'OpenAIChatProvider',
]
