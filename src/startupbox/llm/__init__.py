"""LLM provider interfaces."""

from .provider import (
    ChatCompletionProvider,
    ChatMessage,
    ChatRequest,
    LLMError,
    LLMProvider,
    StaticResponseProvider,
)

__all__ = [
    "ChatCompletionProvider",
    "ChatMessage",
    "ChatRequest",
    "LLMError",
    "LLMProvider",
    "StaticResponseProvider",
]
