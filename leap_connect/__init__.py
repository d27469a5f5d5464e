"""
leap-connect: async client for an OpenAI-compatible inference API.
"""

from .llm import (
    APIClient,
    APIError,
    ChatChunk,
    ChatCompletionRequest,
    ChatMessage,
    ChunkDecoder,
    MessageRole,
)
from .config import ClientConfig, Configuration

__all__ = [
    "APIClient",
    "APIError",
    "ChatChunk",
    "ChatCompletionRequest",
    "ChatMessage",
    "ChunkDecoder",
    "ClientConfig",
    "Configuration",
    "MessageRole",
]
