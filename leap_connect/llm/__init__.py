"""
Inference API integration with dataclass-based architecture.

This package provides:
- Typed request dataclasses
- An async HTTP client for every API operation
- Incremental decoding of streamed chat completions
- A structured error hierarchy
"""

from __future__ import annotations

from .exceptions import (
    APIConnectionError,
    APIError,
    APIStatusError,
    RateLimitError,
    ResponseParseError,
)
from .models import (
    APIResponse,
    BinaryResponse,
    ChatCompletionRequest,
    ChatMessage,
    CompletionRequest,
    ContentPart,
    ContentType,
    EmbeddingRequest,
    FunctionDefinition,
    FunctionParameters,
    ImageUrl,
    JSONSchemaDefine,
    JSONSchemaType,
    MessageRole,
    Tool,
    ToolChoiceType,
    to_payload,
)
from .streaming import (
    ChatChunk,
    ChunkChoice,
    ChunkDecoder,
    ChunkDelta,
    FinishReason,
    decode,
)
from .client import APIClient

__all__ = [
    # Client
    "APIClient",
    # Exceptions
    "APIConnectionError",
    "APIError",
    "APIStatusError",
    "RateLimitError",
    "ResponseParseError",
    # Request and response models
    "APIResponse",
    "BinaryResponse",
    "ChatCompletionRequest",
    "ChatMessage",
    "CompletionRequest",
    "ContentPart",
    "ContentType",
    "EmbeddingRequest",
    "FunctionDefinition",
    "FunctionParameters",
    "ImageUrl",
    "JSONSchemaDefine",
    "JSONSchemaType",
    "MessageRole",
    "Tool",
    "ToolChoiceType",
    "to_payload",
    # Streaming
    "ChatChunk",
    "ChunkChoice",
    "ChunkDecoder",
    "ChunkDelta",
    "FinishReason",
    "decode",
]
