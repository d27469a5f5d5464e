"""
Request dataclasses and response wrappers for the inference API.

This module provides:
- Chat completion request and message structures
- Tool/function definitions
- Completion and embedding requests
- The generic response wrapper carrying headers
- Payload serialization for the JSON request body
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


class MessageRole(Enum):
    """Message roles accepted by the chat endpoint."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    FUNCTION = "function"
    TOOL = "tool"


class ContentType(Enum):
    """Content part types for multimodal messages."""
    TEXT = "text"
    IMAGE_URL = "image_url"


class JSONSchemaType(Enum):
    """JSON schema primitive types used in function parameters."""
    OBJECT = "object"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    NULL = "null"
    BOOLEAN = "boolean"


class ToolChoiceType(Enum):
    """String forms of the tool_choice field."""
    NONE = "none"
    AUTO = "auto"


@dataclass(frozen=True)
class ImageUrl:
    """Image reference inside a content part."""
    url: str


@dataclass(frozen=True)
class ContentPart:
    """One element of a multimodal message body."""
    type: ContentType
    text: str | None = None
    image_url: ImageUrl | None = None

    @classmethod
    def from_text(cls, text: str) -> ContentPart:
        return cls(type=ContentType.TEXT, text=text)

    @classmethod
    def from_image_url(cls, url: str) -> ContentPart:
        return cls(type=ContentType.IMAGE_URL, image_url=ImageUrl(url))


@dataclass(frozen=True)
class ChatMessage:
    """Chat message in request history."""
    role: MessageRole
    content: str | list[ContentPart]
    name: str | None = None


@dataclass(frozen=True)
class JSONSchemaDefine:
    """Schema for a single function parameter."""
    type: JSONSchemaType | None = None
    description: str | None = None
    enum: list[str] | None = None
    properties: dict[str, JSONSchemaDefine] | None = None
    required: list[str] | None = None
    items: JSONSchemaDefine | None = None


@dataclass(frozen=True)
class FunctionParameters:
    """Parameter object schema of a callable function."""
    type: JSONSchemaType = JSONSchemaType.OBJECT
    properties: dict[str, JSONSchemaDefine] | None = None
    required: list[str] | None = None


@dataclass(frozen=True)
class FunctionDefinition:
    """Function exposed to the model as a tool."""
    name: str
    parameters: FunctionParameters = field(default_factory=FunctionParameters)
    description: str | None = None


@dataclass(frozen=True)
class Tool:
    """Tool definition."""
    function: FunctionDefinition
    type: Literal["function"] = "function"


@dataclass
class ChatCompletionRequest:
    """Chat completion request body."""
    model: str
    messages: list[ChatMessage]
    temperature: float | None = None
    top_p: float | None = None
    n: int | None = None
    stream: bool | None = None
    stop: list[str] | None = None
    max_tokens: int | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    logit_bias: dict[str, int] | None = None
    user: str | None = None
    seed: int | None = None
    response_format: dict[str, Any] | None = None
    tools: list[Tool] | None = None
    tool_choice: ToolChoiceType | dict[str, Any] | None = None

    def with_stream(self, stream: bool = True) -> ChatCompletionRequest:
        """Return a copy of the request with the stream flag set."""
        return dataclasses.replace(self, stream=stream)


@dataclass
class CompletionRequest:
    """Legacy text completion request body."""
    model: str
    prompt: str
    suffix: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    n: int | None = None
    stream: bool | None = None
    logprobs: int | None = None
    echo: bool | None = None
    stop: list[str] | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    best_of: int | None = None
    logit_bias: dict[str, int] | None = None
    user: str | None = None


@dataclass
class EmbeddingRequest:
    """Embedding request body."""
    model: str
    input: str | list[str]
    dimensions: int | None = None
    encoding_format: str | None = None
    user: str | None = None


@dataclass(frozen=True)
class APIResponse:
    """Decoded JSON response body with the response headers."""
    data: Any
    headers: dict[str, str] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def get(self, key: str, default: Any = None) -> Any:
        if isinstance(self.data, Mapping):
            return self.data.get(key, default)
        return default


@dataclass(frozen=True)
class BinaryResponse:
    """Raw response body (audio speech) with the response headers."""
    content: bytes
    headers: dict[str, str] = field(default_factory=dict)


def _serialize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: _serialize(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if getattr(value, f.name) is not None
        }
    if isinstance(value, Mapping):
        return {k: _serialize(v) for k, v in value.items() if v is not None}
    if isinstance(value, list | tuple):
        return [_serialize(v) for v in value]
    return value


def to_payload(request: Any) -> dict[str, Any]:
    """Serialize a request dataclass or mapping into a JSON-ready dict.

    None fields are dropped and enums are replaced by their values.

    Raises:
        TypeError: If the request is neither a dataclass instance nor a mapping.
    """
    if request is None:
        return {}
    if isinstance(request, Mapping) or (
        dataclasses.is_dataclass(request) and not isinstance(request, type)
    ):
        return _serialize(request)
    raise TypeError(
        f"Request body must be a dataclass or mapping, got {type(request).__name__}"
    )
