"""
Streaming dataclasses for the chat chunk decoder.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FinishReason(Enum):
    """Why generation stopped for a choice."""
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"
    NULL = "null"


class DecodeStatus(Enum):
    """Result kinds of decoding one line."""
    PRODUCED = "produced"
    SKIP = "skip"
    END_OF_STREAM = "end_of_stream"


@dataclass(frozen=True)
class ChunkDelta:
    """Incremental message fragment carried by one choice."""
    role: str | None = None
    content: str | None = None
    tool_calls: list[dict[str, Any]] | None = None


@dataclass(frozen=True)
class ChunkChoice:
    """One choice entry of a streamed chunk."""
    index: int | None = None
    delta: ChunkDelta = field(default_factory=ChunkDelta)
    finish_reason: FinishReason | None = None


@dataclass(frozen=True)
class ChatChunk:
    """One decoded unit of streamed chat completion output."""
    choices: tuple[ChunkChoice, ...]
    # Metadata is passed through as sent; only choices is validated
    id: Any = None
    object: Any = None
    created: Any = None
    model: Any = None


@dataclass(frozen=True)
class RawLine:
    """Line-terminated span read from the byte stream."""
    data: bytes
    text: str

    @classmethod
    def from_bytes(cls, data: bytes) -> RawLine:
        """Decode and trim a raw span. Raises UnicodeDecodeError on bad UTF-8."""
        return cls(data=data, text=data.decode("utf-8").strip())

    @property
    def is_blank(self) -> bool:
        return not self.text


@dataclass(frozen=True)
class DecodeOutcome:
    """Tagged result of turning one line into a chunk."""
    status: DecodeStatus
    chunk: ChatChunk | None = None
    reason: str | None = None

    @classmethod
    def produced(cls, chunk: ChatChunk) -> DecodeOutcome:
        return cls(status=DecodeStatus.PRODUCED, chunk=chunk)

    @classmethod
    def skip(cls, reason: str) -> DecodeOutcome:
        return cls(status=DecodeStatus.SKIP, reason=reason)

    @classmethod
    def end_of_stream(cls, reason: str | None = None) -> DecodeOutcome:
        return cls(status=DecodeStatus.END_OF_STREAM, reason=reason)


@dataclass
class DecoderStats:
    """Mutable counters for one decoder instance."""
    lines_read: int = 0
    chunks_produced: int = 0
    blank_lines: int = 0
    unframed_lines: int = 0
    parse_failures: int = 0
    read_errors: int = 0

    @property
    def lines_skipped(self) -> int:
        return self.blank_lines + self.unframed_lines + self.parse_failures
