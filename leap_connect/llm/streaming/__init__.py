"""
Streaming support for chat completions.

This package contains:
- Line buffering over the HTTP byte stream
- SSE line classification and chunk decoding
- Chunk dataclasses
"""

from .decoder import ChunkDecoder, classify_line, decode, parse_chunk
from .models import (
    ChatChunk,
    ChunkChoice,
    ChunkDelta,
    DecodeOutcome,
    DecoderStats,
    DecodeStatus,
    FinishReason,
    RawLine,
)
from .reader import LineReader

__all__ = [
    "ChatChunk",
    "ChunkChoice",
    "ChunkDecoder",
    "ChunkDelta",
    "DecodeOutcome",
    "DecodeStatus",
    "DecoderStats",
    "FinishReason",
    "LineReader",
    "RawLine",
    "classify_line",
    "decode",
    "parse_chunk",
]
