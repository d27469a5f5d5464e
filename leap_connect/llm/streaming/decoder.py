"""
Chat chunk decoder for server-sent-event response bodies.

Turns an arbitrarily chunked byte stream into a lazy, forward-only
sequence of ChatChunk values. Per-line failures are skipped; read
failures end the sequence without raising into the consumer.
"""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterable, Awaitable, Callable

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from .models import (
    ChatChunk,
    DecodeOutcome,
    DecoderStats,
    DecodeStatus,
    RawLine,
)
from .reader import LineReader

DATA_PREFIX = "data:"

# Expected failures of the byte source; any other exception also ends the
# stream but is logged with its traceback
READ_ERRORS: tuple[type[Exception], ...] = (
    httpx.HTTPError,
    httpx.StreamError,
    OSError,
    UnicodeDecodeError,
)

_chunk_adapter: TypeAdapter[ChatChunk] = TypeAdapter(ChatChunk)

logger = structlog.get_logger(__name__)


def parse_chunk(payload: str) -> ChatChunk:
    """Validate a JSON payload against the chat chunk schema.

    Raises:
        ValidationError: If the payload is not JSON or has the wrong shape.
    """
    return _chunk_adapter.validate_json(payload)


def classify_line(line: RawLine) -> DecodeOutcome:
    """Classify one trimmed line and decode it when it carries a payload."""
    if line.is_blank:
        return DecodeOutcome.skip("blank")

    if not line.text.startswith(DATA_PREFIX):
        return DecodeOutcome.skip("unframed")

    payload = line.text[len(DATA_PREFIX):].strip()
    try:
        return DecodeOutcome.produced(parse_chunk(payload))
    except ValidationError as e:
        return DecodeOutcome.skip(f"invalid payload: {e.error_count()} error(s)")


class ChunkDecoder:
    """
    Async iterator of ChatChunk values over an SSE byte stream.

    States are Reading and Done. Each pull reads whole lines until one
    decodes into a chunk or the stream ends. Once Done, the source is
    never read again and the iterator cannot be restarted.
    """

    def __init__(
        self,
        source: AsyncIterable[bytes],
        *,
        on_close: Callable[[], Awaitable[None] | None] | None = None,
    ):
        self._reader = LineReader(source)
        self._on_close = on_close
        self._done = False
        self._closed = False
        self.truncated = False
        self.stats = DecoderStats()

    @property
    def done(self) -> bool:
        return self._done

    def __aiter__(self) -> ChunkDecoder:
        return self

    async def __anext__(self) -> ChatChunk:
        while not self._done:
            outcome = await self.step()
            if outcome.status is DecodeStatus.PRODUCED and outcome.chunk is not None:
                return outcome.chunk
            if outcome.status is DecodeStatus.END_OF_STREAM:
                await self.aclose()
        raise StopAsyncIteration

    async def step(self) -> DecodeOutcome:
        """Read and decode exactly one line."""
        if self._done:
            return DecodeOutcome.end_of_stream("done")

        try:
            data = await self._reader.read_line()
            if not data:
                self._done = True
                return DecodeOutcome.end_of_stream()
            line = RawLine.from_bytes(data)
        except READ_ERRORS as e:
            return self._end_on_read_error(e)
        except Exception as e:
            return self._end_on_read_error(e, unexpected=True)

        self.stats.lines_read += 1
        outcome = classify_line(line)
        self._record(outcome)
        return outcome

    def _end_on_read_error(
        self, error: Exception, *, unexpected: bool = False
    ) -> DecodeOutcome:
        self._done = True
        self.truncated = True
        self.stats.read_errors += 1
        logger.warning(
            "Stream read failed, ending chunk sequence",
            error_type=type(error).__name__,
            error_message=str(error),
            chunks_produced=self.stats.chunks_produced,
            exc_info=unexpected,
        )
        return DecodeOutcome.end_of_stream(f"read error: {error}")

    def _record(self, outcome: DecodeOutcome) -> None:
        if outcome.status is DecodeStatus.PRODUCED:
            self.stats.chunks_produced += 1
            return

        if outcome.reason == "blank":
            self.stats.blank_lines += 1
        elif outcome.reason == "unframed":
            self.stats.unframed_lines += 1
        else:
            self.stats.parse_failures += 1
            logger.debug("Skipping undecodable stream line", reason=outcome.reason)

    async def aclose(self) -> None:
        """Stop decoding and release the byte source."""
        self._done = True
        if self._closed:
            return
        self._closed = True
        await self._reader.aclose()
        if self._on_close is not None:
            result = self._on_close()
            if inspect.isawaitable(result):
                await result

    async def __aenter__(self) -> ChunkDecoder:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def collect(self) -> list[ChatChunk]:
        """Drain the remaining sequence into a list."""
        return [chunk async for chunk in self]

    def get_stats(self) -> dict[str, int]:
        """Get decoding counters for monitoring."""
        return {
            "lines_read": self.stats.lines_read,
            "chunks_produced": self.stats.chunks_produced,
            "lines_skipped": self.stats.lines_skipped,
            "parse_failures": self.stats.parse_failures,
            "read_errors": self.stats.read_errors,
        }


def decode(
    source: AsyncIterable[bytes],
    *,
    on_close: Callable[[], Awaitable[None] | None] | None = None,
) -> ChunkDecoder:
    """Build a chunk decoder over an async byte source."""
    return ChunkDecoder(source, on_close=on_close)
