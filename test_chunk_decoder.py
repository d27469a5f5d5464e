#!/usr/bin/env python3
"""
Tests for the streaming chat chunk decoder.

Covers line framing over arbitrary network read boundaries, skipping of
blank, unframed and malformed lines, and silent termination on read errors.
"""

import asyncio

import httpx
import pytest

from leap_connect.llm.streaming.decoder import ChunkDecoder, classify_line, decode
from leap_connect.llm.streaming.models import (
    ChunkDelta,
    DecodeStatus,
    FinishReason,
    RawLine,
)
from leap_connect.llm.streaming.reader import LineReader

HI_LINE = b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n'
STOP_LINE = b'data: {"choices":[{"delta":{},"finish_reason":"stop"}]}\n'
EMPTY_CHOICES_LINE = b'data: {"choices":[]}\n'


async def byte_source(*chunks: bytes):
    """Yield the given chunks as separate network reads."""
    for chunk in chunks:
        await asyncio.sleep(0)
        yield chunk


async def failing_source(*chunks: bytes, error: Exception):
    """Yield chunks, then fail the way a dropped connection does."""
    for chunk in chunks:
        yield chunk
    raise error


def content_line(text: str) -> bytes:
    return b'data: {"choices":[{"delta":{"content":"' + text.encode() + b'"}}]}\n'


class TestDecoderScenarios:
    """End-to-end decoding of representative streams."""

    async def test_content_then_stop(self):
        chunks = await decode(byte_source(HI_LINE, STOP_LINE)).collect()

        assert len(chunks) == 2
        first, second = chunks
        assert first.choices[0].delta.content == "Hi"
        assert first.choices[0].finish_reason is None
        assert second.choices[0].delta == ChunkDelta()
        assert second.choices[0].finish_reason is FinishReason.STOP

    async def test_blank_and_malformed_lines_produce_nothing(self):
        chunks = await decode(
            byte_source(b"\n", b"data: not-json\n", EMPTY_CHOICES_LINE)
        ).collect()

        assert len(chunks) == 1
        assert chunks[0].choices == ()

    async def test_n_valid_lines_yield_n_chunks_in_order(self):
        texts = [f"part-{i}" for i in range(25)]
        source = byte_source(*(content_line(t) for t in texts))

        chunks = await decode(source).collect()

        assert [c.choices[0].delta.content for c in chunks] == texts

    async def test_blank_lines_interleaved(self):
        source = byte_source(b"\n", content_line("a"), b"\n\n", b"\r\n", content_line("b"))

        chunks = await decode(source).collect()

        assert [c.choices[0].delta.content for c in chunks] == ["a", "b"]

    async def test_malformed_json_does_not_stop_sequence(self):
        source = byte_source(
            content_line("before"),
            b'data: {"choices": [\n',
            content_line("after"),
        )

        chunks = await decode(source).collect()

        assert [c.choices[0].delta.content for c in chunks] == ["before", "after"]

    async def test_done_marker_and_sse_fields_are_skipped(self):
        source = byte_source(
            b": keep-alive\n",
            b"event: message\n",
            content_line("x"),
            b"data: [DONE]\n",
            content_line("y"),
        )

        chunks = await decode(source).collect()

        assert [c.choices[0].delta.content for c in chunks] == ["x", "y"]


class TestReadBoundaries:
    """The decoder relies on line terminators, never on read boundaries."""

    async def test_line_split_across_reads(self):
        chunks = await decode(byte_source(b'data: {"choi', b'ces":[]}\n')).collect()

        assert len(chunks) == 1
        assert chunks[0].choices == ()

    async def test_line_split_into_single_bytes(self):
        data = HI_LINE + STOP_LINE
        source = byte_source(*(data[i:i + 1] for i in range(len(data))))

        chunks = await decode(source).collect()

        assert len(chunks) == 2
        assert chunks[0].choices[0].delta.content == "Hi"

    async def test_several_lines_in_one_read(self):
        chunks = await decode(byte_source(HI_LINE + b"\n" + STOP_LINE)).collect()

        assert len(chunks) == 2

    async def test_multibyte_character_split_across_reads(self):
        line = content_line("héllo ✓")
        split_at = line.index("✓".encode()) + 1

        chunks = await decode(byte_source(line[:split_at], line[split_at:])).collect()

        assert chunks[0].choices[0].delta.content == "héllo ✓"

    async def test_crlf_terminators(self):
        source = byte_source(HI_LINE.replace(b"\n", b"\r\n"), b"\r\n")

        chunks = await decode(source).collect()

        assert len(chunks) == 1

    async def test_final_line_without_terminator(self):
        chunks = await decode(byte_source(HI_LINE, EMPTY_CHOICES_LINE.rstrip())).collect()

        assert len(chunks) == 2
        assert chunks[1].choices == ()

    async def test_suspends_until_bytes_arrive(self):
        queue: asyncio.Queue[bytes | None] = asyncio.Queue()

        async def queued_source():
            while (item := await queue.get()) is not None:
                yield item

        decoder = decode(queued_source())
        pending = asyncio.ensure_future(anext(decoder))

        await queue.put(b'data: {"choices":[{"delta":{"content":"sl')
        await asyncio.sleep(0.01)
        assert not pending.done()

        await queue.put(b'ow"}}]}\n')
        chunk = await asyncio.wait_for(pending, timeout=1)
        assert chunk.choices[0].delta.content == "slow"

        await queue.put(None)
        assert await decoder.collect() == []


class TestLineReader:
    """Buffering bounds of the line cursor."""

    async def test_buffer_holds_only_unread_remainder(self):
        reader = LineReader(byte_source(b"a\nbb\ncc", b"c\n"))

        assert await reader.read_line() == b"a\n"
        assert reader.buffered == len(b"bb\ncc")

        assert await reader.read_line() == b"bb\n"
        assert reader.buffered == len(b"cc")

        assert await reader.read_line() == b"ccc\n"
        assert reader.buffered == 0

        assert await reader.read_line() == b""

    async def test_no_read_while_a_line_is_buffered(self):
        reads = 0

        async def counting_source():
            nonlocal reads
            for chunk in (b"one\ntwo\nthr", b"ee\n"):
                reads += 1
                yield chunk

        reader = LineReader(counting_source())

        assert await reader.read_line() == b"one\n"
        assert reads == 1
        assert await reader.read_line() == b"two\n"
        assert reads == 1
        assert await reader.read_line() == b"three\n"
        assert reads == 2

    async def test_long_line_in_many_small_reads(self):
        line = content_line("x" * 20_000)
        source = byte_source(*(line[i:i + 7] for i in range(0, len(line), 7)))
        reader = LineReader(source)

        assert await reader.read_line() == line
        assert reader.buffered == 0

    async def test_aclose_drops_buffer(self):
        reader = LineReader(byte_source(b"a\nb\n"))
        await reader.read_line()

        await reader.aclose()

        assert reader.closed
        assert reader.buffered == 0
        assert await reader.read_line() == b""


class TestTermination:
    """End of stream and read failures end the sequence silently."""

    async def test_empty_source(self):
        decoder = decode(byte_source())

        assert await decoder.collect() == []
        assert decoder.done
        assert not decoder.truncated

    async def test_read_error_ends_sequence_without_raising(self):
        source = failing_source(HI_LINE, error=httpx.ReadError("connection reset"))
        decoder = decode(source)

        chunks = await decoder.collect()

        assert len(chunks) == 1
        assert decoder.truncated
        assert decoder.stats.read_errors == 1

    async def test_os_error_mid_line_discards_partial_line(self):
        source = failing_source(HI_LINE, b'data: {"choi', error=ConnectionResetError())

        chunks = await decode(source).collect()

        assert len(chunks) == 1

    async def test_unexpected_source_exception_ends_sequence(self):
        source = failing_source(HI_LINE, error=RuntimeError("source broke"))
        decoder = decode(source)

        chunks = await decoder.collect()

        assert len(chunks) == 1
        assert decoder.done
        assert decoder.truncated
        assert decoder.stats.read_errors == 1

    async def test_httpx_decoding_error_ends_sequence(self):
        source = failing_source(HI_LINE, error=httpx.DecodingError("bad gzip"))
        decoder = decode(source)

        assert len(await decoder.collect()) == 1
        assert decoder.truncated

    async def test_invalid_utf8_ends_sequence(self):
        decoder = decode(byte_source(HI_LINE, b"data: \xff\xfe\n", STOP_LINE))

        chunks = await decoder.collect()

        assert len(chunks) == 1
        assert decoder.truncated

    async def test_not_restartable(self):
        reads = 0

        async def counting_source():
            nonlocal reads
            for chunk in (HI_LINE,):
                reads += 1
                yield chunk

        decoder = decode(counting_source())
        assert len(await decoder.collect()) == 1

        with pytest.raises(StopAsyncIteration):
            await anext(decoder)
        assert reads == 1
        assert (await decoder.step()).status is DecodeStatus.END_OF_STREAM

    async def test_aclose_releases_source_early(self):
        released = asyncio.Event()

        async def endless_source():
            try:
                while True:
                    yield HI_LINE
            finally:
                released.set()

        closed = []
        decoder = ChunkDecoder(endless_source(), on_close=lambda: closed.append(True))

        async with decoder:
            assert (await anext(decoder)).choices[0].delta.content == "Hi"

        assert released.is_set()
        assert closed == [True]
        assert await decoder.collect() == []

    async def test_on_close_runs_once_at_end_of_stream(self):
        calls = []

        async def on_close():
            calls.append("closed")

        decoder = decode(byte_source(HI_LINE), on_close=on_close)
        await decoder.collect()
        await decoder.aclose()

        assert calls == ["closed"]


class TestClassifyLine:
    """Line classification as distinct explicit cases."""

    def test_blank_line_skips(self):
        outcome = classify_line(RawLine.from_bytes(b"   \r\n"))
        assert outcome.status is DecodeStatus.SKIP
        assert outcome.reason == "blank"

    def test_unframed_line_skips(self):
        outcome = classify_line(RawLine.from_bytes(b'{"choices":[]}\n'))
        assert outcome.status is DecodeStatus.SKIP
        assert outcome.reason == "unframed"

    def test_prefix_without_space(self):
        outcome = classify_line(RawLine.from_bytes(b'data:{"choices":[]}\n'))
        assert outcome.status is DecodeStatus.PRODUCED
        assert outcome.chunk is not None
        assert outcome.chunk.choices == ()

    def test_empty_payload_skips(self):
        outcome = classify_line(RawLine.from_bytes(b"data:\n"))
        assert outcome.status is DecodeStatus.SKIP

    def test_schema_mismatch_skips(self):
        outcome = classify_line(RawLine.from_bytes(b'data: {"object": "chunk"}\n'))
        assert outcome.status is DecodeStatus.SKIP

    def test_unknown_finish_reason_skips(self):
        line = b'data: {"choices":[{"finish_reason":"exploded"}]}\n'
        assert classify_line(RawLine.from_bytes(line)).status is DecodeStatus.SKIP

    def test_finish_reason_values(self):
        line = (
            b'data: {"id":"c1","model":"mistral","choices":['
            b'{"index":0,"delta":{"role":"assistant"},"finish_reason":null},'
            b'{"index":1,"finish_reason":"null"},'
            b'{"index":2,"finish_reason":"tool_calls"}]}\n'
        )
        outcome = classify_line(RawLine.from_bytes(line))

        assert outcome.status is DecodeStatus.PRODUCED
        chunk = outcome.chunk
        assert chunk.id == "c1"
        assert chunk.model == "mistral"
        assert chunk.choices[0].finish_reason is None
        assert chunk.choices[0].delta.role == "assistant"
        assert chunk.choices[1].finish_reason is FinishReason.NULL
        assert chunk.choices[1].delta == ChunkDelta()
        assert chunk.choices[2].finish_reason is FinishReason.TOOL_CALLS

    def test_metadata_types_do_not_reject_chunk(self):
        line = (
            b'data: {"id":42,"created":1712345678.5,"model":null,'
            b'"choices":[{"delta":{"content":"Hi"}}]}\n'
        )
        outcome = classify_line(RawLine.from_bytes(line))

        assert outcome.status is DecodeStatus.PRODUCED
        assert outcome.chunk.id == 42
        assert outcome.chunk.created == 1712345678.5
        assert outcome.chunk.choices[0].delta.content == "Hi"

    def test_unknown_fields_are_ignored(self):
        line = b'data: {"choices":[],"system_fingerprint":"fp","usage":{"total_tokens":3}}\n'
        assert classify_line(RawLine.from_bytes(line)).status is DecodeStatus.PRODUCED


class TestStats:
    """Decoder counters."""

    async def test_counts_every_line_kind(self):
        decoder = decode(byte_source(
            b"\n", b"event: x\n", b"data: nope\n", HI_LINE, STOP_LINE,
        ))
        await decoder.collect()

        stats = decoder.get_stats()
        assert stats["lines_read"] == 5
        assert stats["chunks_produced"] == 2
        assert stats["lines_skipped"] == 3
        assert stats["parse_failures"] == 1
        assert stats["read_errors"] == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
