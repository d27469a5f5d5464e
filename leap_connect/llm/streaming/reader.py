"""
Buffered line cursor over an asynchronous byte source.
"""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterable, AsyncIterator

LINE_TERMINATOR = b"\n"


class LineReader:
    """
    Exclusive, in-place line cursor over an async iterable of byte chunks.

    Network reads may split a line anywhere or carry several lines at once;
    only the terminator position decides where a line ends. The internal
    buffer never holds more than the current partial line plus the unread
    rest of the last network read.
    """

    def __init__(self, source: AsyncIterable[bytes]):
        self._source: AsyncIterator[bytes] = aiter(source)
        self._buffer = bytearray()
        # Bytes before this offset are known to hold no terminator
        self._scanned = 0
        self._exhausted = False
        self._closed = False

    @property
    def buffered(self) -> int:
        """Number of bytes received but not yet returned as a line."""
        return len(self._buffer)

    @property
    def closed(self) -> bool:
        return self._closed

    async def read_line(self) -> bytes:
        """
        Return the next line including its terminator.

        The unterminated tail left at end of input is returned as a final
        line. An empty result means the source is exhausted. Errors raised
        by the source propagate unchanged.
        """
        while True:
            end = self._buffer.find(LINE_TERMINATOR, self._scanned)
            if end >= 0:
                line = bytes(self._buffer[: end + 1])
                del self._buffer[: end + 1]
                self._scanned = 0
                return line
            self._scanned = len(self._buffer)

            if self._exhausted or self._closed:
                line = bytes(self._buffer)
                self._buffer.clear()
                self._scanned = 0
                return line

            try:
                chunk = await anext(self._source)
            except StopAsyncIteration:
                self._exhausted = True
                continue

            if chunk:
                self._buffer.extend(chunk)

    async def aclose(self) -> None:
        """Drop buffered bytes and close the source if it supports it."""
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        self._scanned = 0
        close = getattr(self._source, "aclose", None)
        if close is not None:
            result = close()
            if inspect.isawaitable(result):
                await result
