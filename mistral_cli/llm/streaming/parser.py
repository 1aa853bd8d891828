"""
SSE-style chunk decoder for streamed chat completions.

Raw byte chunks arrive in whatever sizes the network delivers them. The
decoder reassembles them into lines, picks out ``data: `` payloads and yields
the text at ``choices[0].delta.content`` as soon as each line is complete.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterable
from contextlib import aclosing

from pydantic import ValidationError

from ...logging_utils import NullStreamObserver, StreamObserver
from ..models import parse_stream_event
from .models import DecoderStats, SSEEventType, SSELine, StreamOutcome

# Constants
DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class ChunkDecoder:
    """Decode one response stream into content deltas.

    Usage::

        decoder = ChunkDecoder()
        async for delta in decoder.decode(response.aiter_bytes()):
            ...
        decoder.outcome  # StreamOutcome.COMPLETED or UNTERMINATED

    An instance holds the line buffer of a single stream and cannot be reused.
    """

    def __init__(self, observer: StreamObserver | None = None):
        self.observer = observer or NullStreamObserver()
        self.outcome: StreamOutcome | None = None
        self.stats = DecoderStats()
        self._buffer = bytearray()
        self._started = False

    async def decode(self, chunks: AsyncIterable[bytes]) -> AsyncGenerator[str]:
        """
        Yield deltas in stream order until ``[DONE]`` or end of stream.

        No further chunks are pulled once the sentinel is seen. Malformed
        bytes, malformed JSON and content-free payloads are skipped.
        """
        if self._started:
            raise RuntimeError("ChunkDecoder instances decode a single stream")
        self._started = True

        async with aclosing(self._iter_lines(chunks)) as lines:
            async for line in lines:
                parsed = self.parse_line(line)

                if parsed.event_type is SSEEventType.COMPLETION:
                    self.outcome = StreamOutcome.COMPLETED
                    self.observer.on_done()
                    return

                if parsed.event_type is SSEEventType.CONTENT:
                    self.stats.deltas += 1
                    yield parsed.content

        self.outcome = StreamOutcome.UNTERMINATED
        self.observer.on_unterminated()

    def parse_line(self, line: str) -> SSELine:
        """Classify one complete line (without its terminator)."""
        if not line.startswith(DATA_PREFIX):
            return SSELine(SSEEventType.IGNORED)

        payload = line[len(DATA_PREFIX):]
        if payload == DONE_SENTINEL:
            return SSELine(SSEEventType.COMPLETION)

        try:
            event = parse_stream_event(payload)
        except ValidationError as e:
            self.stats.skipped_payloads += 1
            self.observer.on_parse_error(payload, e)
            return SSELine(SSEEventType.SKIPPED)

        content = event.content
        if content is None:
            self.stats.skipped_payloads += 1
            self.observer.on_missing_content(payload)
            return SSELine(SSEEventType.SKIPPED)

        return SSELine(SSEEventType.CONTENT, content)

    def get_stats(self) -> DecoderStats:
        """Get a copy of the session counters."""
        return DecoderStats(**vars(self.stats))

    async def _iter_lines(self, chunks: AsyncIterable[bytes]) -> AsyncGenerator[str]:
        """Reassemble chunks into lines; a trailing partial line waits for more."""
        async for chunk in chunks:
            self.stats.chunks += 1
            if not chunk:
                continue
            self.observer.on_chunk(chunk.decode("utf-8", errors="replace"))
            self._buffer.extend(chunk)

            for line in self._drain_complete_lines():
                yield line

        # Stream closed mid-line: the remainder is still a line
        if self._buffer:
            tail = bytes(self._buffer)
            self._buffer.clear()
            self.stats.lines += 1
            yield self._decode_line(tail)

    def _drain_complete_lines(self) -> list[str]:
        end = self._buffer.rfind(b"\n")
        if end < 0:
            return []

        complete = bytes(self._buffer[:end])
        del self._buffer[: end + 1]

        raw_lines = complete.split(b"\n")
        self.stats.lines += len(raw_lines)
        return [self._decode_line(raw) for raw in raw_lines]

    @staticmethod
    def _decode_line(raw: bytes) -> str:
        # Lines are decoded whole, so a multi-byte character split across
        # chunks is never replaced
        return raw.decode("utf-8", errors="replace").removesuffix("\r")
