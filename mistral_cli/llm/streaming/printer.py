"""
Real-time rendering of streamed deltas.
"""

from __future__ import annotations

import sys
from collections.abc import AsyncIterable
from typing import BinaryIO


class StreamPrinter:
    """Write each delta to a binary sink the moment it arrives.

    Every write is followed by a flush. Write failures on the sink propagate
    unchanged; they are never retried.
    """

    def __init__(self, sink: BinaryIO | None = None):
        self.sink = sink if sink is not None else sys.stdout.buffer

    async def render(self, deltas: AsyncIterable[str]) -> int:
        """Print all deltas, then one newline. Returns the number of deltas."""
        count = 0
        async for delta in deltas:
            self.sink.write(delta.encode("utf-8"))
            self.sink.flush()
            count += 1

        self.sink.write(b"\n")
        self.sink.flush()
        return count
