"""
Streaming functionality for chat completions.

This module contains:
- SSE-style chunk decoding with line reassembly
- Real-time delta printing
"""

from __future__ import annotations

from .models import StreamOutcome
from .parser import ChunkDecoder
from .printer import StreamPrinter

__all__ = ["ChunkDecoder", "StreamOutcome", "StreamPrinter"]
