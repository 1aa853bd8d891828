"""
Streaming-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StreamOutcome(Enum):
    """How a decode session ended. Neither value is an error."""
    COMPLETED = "completed"  # [DONE] observed
    UNTERMINATED = "unterminated"  # transport closed first


class SSEEventType(Enum):
    """Classification of one complete stream line."""
    CONTENT = "content"
    COMPLETION = "completion"
    SKIPPED = "skipped"
    IGNORED = "ignored"


@dataclass(frozen=True)
class SSELine:
    """One classified line; ``content`` is set only for CONTENT lines."""
    event_type: SSEEventType
    content: str | None = None


@dataclass
class DecoderStats:
    """Counters for one decode session."""
    chunks: int = 0
    lines: int = 0
    deltas: int = 0
    skipped_payloads: int = 0
