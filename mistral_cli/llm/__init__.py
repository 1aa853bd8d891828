"""
Chat-completion integration for the Mistral and Codestral APIs.

This package provides:
- Typed request models and partial response shapes
- Bounded-retry request sending
- SSE-style streaming decode with real-time printing
- A small error hierarchy for the CLI layer
"""

from __future__ import annotations

from .client import ChatClient
from .exceptions import (
    APIStatusError,
    EmptyResponseError,
    LLMError,
    RequestFailedError,
)
from .models import (
    ChatCompletion,
    ChatRequest,
    Endpoint,
    MessageRole,
    RequestMessage,
    StreamEvent,
)
from .retry import send_with_retry
from .streaming import ChunkDecoder, StreamOutcome, StreamPrinter

__all__ = [
    # Errors
    "APIStatusError",
    # Core models
    "ChatCompletion",
    # Client
    "ChatClient",
    "ChatRequest",
    # Streaming
    "ChunkDecoder",
    "EmptyResponseError",
    "Endpoint",
    "LLMError",
    "MessageRole",
    "RequestFailedError",
    "RequestMessage",
    "StreamEvent",
    "StreamOutcome",
    "StreamPrinter",
    "send_with_retry",
]
