"""
Error handling for chat-completion requests.

This module provides the error hierarchy raised to the CLI layer:
- Transport failures that survived the retry policy
- Non-success HTTP statuses
- Responses without any choice

Decode anomalies (bad UTF-8, bad JSON, missing content) and streams that end
without the ``[DONE]`` sentinel are not errors and have no exception type.
"""

from __future__ import annotations

from typing import Any


class LLMError(Exception):
    """Base LLM error with rich context."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        model: str = "unknown",
        status_code: int | None = None,
        response_data: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.response_data = response_data or {}


class RequestFailedError(LLMError):
    """Request could not be sent, even after retrying."""

    def __init__(self, message: str, attempts: int, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.attempts = attempts


class APIStatusError(LLMError):
    """Endpoint answered with a non-success HTTP status."""

    def __init__(self, message: str, body: str = "", **kwargs: Any):
        super().__init__(message, **kwargs)
        self.body = body


class EmptyResponseError(LLMError):
    """Non-streamed response carried no choices."""
    pass
