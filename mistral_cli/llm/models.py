"""
Core request/response models for chat-completion calls.

This module provides:
- Endpoint description (URL, model, bearer key)
- The outgoing request body
- Partial response shapes used to pull text out of replies

Response models are deliberately partial: every field may be absent, and
callers treat absence as "nothing to show" rather than as an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, field_validator


class MessageRole(Enum):
    """OpenAI-compatible message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Endpoint:
    """One chat-completions endpoint and the credentials to call it."""
    name: str
    url: str
    model: str
    api_key: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}


@dataclass(frozen=True)
class RequestMessage:
    """Message sent to the API. Roles are passed through unvalidated."""
    role: str
    content: str

    @classmethod
    def user(cls, content: str) -> RequestMessage:
        return cls(role=MessageRole.USER.value, content=content)

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ChatRequest:
    """Complete chat request body."""
    model: str
    messages: tuple[RequestMessage, ...] = field(default_factory=tuple)
    stream: bool = False
    max_tokens: int | None = None

    def __post_init__(self) -> None:
        if self.max_tokens is not None and self.max_tokens < 1:
            raise ValueError("max_tokens must be a positive integer or None")

    def to_payload(self) -> dict[str, Any]:
        """Serialise to the JSON body expected by the endpoint."""
        return {
            "model": self.model,
            "messages": [message.to_dict() for message in self.messages],
            "stream": self.stream,
            "max_tokens": self.max_tokens,
        }


# --------------------------------------------------------------------------- #
# Partial response shapes                                                     #
# --------------------------------------------------------------------------- #


class DeltaBody(BaseModel):
    content: str | None = None


class StreamChoice(BaseModel):
    delta: DeltaBody | None = None


class StreamEvent(BaseModel):
    """One ``data:`` payload of a streamed completion."""
    choices: list[Any] = []

    @field_validator("choices")
    @classmethod
    def validate_first_choice(cls, choices: list[Any]) -> list[Any]:
        # Only choices[0] is read; later entries may have any shape
        if choices:
            choices[0] = StreamChoice.model_validate(choices[0])
        return choices

    @property
    def content(self) -> str | None:
        """Text at ``choices[0].delta.content``, or None when absent."""
        if not self.choices or self.choices[0].delta is None:
            return None
        return self.choices[0].delta.content


class ResponseMessage(BaseModel):
    content: str | None = None


class CompletionChoice(BaseModel):
    message: ResponseMessage | None = None


class ChatCompletion(BaseModel):
    """Non-streamed completion body."""
    choices: list[Any] = []

    @field_validator("choices")
    @classmethod
    def validate_first_choice(cls, choices: list[Any]) -> list[Any]:
        if choices:
            choices[0] = CompletionChoice.model_validate(choices[0])
        return choices

    @property
    def content(self) -> str | None:
        """Text at ``choices[0].message.content``, or None when absent."""
        if not self.choices or self.choices[0].message is None:
            return None
        return self.choices[0].message.content


def parse_stream_event(payload: str) -> StreamEvent:
    """Parse one event payload.

    Raises:
        ValidationError: If the payload is not JSON or has an unexpected shape.
    """
    return StreamEvent.model_validate_json(payload)


__all__ = [
    "ChatCompletion",
    "ChatRequest",
    "Endpoint",
    "MessageRole",
    "RequestMessage",
    "StreamEvent",
    "parse_stream_event",
]
