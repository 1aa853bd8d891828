"""
HTTP client for the chat and code-analysis endpoints.

Composes the streaming pipeline: bounded-retry send, chunk decoding and
real-time printing. Also carries the two non-streamed calls (connection test
and code analysis).
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable, Iterable
from contextlib import aclosing
from typing import BinaryIO

import httpx
import structlog
from pydantic import ValidationError

from ..logging_utils import NullStreamObserver, StreamObserver, log_operation
from .exceptions import APIStatusError, EmptyResponseError, LLMError, RequestFailedError
from .models import ChatCompletion, ChatRequest, Endpoint, RequestMessage
from .retry import send_with_retry
from .streaming.models import StreamOutcome
from .streaming.parser import ChunkDecoder
from .streaming.printer import StreamPrinter

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0
CONNECTION_TEST_PROMPT = "Test"


class ChatClient:
    """HTTP client for chat-completion requests, streamed or not."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        observer: StreamObserver | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.observer: StreamObserver = observer or NullStreamObserver()
        self._sleep = sleep
        # No read timeout: a stream may idle between deltas for as long as
        # the model takes
        self.client: httpx.AsyncClient = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, read=None),
            transport=transport,
        )

    @log_operation("chat_stream", context={"stream": True})
    async def chat_stream(
        self,
        endpoint: Endpoint,
        messages: Iterable[RequestMessage],
        *,
        sink: BinaryIO | None = None,
    ) -> StreamOutcome | None:
        """
        Stream a completion and print each delta as it arrives.

        Returns:
            How the stream ended; neither outcome is an error

        Raises:
            RequestFailedError: If the request could not be sent after retrying
            APIStatusError: If the endpoint answered with a non-success status
            OSError: If writing to the sink fails
        """
        request = ChatRequest(
            model=endpoint.model,
            messages=tuple(messages),
            stream=True,
        )
        observer = self.observer.bind(endpoint=endpoint.name)
        response = await self._send(endpoint, request, observer)

        try:
            if not response.is_success:
                body = (await response.aread()).decode("utf-8", errors="replace")
                raise self._status_error(endpoint, response, body)

            decoder = ChunkDecoder(observer=observer)
            printer = StreamPrinter(sink)
            async with aclosing(decoder.decode(self._iter_body(response))) as deltas:
                await printer.render(deltas)
        finally:
            await response.aclose()

        return decoder.outcome

    @log_operation("analyze_code", context={"stream": False})
    async def analyze_code(self, endpoint: Endpoint, code: str) -> str:
        """Send code for analysis and return the reply text."""
        request = ChatRequest(
            model=endpoint.model,
            messages=(RequestMessage.user(code),),
        )
        response = await self._send(
            endpoint, request, self.observer.bind(endpoint=endpoint.name)
        )
        if not response.is_success:
            raise self._status_error(endpoint, response, response.text)

        try:
            completion = ChatCompletion.model_validate_json(response.content)
        except ValidationError as e:
            raise LLMError(
                f"Unexpected response format from {endpoint.name} API: {e}",
                provider=endpoint.name,
                model=endpoint.model,
                status_code=response.status_code,
            ) from e

        content = completion.content
        if content is None:
            raise EmptyResponseError(
                f"Empty response received from {endpoint.name} API",
                provider=endpoint.name,
                model=endpoint.model,
                status_code=response.status_code,
            )
        return content

    async def check_endpoint(
        self, endpoint: Endpoint, *, max_tokens: int | None = None
    ) -> bool:
        """Send a minimal prompt and report whether the endpoint accepted it."""
        request = ChatRequest(
            model=endpoint.model,
            messages=(RequestMessage.user(CONNECTION_TEST_PROMPT),),
            max_tokens=max_tokens,
        )
        response = await self._send(
            endpoint, request, self.observer.bind(endpoint=endpoint.name)
        )
        label = endpoint.name.upper()

        if response.is_success:
            logger.info(f"{label}-API connection successful")
            return True

        logger.error(f"{label}-API connection failed: {response.status_code}")
        logger.debug(f"{label} response body", body=response.text)
        if response.status_code == httpx.codes.UNAUTHORIZED:
            logger.error(f"Hint: Check your {endpoint.name} API key.")
        return False

    @log_operation("test_connection")
    async def test_connection(
        self, probes: Iterable[tuple[Endpoint, int | None]]
    ) -> dict[str, bool]:
        """Check each ``(endpoint, max_tokens)`` probe in order."""
        results: dict[str, bool] = {}
        for endpoint, max_tokens in probes:
            results[endpoint.name] = await self.check_endpoint(
                endpoint, max_tokens=max_tokens
            )
        return results

    async def _send(
        self, endpoint: Endpoint, request: ChatRequest, observer: StreamObserver
    ) -> httpx.Response:
        body = request.to_payload()
        observer.on_request(endpoint.url, body)

        http_request = self.client.build_request(
            "POST", endpoint.url, json=body, headers=endpoint.headers
        )
        try:
            response = await send_with_retry(
                lambda: self.client.send(http_request, stream=request.stream),
                observer=observer,
                sleep=self._sleep,
            )
        except RequestFailedError as e:
            e.provider = endpoint.name
            e.model = endpoint.model
            raise

        observer.on_status(response.status_code)
        return response

    @staticmethod
    async def _iter_body(response: httpx.Response) -> AsyncGenerator[bytes]:
        # A broken connection mid-body ends the stream; what was printed stays
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.TransportError as e:
            logger.error("Streaming failed", error=str(e))

    @staticmethod
    def _status_error(
        endpoint: Endpoint, response: httpx.Response, body: str
    ) -> APIStatusError:
        return APIStatusError(
            f"{endpoint.name} API returned {response.status_code}: {body}",
            body=body,
            provider=endpoint.name,
            model=endpoint.model,
            status_code=response.status_code,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> ChatClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
