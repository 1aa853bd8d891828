#!/usr/bin/env python3
"""
Tests for the chat client against a mocked HTTP transport.
"""

import io
import json

import httpx
import pytest
from structlog.testing import capture_logs

from mistral_cli.llm.client import ChatClient
from mistral_cli.llm.exceptions import (
    APIStatusError,
    EmptyResponseError,
    LLMError,
    RequestFailedError,
)
from mistral_cli.llm.models import Endpoint, RequestMessage
from mistral_cli.llm.streaming.models import StreamOutcome
from mistral_cli.logging_utils import LoggingStreamObserver

MISTRAL = Endpoint(
    name="Mistral",
    url="https://mistral.test/v1/chat/completions",
    model="mistral-large-latest",
    api_key="mistral-secret",
)
CODESTRAL = Endpoint(
    name="Codestral",
    url="https://codestral.test/v1/chat/completions",
    model="codestral-latest",
    api_key="codestral-secret",
)


def delta(text):
    return f'data: {json.dumps({"choices": [{"delta": {"content": text}}]})}\n'.encode()


async def stream_body(*chunks, error=None):
    for chunk in chunks:
        yield chunk
    if error is not None:
        raise error


async def no_sleep(delay):
    pass


def make_client(handler, **kwargs):
    return ChatClient(transport=httpx.MockTransport(handler), sleep=no_sleep, **kwargs)


class TestChatStream:
    """Streaming requests end to end."""

    @pytest.mark.asyncio
    async def test_streams_deltas_to_sink(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                content=stream_body(delta("Hel"), delta("lo"), b"data: [DONE]\n"),
            )

        sink = io.BytesIO()
        async with make_client(handler) as client:
            outcome = await client.chat_stream(
                MISTRAL, [RequestMessage.user("hi")], sink=sink
            )

        assert sink.getvalue() == b"Hello\n"
        assert outcome is StreamOutcome.COMPLETED

        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == MISTRAL.url
        assert request.headers["authorization"] == "Bearer mistral-secret"
        assert json.loads(request.content) == {
            "model": "mistral-large-latest",
            "messages": [{"role": "user", "content": "hi"}],
            "stream": True,
            "max_tokens": None,
        }

    @pytest.mark.asyncio
    async def test_retries_connection_errors(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, content=stream_body(b"data: [DONE]\n"))

        sink = io.BytesIO()
        async with make_client(handler) as client:
            await client.chat_stream(MISTRAL, [RequestMessage.user("hi")], sink=sink)

        assert len(attempts) == 3
        assert sink.getvalue() == b"\n"

    @pytest.mark.asyncio
    async def test_gives_up_after_three_attempts(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectTimeout("timed out", request=request)

        sink = io.BytesIO()
        async with make_client(handler) as client:
            with pytest.raises(RequestFailedError) as exc_info:
                await client.chat_stream(
                    CODESTRAL, [RequestMessage.user("hi")], sink=sink
                )

        assert len(attempts) == 3
        assert exc_info.value.provider == "Codestral"
        assert sink.getvalue() == b""

    @pytest.mark.asyncio
    async def test_error_status_raises_without_printing(self):
        def handler(request):
            return httpx.Response(401, json={"message": "Unauthorized"})

        sink = io.BytesIO()
        async with make_client(handler) as client:
            with pytest.raises(APIStatusError) as exc_info:
                await client.chat_stream(MISTRAL, [RequestMessage.user("hi")], sink=sink)

        assert exc_info.value.status_code == 401
        assert "Unauthorized" in exc_info.value.body
        assert sink.getvalue() == b""

    @pytest.mark.asyncio
    async def test_broken_body_ends_stream_as_unterminated(self):
        def handler(request):
            return httpx.Response(
                200,
                content=stream_body(
                    delta("partial"), error=httpx.ReadError("connection reset")
                ),
            )

        sink = io.BytesIO()
        async with make_client(handler) as client:
            outcome = await client.chat_stream(
                MISTRAL, [RequestMessage.user("hi")], sink=sink
            )

        assert sink.getvalue() == b"partial\n"
        assert outcome is StreamOutcome.UNTERMINATED


class TestAnalyzeCode:
    """Non-streamed code analysis."""

    @pytest.mark.asyncio
    async def test_returns_first_choice_content(self):
        def handler(request):
            body = json.loads(request.content)
            assert body["stream"] is False
            assert body["messages"] == [{"role": "user", "content": "def f(): pass"}]
            return httpx.Response(
                200, json={"choices": [{"message": {"content": "Looks fine."}}]}
            )

        async with make_client(handler) as client:
            result = await client.analyze_code(CODESTRAL, "def f(): pass")
        assert result == "Looks fine."

    @pytest.mark.asyncio
    async def test_later_choices_are_not_validated(self):
        def handler(request):
            return httpx.Response(
                200,
                json={"choices": [{"message": {"content": "First."}}, {"message": 3}]},
            )

        async with make_client(handler) as client:
            result = await client.analyze_code(CODESTRAL, "x = 1")
        assert result == "First."

    @pytest.mark.asyncio
    async def test_empty_choices(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        async with make_client(handler) as client:
            with pytest.raises(EmptyResponseError, match="Codestral"):
                await client.analyze_code(CODESTRAL, "x = 1")

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>oops</html>")

        async with make_client(handler) as client:
            with pytest.raises(LLMError, match="Unexpected response format"):
                await client.analyze_code(CODESTRAL, "x = 1")

    @pytest.mark.asyncio
    async def test_error_status(self):
        def handler(request):
            return httpx.Response(500, text="boom")

        async with make_client(handler) as client:
            with pytest.raises(APIStatusError) as exc_info:
                await client.analyze_code(CODESTRAL, "x = 1")
        assert exc_info.value.status_code == 500


class TestConnectionCheck:
    """Connection test against both endpoints."""

    @pytest.mark.asyncio
    async def test_reports_each_endpoint(self):
        bodies = {}

        def handler(request):
            bodies[request.url.host] = json.loads(request.content)
            if request.url.host == "codestral.test":
                return httpx.Response(401, json={"message": "Unauthorized"})
            return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

        async with make_client(handler) as client:
            results = await client.test_connection([(MISTRAL, 1), (CODESTRAL, None)])

        assert results == {"Mistral": True, "Codestral": False}
        assert bodies["mistral.test"]["max_tokens"] == 1
        assert bodies["codestral.test"]["max_tokens"] is None
        assert bodies["mistral.test"]["messages"] == [{"role": "user", "content": "Test"}]


class TestObserverHooks:
    """The client reports request and status to its observer."""

    @pytest.mark.asyncio
    async def test_request_and_status_reported(self):
        seen = []

        class Observer:
            def bind(self, **context):
                seen.append(("bind", context["endpoint"]))
                return self

            def on_request(self, url, body):
                seen.append(("request", url))

            def on_retry(self, attempt, error):
                seen.append(("retry", attempt))

            def on_status(self, status_code):
                seen.append(("status", status_code))

            def on_chunk(self, text):
                pass

            def on_parse_error(self, payload, error):
                pass

            def on_missing_content(self, payload):
                pass

            def on_done(self):
                seen.append(("done", None))

            def on_unterminated(self):
                seen.append(("unterminated", None))

        def handler(request):
            return httpx.Response(200, content=stream_body(b"data: [DONE]\n"))

        async with make_client(handler, observer=Observer()) as client:
            await client.chat_stream(MISTRAL, [], sink=io.BytesIO())

        assert seen == [
            ("bind", "Mistral"),
            ("request", MISTRAL.url),
            ("status", 200),
            ("done", None),
        ]

    @pytest.mark.asyncio
    async def test_debug_events_carry_endpoint(self):
        def handler(request):
            return httpx.Response(
                200, content=stream_body(delta("hi"), b"data: [DONE]\n")
            )

        with capture_logs() as logs:
            async with make_client(handler, observer=LoggingStreamObserver()) as client:
                await client.chat_stream(CODESTRAL, [], sink=io.BytesIO())

        observed = [entry for entry in logs if "endpoint" in entry]
        assert [entry["event"] for entry in observed] == [
            "request_sent",
            "response_status",
            "chunk_received",
            "chunk_received",
            "stream_done",
        ]
        assert {entry["endpoint"] for entry in observed} == {"Codestral"}

        operation = [entry for entry in logs if entry.get("operation") == "chat_stream"]
        assert operation and all(entry["stream"] is True for entry in operation)
