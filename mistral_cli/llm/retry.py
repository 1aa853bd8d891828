"""
Bounded retry for sending requests.

Only failures to obtain a response at all are retried. A response with an
error status is a successful send as far as this module is concerned.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
import structlog

from ..logging_utils import NullStreamObserver, StreamObserver
from .exceptions import RequestFailedError

logger = structlog.get_logger(__name__)

# Constants
MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 2.0

T = TypeVar("T")


async def send_with_retry(
    issue: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = MAX_ATTEMPTS,
    delay: float = RETRY_DELAY_SECONDS,
    retry_on: tuple[type[BaseException], ...] = (httpx.TransportError,),
    observer: StreamObserver | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """
    Await ``issue()`` until it succeeds or attempts run out.

    Waits a fixed ``delay`` between attempts. Exceptions outside ``retry_on``
    propagate on the first occurrence.

    Args:
        issue: Zero-argument coroutine factory; called once per attempt
        max_attempts: Total number of attempts, including the first
        delay: Seconds to wait before each retry
        retry_on: Exception types counted as transient
        observer: Receives one ``on_retry`` call per scheduled retry
        sleep: Awaitable sleep, injectable for tests

    Returns:
        Whatever ``issue()`` returned on the successful attempt

    Raises:
        RequestFailedError: If every attempt failed transiently; chained to
            the last underlying error
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    observer = observer or NullStreamObserver()

    for attempt in range(1, max_attempts + 1):
        try:
            return await issue()
        except retry_on as e:
            if attempt >= max_attempts:
                raise RequestFailedError(
                    "Failed to send request after multiple attempts",
                    attempts=attempt,
                ) from e

            logger.error("Retry attempt", attempt=attempt, error=str(e))
            observer.on_retry(attempt, e)
            await sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover
