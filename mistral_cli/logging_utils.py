"""
Centralized logging utilities for the Mistral CLI.

This module provides the structured logging setup shared by every command and
the observer hooks the streaming path reports through.

Features:
- Structured logging with contextual information
- Operation timing decorator for async calls
- Stream observer interface isolating debug diagnostics from decode logic
"""

from __future__ import annotations

import functools
import logging
import sys
import time
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, Protocol, TypeVar

import structlog

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Type variables for generic decorators
P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]

logger = structlog.get_logger(__name__)


def configure_logging(debug: bool = False) -> None:
    """
    Route log records to stderr at DEBUG or INFO level.

    Stdout is reserved for model output, so nothing logged here may land on it.
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
        force=True,
    )
    # httpx logs every request at INFO; keep it for --debug only
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.INFO)


def log_operation(
    operation: str,
    *,
    log_timing: bool = True,
    context: dict[str, Any] | None = None,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Decorator for logging async operations with structured context.

    Args:
        operation: Description of the operation being performed
        log_timing: Whether to log execution timing
        context: Additional context to include in logs

    Returns:
        Decorated function with logging
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            operation_logger = logger.bind(
                operation=operation,
                function=func.__name__,
                **(context or {}),
            )
            operation_logger.debug("Operation started")

            start_time = time.perf_counter() if log_timing else None

            try:
                result = await func(*args, **kwargs)

                end_log_data: dict[str, Any] = {}
                if log_timing and start_time is not None:
                    duration = round((time.perf_counter() - start_time) * 1000, 2)
                    end_log_data["duration_ms"] = duration

                operation_logger.debug(
                    "Operation completed successfully", **end_log_data
                )
                return result

            except Exception as e:
                error_log_data: dict[str, Any] = {
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                }
                if log_timing and start_time is not None:
                    duration = round((time.perf_counter() - start_time) * 1000, 2)
                    error_log_data["duration_ms"] = duration

                operation_logger.debug("Operation failed", **error_log_data)
                raise

        return wrapper
    return decorator


class StreamObserver(Protocol):
    """Extension points reported by the request/stream pipeline.

    Observers are advisory: they never influence control flow.
    """

    def bind(self, **context: Any) -> StreamObserver: ...

    def on_request(self, url: str, body: dict[str, Any]) -> None: ...

    def on_retry(self, attempt: int, error: BaseException) -> None: ...

    def on_status(self, status_code: int) -> None: ...

    def on_chunk(self, text: str) -> None: ...

    def on_parse_error(self, payload: str, error: Exception) -> None: ...

    def on_missing_content(self, payload: str) -> None: ...

    def on_done(self) -> None: ...

    def on_unterminated(self) -> None: ...


class NullStreamObserver:
    """Observer used when debug output is off."""

    def bind(self, **context: Any) -> NullStreamObserver:
        return self

    def on_request(self, url: str, body: dict[str, Any]) -> None:
        pass

    def on_retry(self, attempt: int, error: BaseException) -> None:
        pass

    def on_status(self, status_code: int) -> None:
        pass

    def on_chunk(self, text: str) -> None:
        pass

    def on_parse_error(self, payload: str, error: Exception) -> None:
        pass

    def on_missing_content(self, payload: str) -> None:
        pass

    def on_done(self) -> None:
        pass

    def on_unterminated(self) -> None:
        pass


class LoggingStreamObserver:
    """Observer that turns every extension point into a structlog debug event."""

    def __init__(self, **context: Any):
        self._logger = logger.bind(**context)

    def bind(self, **context: Any) -> LoggingStreamObserver:
        """Create a new observer with additional context."""
        observer = LoggingStreamObserver()
        observer._logger = self._logger.bind(**context)
        return observer

    def on_request(self, url: str, body: dict[str, Any]) -> None:
        self._logger.debug("request_sent", url=url, body=body)

    def on_retry(self, attempt: int, error: BaseException) -> None:
        self._logger.debug(
            "retry_scheduled", attempt=attempt, error_type=type(error).__name__
        )

    def on_status(self, status_code: int) -> None:
        self._logger.debug("response_status", status=status_code)

    def on_chunk(self, text: str) -> None:
        self._logger.debug("chunk_received", text=text)

    def on_parse_error(self, payload: str, error: Exception) -> None:
        self._logger.debug(
            "payload_parse_failed", data=payload, error_message=str(error)
        )

    def on_missing_content(self, payload: str) -> None:
        self._logger.debug("payload_without_content", data=payload)

    def on_done(self) -> None:
        self._logger.debug("stream_done")

    def on_unterminated(self) -> None:
        self._logger.debug("stream_unterminated")
