"""
Command-line entry point for the Mistral CLI.

Commands: chat, test, code, config (generate, view, load).
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

import typer

from .config import DEFAULT_CONFIG_PATH, Configuration
from .llm.client import ChatClient
from .llm.exceptions import LLMError
from .llm.models import RequestMessage
from .logging_utils import (
    LoggingStreamObserver,
    NullStreamObserver,
    StreamObserver,
    configure_logging,
)

T = TypeVar("T")

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="mistral-cli",
    help="Chat with the Mistral and Codestral APIs.",
    no_args_is_help=True,
)

config_app = typer.Typer(
    name="config",
    help="Manage configuration files.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


@dataclass(frozen=True)
class CLIState:
    """Global options shared by every command."""
    debug: bool
    config_path: str


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug mode for detailed logs.",
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", help="Configuration file to use.",
    ),
) -> None:
    """Send prompts to the Mistral and Codestral chat-completion APIs."""
    configure_logging(debug)
    ctx.obj = CLIState(debug=debug, config_path=config)


def _load_config(file_path: str) -> Configuration:
    try:
        return Configuration(file_path)
    except (OSError, ValueError) as e:
        typer.echo(f"Failed to read configuration file: {e}", err=True)
        raise typer.Exit(1) from None


def _build_client(state: CLIState, config: Configuration) -> ChatClient:
    debug = state.debug or config.debug
    observer: StreamObserver
    if debug:
        if not state.debug:
            configure_logging(True)
        observer = LoggingStreamObserver()
    else:
        observer = NullStreamObserver()
    return ChatClient(timeout=config.timeout, observer=observer)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning request and output failures into exit status 1."""
    try:
        return asyncio.run(coro)
    except LLMError as e:
        message = str(e)
        if e.__cause__ is not None:
            message = f"{message}: {e.__cause__}"
        typer.echo(f"Error: {message}", err=True)
        raise typer.Exit(1) from None
    except OSError as e:
        typer.echo(f"Error: failed to write output: {e}", err=True)
        raise typer.Exit(1) from None


# ── Commands ─────────────────────────────────────────────────────


@app.command()
def chat(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="Prompt to send."),
) -> None:
    """Send a chat prompt and stream the reply."""
    state: CLIState = ctx.obj
    config = _load_config(state.config_path)
    endpoint = config.endpoint_for_prompt(prompt)

    async def _chat() -> None:
        async with _build_client(state, config) as client:
            await client.chat_stream(endpoint, [RequestMessage.user(prompt)])

    _run(_chat())


@app.command("test")
def connection_test(ctx: typer.Context) -> None:
    """Test the API connection."""
    state: CLIState = ctx.obj
    config = _load_config(state.config_path)
    # The general endpoint is probed with a one-token budget
    probes = [
        (config.mistral_endpoint(), 1),
        (config.codestral_endpoint(), None),
    ]

    async def _test() -> dict[str, bool]:
        async with _build_client(state, config) as client:
            return await client.test_connection(probes)

    _run(_test())


@app.command()
def code(
    ctx: typer.Context,
    code: str = typer.Argument(..., help="Code snippet to analyze."),
) -> None:
    """Analyze a code snippet using the API."""
    state: CLIState = ctx.obj
    config = _load_config(state.config_path)
    endpoint = config.codestral_endpoint()

    async def _analyze() -> str:
        async with _build_client(state, config) as client:
            return await client.analyze_code(endpoint, code)

    typer.echo(_run(_analyze()))


@config_app.command("generate")
def config_generate(
    path: str | None = typer.Option(
        None, "--path", "-p", help="Where to write the sample config file.",
    ),
) -> None:
    """Generate a sample configuration file."""
    file_path = path or DEFAULT_CONFIG_PATH
    try:
        Configuration.generate_sample_config(file_path)
    except OSError as e:
        typer.echo(f"Failed to generate config file: {e}", err=True)
        raise typer.Exit(1) from None
    typer.echo(f"Sample config file generated at {file_path}")


@config_app.command("view")
def config_view(ctx: typer.Context) -> None:
    """View the current configuration."""
    state: CLIState = ctx.obj
    config = _load_config(state.config_path)
    for line in config.view_lines():
        typer.echo(line)


@config_app.command("load")
def config_load(
    file_path: str = typer.Option(
        ..., "--file-path", "-f", help="Path to the configuration file.",
    ),
) -> None:
    """Load a configuration file from a specified path."""
    config = _load_config(file_path)
    typer.echo(f"Configuration loaded from {file_path}")
    for line in config.view_lines():
        typer.echo(line)


if __name__ == "__main__":
    app()
