"""Command-line interface for polychat."""

from __future__ import annotations

import asyncio
import logging

import click
from rich.console import Console
from rich.table import Table

from polychat.config import load_config
from polychat.context import ChatContext, Conversation
from polychat.errors import ChatError
from polychat.providers.catalog import list_providers
from polychat.service import ChatService
from polychat.types import ReadResult, RequestMessage

console = Console()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """polychat - one chat client for many LLM vendors."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command("providers")
def providers_cmd() -> None:
    """List built-in providers."""
    table = Table(title="Providers")
    table.add_column("Name", style="bold")
    table.add_column("Wire")
    table.add_column("Models", justify="right")
    table.add_column("Default model")
    for p in list_providers():
        table.add_row(p.name, p.wire.value, str(len(p.models)), p.default_model().name)
    console.print(table)


async def _run_chat(service: ChatService, prompt: str) -> ReadResult:
    thinking = False

    def on_progress(content: str, reasoning: str) -> None:
        nonlocal thinking
        if reasoning:
            thinking = True
            console.print(reasoning, style="dim", end="", markup=False, highlight=False)
        if content:
            if thinking:
                console.print()
                thinking = False
            console.print(content, end="", markup=False, highlight=False)

    def on_tool_calls(name: str) -> None:
        console.print(f"\n[cyan]> calling {name}[/cyan]")

    async with service:
        return await service.send_message(
            [RequestMessage(role="user", content=prompt)],
            on_progress=on_progress,
            on_tool_calls=on_tool_calls,
        )


@main.command("chat")
@click.argument("prompt")
@click.option("--provider", "-p", default=None, help="Provider name (see `polychat providers`)")
@click.option("--model", "-m", default=None, help="Model name")
@click.option("--system", "-s", "system_message", default=None, help="System message")
@click.option("--temperature", "-t", type=float, default=None, help="Sampling temperature")
@click.option("--max-tokens", type=int, default=None, help="Maximum output tokens")
@click.option("--no-stream", is_flag=True, help="Request a non-streaming response")
@click.option("--config", "-c", "config_path", default=None,
              help="Path to polychat.yaml (auto-detected from CWD or ~/.config/polychat/)")
def chat_cmd(
    prompt: str,
    provider: str | None,
    model: str | None,
    system_message: str | None,
    temperature: float | None,
    max_tokens: int | None,
    no_stream: bool,
    config_path: str | None,
) -> None:
    """Send PROMPT and stream the reply."""
    try:
        config, config_file = load_config(config_path)
    except (FileNotFoundError, ChatError) as e:
        raise click.ClickException(str(e)) from e
    if config_file:
        console.print(f"[dim]Config: {config_file}[/dim]")

    context = ChatContext(
        Conversation(
            provider=provider or config.provider,
            model=model or "",
            temperature=temperature,
            max_tokens=max_tokens,
            system_message=system_message,
            stream=not no_stream,
        ),
        config,
    )
    console.print(f"[dim]{context.provider.name} / {context.model.name}[/dim]")

    try:
        result = asyncio.run(_run_chat(ChatService(context), prompt))
    except ChatError as e:
        console.print(f"\n[red]Error:[/red] {e}")
        if e.hint:
            console.print(f"[dim]{e.hint}[/dim]")
        raise SystemExit(1) from e

    console.print()
    console.print(
        f"[dim]tokens: {result.input_tokens} in / {result.output_tokens} out[/dim]"
    )


if __name__ == "__main__":
    main()
