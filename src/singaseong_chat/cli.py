"""Command line interface: interactive streaming chat and helper commands."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import click
from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.table import Table

from singaseong_chat.client import ChatClient
from singaseong_chat.config import ClientConfig, load_config
from singaseong_chat.errors import ChatError
from singaseong_chat.history import ConversationHistory
from singaseong_chat.keywords import process_file

console = Console()

_HISTORY_PATH = Path(os.path.expanduser("~/.singaseong_chat/history"))


def _load(config_path: str | None) -> ClientConfig:
    try:
        config, config_file = load_config(config_path)
    except (FileNotFoundError, ChatError) as e:
        raise click.ClickException(str(e)) from e
    if config_file:
        console.print(f"[dim]Config: {config_file}[/dim]")
    return config


def _print_chunk(chunk: dict[str, str]) -> None:
    console.print(chunk["response"], end="", markup=False, highlight=False)


async def _ask(config: ClientConfig, prompt: str, model: str | None, stream: bool) -> str:
    async with ChatClient(config) as client:
        result = await client.send_message(
            prompt,
            model=model,
            stream=stream,
            on_chunk=_print_chunk if stream else None,
        )
    if not stream:
        console.print(result.full_response, markup=False, highlight=False)
    else:
        console.print()
    return result.full_response


def _handle_command(text: str, state: dict, history: ConversationHistory) -> str | None:
    """Handle a slash command.  Returns ``"quit"`` to leave the REPL."""
    name, _, arg = text.partition(" ")
    if name in ("/quit", "/exit"):
        return "quit"
    if name == "/reset":
        history.clear()
        console.print("[dim]History cleared.[/dim]")
    elif name == "/model":
        if arg.strip():
            state["model"] = arg.strip()
            history.clear()
            console.print(f"[dim]Switched to {state['model']}, history cleared.[/dim]")
        else:
            console.print(f"[dim]Model: {state['model']}[/dim]")
    elif name == "/help":
        console.print(
            "[dim]/model [name]  show or switch model\n"
            "/reset         clear conversation history\n"
            "/quit          exit[/dim]"
        )
    else:
        console.print(f"[yellow]Unknown command: {name}[/yellow]")
    return None


async def _repl(config: ClientConfig, model: str | None, stream: bool) -> None:
    state = {"model": model or config.default_model}
    history = ConversationHistory()
    _HISTORY_PATH.parent.mkdir(parents=True, exist_ok=True)
    session: PromptSession = PromptSession(history=FileHistory(str(_HISTORY_PATH)))

    async with ChatClient(config) as client:
        try:
            await client.ping()
            console.print(f"[green]{state['model']} connected.[/green]")
        except ChatError as e:
            console.print(f"[red]{state['model']} connection failed: {e}[/red]")

        while True:
            try:
                text = (await session.prompt_async("❯ ")).strip()
            except (EOFError, KeyboardInterrupt):
                break
            if not text:
                continue
            if text.startswith("/"):
                if _handle_command(text, state, history) == "quit":
                    break
                continue

            try:
                result = await client.send_message(
                    text,
                    history.messages,
                    model=state["model"],
                    stream=stream,
                    on_chunk=_print_chunk if stream else None,
                )
            except ChatError as e:
                console.print(f"\n[red]Error: {e}[/red]")
                continue
            if not stream:
                console.print(result.full_response, markup=False, highlight=False)
            console.print()
            history.record_exchange(text, result.full_response)

    console.print("[dim]Goodbye![/dim]")


@click.group()
@click.option("--config", "-c", "config_path", default=None,
              help="Path to singaseong_chat.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool):
    """Streaming chat client for Ollama-compatible endpoints."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)
    ctx.obj = {"config_path": config_path}


@main.command()
@click.option("--model", "-m", default=None, help="Model name")
@click.option("--no-stream", is_flag=True, help="Wait for the whole reply")
@click.pass_context
def chat(ctx: click.Context, model: str | None, no_stream: bool):
    """Interactive chat session."""
    config = _load(ctx.obj["config_path"])
    asyncio.run(_repl(config, model, not no_stream))


@main.command()
@click.argument("prompt")
@click.option("--model", "-m", default=None, help="Model name")
@click.option("--no-stream", is_flag=True, help="Wait for the whole reply")
@click.pass_context
def ask(ctx: click.Context, prompt: str, model: str | None, no_stream: bool):
    """Send a single PROMPT and print the reply."""
    config = _load(ctx.obj["config_path"])
    try:
        asyncio.run(_ask(config, prompt, model, not no_stream))
    except ChatError as e:
        raise click.ClickException(str(e)) from e


@main.command()
@click.pass_context
def models(ctx: click.Context):
    """List models available on the server."""
    config = _load(ctx.obj["config_path"])

    async def _list() -> list[str]:
        async with ChatClient(config) as client:
            return await client.list_models()

    try:
        names = asyncio.run(_list())
    except ChatError as e:
        raise click.ClickException(str(e)) from e

    table = Table(title="Models")
    table.add_column("Name")
    table.add_column("Default")
    for name in names:
        table.add_row(name, "✓" if name == config.default_model else "")
    console.print(table)


@main.command()
@click.pass_context
def ping(ctx: click.Context):
    """Check that the API is reachable."""
    config = _load(ctx.obj["config_path"])

    async def _ping() -> None:
        async with ChatClient(config) as client:
            await client.ping()

    try:
        asyncio.run(_ping())
    except ChatError as e:
        raise click.ClickException(f"Connection failed: {e}") from e
    console.print(f"[green]Connected to {config.base_url}[/green]")


@main.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("output_path", type=click.Path(dir_okay=False))
@click.option("--limit", "-n", default=None, type=int, help="Maximum keywords per item")
@click.pass_context
def keywords(ctx: click.Context, input_path: str, output_path: str, limit: int | None):
    """Clean up the keywords of the documents in INPUT_PATH."""
    config = _load(ctx.obj["config_path"])
    try:
        process_file(input_path, output_path, limit or config.keyword_limit)
    except ValueError as e:
        raise click.ClickException(f"Keyword processing failed: {e}") from e
    console.print(f"[green]Keywords written to {output_path}[/green]")


if __name__ == "__main__":
    main()
