"""chatbridge ask — one-shot chat completion from the terminal."""

from __future__ import annotations

import asyncio
import sys

import click
from rich.console import Console

from chatbridge.cli._runtime import build_dispatch, get_config, open_db
from chatbridge.core.config import ChatBridgeConfig
from chatbridge.core.constants import ExitCode
from chatbridge.core.exceptions import ConfigurationError, ResolutionError, UpstreamError
from chatbridge.providers.base import ChatMessage, ChatRequest, FinishReason, new_id

console = Console()
err_console = Console(stderr=True)


async def _ask(
    config: ChatBridgeConfig, model: str, messages: list[ChatMessage], stream: bool
) -> FinishReason:
    db = open_db(config)
    try:
        dispatch = await build_dispatch(config, db)
        request = ChatRequest(
            conversation_id=new_id(), messages=messages, model=model, stream=stream
        )

        if not stream:
            response = await dispatch.chat(request)
            click.echo(response.content)
            return response.finish_reason

        finish = FinishReason.NONE
        async with await dispatch.stream_chat(request) as channel:
            async for chunk in channel:
                click.echo(chunk.content, nl=False)
                if chunk.is_terminal:
                    finish = chunk.finish_reason
                    if finish is FinishReason.ERROR:
                        err_console.print(
                            f"\n[red]Stream failed:[/red] {chunk.metadata.get('error', '')}"
                        )
        click.echo()
        return finish
    finally:
        if db is not None:
            db.close()


@click.command("ask")
@click.argument("model")
@click.argument("prompt")
@click.option("--system", "system_prompt", default="", help="System message sent first")
@click.option("--stream", is_flag=True, default=False, help="Print the reply as it arrives")
def ask_cmd(model: str, prompt: str, system_prompt: str, stream: bool) -> None:
    """Send PROMPT to MODEL (catalog id or vendor model name) and print the reply."""
    config = get_config()
    messages: list[ChatMessage] = []
    if system_prompt:
        messages.append(ChatMessage.create("system", system_prompt))
    messages.append(ChatMessage.create("user", prompt))

    try:
        finish = asyncio.run(_ask(config, model, messages, stream))
    except ConfigurationError as exc:
        err_console.print(f"[red]Not configured:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)
    except ResolutionError as exc:
        err_console.print(f"[red]Unknown model:[/red] {exc}")
        sys.exit(ExitCode.ERROR)
    except UpstreamError as exc:
        err_console.print(f"[red]Provider error:[/red] {exc}")
        sys.exit(ExitCode.NETWORK_ERROR)

    if finish is FinishReason.ERROR:
        sys.exit(ExitCode.NETWORK_ERROR)
    if finish is FinishReason.LENGTH:
        err_console.print("[yellow]Reply truncated at the token limit.[/yellow]")
