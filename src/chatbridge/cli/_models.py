"""chatbridge models — the model catalog."""

from __future__ import annotations

import asyncio
import dataclasses
import json

import click
from rich.console import Console
from rich.table import Table

from chatbridge.cli._runtime import build_dispatch, get_config, open_db
from chatbridge.core.config import ChatBridgeConfig
from chatbridge.core.store.database import Database
from chatbridge.core.store.records import ChatModelRecord
from chatbridge.providers.base import ModelDescriptor

console = Console()


async def _load_models(config: ChatBridgeConfig, db: Database | None) -> list[ModelDescriptor]:
    dispatch = await build_dispatch(config, db)
    return await dispatch.get_models()


@click.group("models", invoke_without_command=True)
@click.pass_context
def models_group(ctx: click.Context) -> None:
    """Model catalog."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(models_list)


@models_group.command("list")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON")
def models_list(as_json: bool = False) -> None:
    """List enabled chat models from the catalog."""
    config = get_config()
    db = open_db(config)
    try:
        models = asyncio.run(_load_models(config, db))
    finally:
        if db is not None:
            db.close()

    if as_json:
        click.echo(json.dumps([dataclasses.asdict(m) for m in models], indent=2))
        return

    if not models:
        console.print("[dim]The model catalog is empty.[/dim]")
        console.print(
            "\nRun [cyan]chatbridge models add <id> <wire-name> <provider>[/cyan] to add one."
        )
        return

    table = Table(title="Chat Models", show_lines=False)
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Provider")
    table.add_column("Max tokens", justify="right", style="dim")
    for m in models:
        table.add_row(m.id, m.name, m.provider, str(m.max_tokens or "-"))
    console.print(table)


@models_group.command("add")
@click.argument("model_id")
@click.argument("value")
@click.argument("provider")
@click.option("--name", default="", help="Display name")
@click.option("--max-tokens", default=0, type=int, help="Maximum output tokens")
@click.option("--sort", "sort_num", default=0, type=int, help="Catalog sort position")
@click.option("--disabled", is_flag=True, default=False, help="Store without enabling")
def models_add(
    model_id: str,
    value: str,
    provider: str,
    name: str,
    max_tokens: int,
    sort_num: int,
    disabled: bool,
) -> None:
    """Add or update a catalog entry mapping MODEL_ID to VALUE on PROVIDER."""
    config = get_config()
    db = open_db(config, create=True)
    assert db is not None
    try:
        db.save_model(
            ChatModelRecord(
                id=model_id,
                name=name or model_id,
                value=value,
                provider=provider.lower(),
                enabled=not disabled,
                max_tokens=max_tokens,
                sort_num=sort_num,
            )
        )
    finally:
        db.close()
    console.print(f"[green]Saved model {model_id} → {provider.lower()}/{value}.[/green]")
