"""chatbridge providers — credential management and the live provider set."""

from __future__ import annotations

import asyncio
import json

import click
from rich.console import Console
from rich.table import Table

from chatbridge.cli._runtime import build_dispatch, get_config, open_db
from chatbridge.core.store.records import CredentialRecord
from chatbridge.providers.base import AdapterRegistry, new_id
from chatbridge.providers.credentials import is_placeholder_key

console = Console()


@click.group("providers", invoke_without_command=True)
@click.pass_context
def providers_group(ctx: click.Context) -> None:
    """LLM provider credentials."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(providers_list)


@providers_group.command("list")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON")
def providers_list(as_json: bool = False) -> None:
    """List the providers built from the configured credentials."""
    config = get_config()
    db = open_db(config)
    try:
        dispatch = asyncio.run(build_dispatch(config, db))
    finally:
        if db is not None:
            db.close()

    rows = dispatch.list_providers()
    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return

    table = Table(title="LLM Providers", show_lines=False)
    table.add_column("Provider", style="cyan")
    table.add_column("Mode")
    table.add_column("Models", style="dim")
    for row in rows:
        mode = "[yellow]demo[/yellow]" if row["demo"] else "[green]live[/green]"
        table.add_row(row["name"], mode, ", ".join(row["models"]))
    console.print(table)

    if not dispatch.registry.has_real_providers():
        console.print(
            "\n[dim]No usable API key found. Run "
            "[cyan]chatbridge providers add <provider> <key>[/cyan] "
            "or set OPENAI_API_KEY / ANTHROPIC_API_KEY.[/dim]"
        )


@providers_group.command("add")
@click.argument("provider")
@click.argument("key")
@click.option("--api-url", default="", help="Override the vendor API base URL")
@click.option("--name", default="", help="Display name for this credential")
@click.option("--disabled", is_flag=True, default=False, help="Store without enabling")
def providers_add(provider: str, key: str, api_url: str, name: str, disabled: bool) -> None:
    """Store an API key for a provider in the chatbridge database."""
    provider = provider.lower()
    known = sorted(AdapterRegistry.list_all())
    if provider not in known:
        raise click.BadParameter(
            f"unknown provider {provider!r}; choose from {', '.join(known)}",
            param_hint="PROVIDER",
        )

    config = get_config()
    db = open_db(config, create=True)
    assert db is not None
    try:
        db.save_credential(
            CredentialRecord(
                id=new_id(),
                name=name or f"{provider} key",
                value=key,
                provider=provider,
                api_url=api_url,
                enabled=not disabled,
            )
        )
    finally:
        db.close()

    console.print(f"[green]Stored credential for {provider}.[/green]")
    if is_placeholder_key(key):
        console.print(
            "[yellow]This key looks like a placeholder and will be ignored "
            "until replaced with a real one.[/yellow]"
        )
