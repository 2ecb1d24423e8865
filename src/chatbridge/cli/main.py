"""
chatbridge CLI entry point.

Commands:
  chatbridge version                          — show version and registered adapters
  chatbridge providers [list] [--json]        — providers built from current credentials
  chatbridge providers add <provider> <key>   — store a credential
  chatbridge models [list] [--json]           — enabled chat models in the catalog
  chatbridge models add <id> <value> <prov>   — add or update a catalog entry
  chatbridge ask <model> <prompt> [--stream]  — one-shot chat completion
"""

from __future__ import annotations

import click

from chatbridge import __version__


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "--version", "-V", message="chatbridge %(version)s")
@click.option(
    "--log-level", default="WARNING", hidden=True, help="Log level for structured logging."
)
@click.option("--log-json", is_flag=True, default=False, hidden=True, help="Emit JSON log lines.")
def cli(log_level: str, log_json: bool) -> None:
    """chatbridge — one chat interface over interchangeable LLM providers."""
    from chatbridge.core.logging import configure_logging

    configure_logging(level=log_level, json_output=log_json)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

from chatbridge.cli._ask import ask_cmd  # noqa: E402
from chatbridge.cli._models import models_group  # noqa: E402
from chatbridge.cli._providers import providers_group  # noqa: E402
from chatbridge.cli._version import version_cmd  # noqa: E402

cli.add_command(version_cmd)
cli.add_command(providers_group)
cli.add_command(models_group)
cli.add_command(ask_cmd)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
