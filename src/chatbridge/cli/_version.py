"""Version information CLI command."""

from __future__ import annotations

import click
from rich.console import Console

from chatbridge import __version__

console = Console()


@click.command("version")
@click.option("--json", "as_json", is_flag=True, default=False)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Show install path, config path and registered adapters",
)
def version_cmd(as_json: bool, verbose: bool) -> None:
    """Show version information and registered adapters."""
    import importlib.util
    import platform
    import sys as _sys

    from chatbridge.core.config import _config_file_path
    from chatbridge.providers.base import AdapterRegistry

    spec = importlib.util.find_spec("chatbridge")
    install_path = str(spec.origin) if spec and spec.origin else "unknown"
    config_path = str(_config_file_path())
    adapters = sorted(AdapterRegistry.list_all())

    if as_json:
        import json

        data: dict = {
            "chatbridge": __version__,
            "python": _sys.version.split()[0],
            "platform": _sys.platform,
            "arch": platform.machine(),
            "adapters": adapters,
        }
        if verbose:
            data["install_path"] = install_path
            data["config_path"] = config_path
        click.echo(json.dumps(data, indent=2))
    else:
        console.print(f"chatbridge {__version__}")
        console.print(f"Python {_sys.version.split()[0]}")
        console.print(f"Platform: {_sys.platform} {platform.machine()}")
        if verbose:
            console.print(f"Install:  {install_path}")
            console.print(f"Config:   {config_path}")
        console.print(f"\nAdapters: {', '.join(adapters)}")
