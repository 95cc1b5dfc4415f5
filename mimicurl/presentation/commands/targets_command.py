"""
Targets Command - list supported browser targets
"""

from typing import Optional

import click
from rich.table import Table

from ..helpers.console_output import console, handle_errors, make_client


@click.command('targets')
@click.option('--browser', '-b', help='Only list this browser')
@click.pass_context
@handle_errors
def targets_command(ctx: click.Context, browser: Optional[str]) -> None:
    """List supported browser/version/platform/architecture combinations."""
    client = make_client(ctx, None)
    targets = client.list_targets(browser)
    if not targets:
        console.print(f"[yellow]No targets for browser '{browser}'[/yellow]")
        return

    table = Table(title=f"Supported targets ({client.matrix.release})")
    table.add_column("Browser", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Platform")
    table.add_column("Arch")
    table.add_column("Target", style="magenta")
    for info in targets:
        version = f"{info.version} (latest)" if info.latest else info.version
        table.add_row(info.browser, version, info.platform, info.architecture, info.target)
    console.print(table)
