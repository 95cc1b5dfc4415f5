"""
Clear Cache Command - remove provisioned binaries
"""

from typing import Optional

import click

from ...domain.entities.descriptor import BinaryKey
from ..helpers.console_output import console, handle_errors, make_client


def _parse_key(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[BinaryKey]:
    if value is None:
        return None
    try:
        return BinaryKey(value)
    except ValueError as e:
        raise click.BadParameter(str(e), ctx=ctx, param=param) from None


@click.command('clear-cache')
@click.option('--key', callback=_parse_key, help='Only remove this binary key (e.g. v1.0.0-linux-x64)')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
@handle_errors
def clear_cache_command(ctx: click.Context, key: Optional[BinaryKey], yes: bool) -> None:
    """Delete cached impersonation binaries."""
    client = make_client(ctx, None)
    root = client.store.root
    if not yes:
        click.confirm(f"Remove {'binary ' + key.value if key else 'all binaries'} from {root}?", abort=True)

    removed = client.store.clear(key)
    console.print(f"[green]🗑️  Removed {removed} cached binar{'y' if removed == 1 else 'ies'} from {root}[/green]")
