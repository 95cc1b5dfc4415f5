"""
Download Command - provision the impersonation binary ahead of time
"""

from typing import Optional

import click

from ..helpers.console_output import (
    build_descriptor,
    console,
    descriptor_options,
    handle_errors,
    make_client,
    run_async,
)


@click.command('download')
@descriptor_options
@click.option('--force', is_flag=True, help='Download again even if a verified binary is cached')
@click.pass_context
@handle_errors
def download_command(
    ctx: click.Context,
    browser: Optional[str],
    version: Optional[str],
    platform: Optional[str],
    architecture: Optional[str],
    force: bool,
) -> None:
    """Download, extract and verify the binary for a browser target."""
    client = make_client(ctx, build_descriptor(browser, version, platform, architecture))
    resolved = client.resolve()

    with console.status(f"[cyan]Provisioning {resolved.key.value}...[/cyan]"):
        record = run_async(client.ensure_binary(force_refresh=force))

    console.print(f"[green]✅ {record.key.value} ready[/green]")
    console.print(f"   Path: {record.path}")
    console.print(f"   Size: {record.binary_size:,} bytes")
    console.print(f"   SHA-256: {record.binary_sha256}")
