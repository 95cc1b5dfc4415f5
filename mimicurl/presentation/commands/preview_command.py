"""
Preview Command - show the exact command a request would run
"""

import json
from typing import Optional, Tuple

import click

from ..helpers.console_output import (
    build_descriptor,
    console,
    descriptor_options,
    handle_errors,
    make_client,
    request_options,
)
from .request_command import request_kwargs


@click.command('preview')
@request_options
@descriptor_options
@click.option('--as-json', is_flag=True, help='Print the argument vector as JSON')
@click.pass_context
@handle_errors
def preview_command(
    ctx: click.Context,
    url: str,
    method: str,
    headers: Tuple[str, ...],
    params: Tuple[str, ...],
    data: Optional[str],
    json_body: Optional[str],
    proxy: Optional[str],
    timeout: Optional[float],
    max_redirects: Optional[int],
    insecure: bool,
    binary_path: Optional[str],
    extra_args: Tuple[str, ...],
    browser: Optional[str],
    version: Optional[str],
    platform: Optional[str],
    architecture: Optional[str],
    as_json: bool,
) -> None:
    """Print the command line for a request without running it."""
    descriptor = build_descriptor(browser, version, platform, architecture)
    client = make_client(ctx, descriptor, binary_path=binary_path)
    kwargs = request_kwargs(headers, params, data, json_body, proxy, timeout, max_redirects, insecure, extra_args)

    preview = client.preview(url, method=method, **kwargs)

    if as_json:
        click.echo(json.dumps(preview.to_dict(), indent=2))
        return

    console.print(f"[cyan]Target:[/cyan] {preview.resolved.target} ({preview.resolved.key.value})")
    if not preview.binary_ready:
        console.print("[yellow]Binary not provisioned yet; it will be downloaded on first request[/yellow]")
    click.echo(preview.command_line)
