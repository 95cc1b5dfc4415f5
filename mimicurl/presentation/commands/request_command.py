"""
Request Command - issue one impersonated HTTP request
"""

import json
from typing import Optional, Tuple

import click

from ..helpers.console_output import (
    build_descriptor,
    descriptor_options,
    handle_errors,
    make_client,
    parse_headers,
    parse_params,
    read_body,
    render_headers,
    request_options,
    run_async,
    err_console,
)


def request_kwargs(headers, params, data, json_body, proxy, timeout, max_redirects, insecure, extra_args) -> dict:
    """Per-request keyword arguments, leaving unset options to client defaults"""
    if data is not None and json_body is not None:
        raise click.UsageError("Use either --data or --json, not both")
    kwargs = {'headers': parse_headers(headers), 'params': parse_params(params)}
    if json_body is not None:
        try:
            kwargs['data'] = json.loads(json_body)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"Invalid JSON: {e}", param_hint='--json')
    elif data is not None:
        kwargs['data'] = read_body(data)
    if proxy:
        kwargs['proxy'] = proxy
    if timeout is not None:
        kwargs['timeout'] = timeout
    if max_redirects is not None:
        kwargs['max_redirects'] = max_redirects
    if insecure:
        kwargs['insecure_tls'] = True
    if extra_args:
        kwargs['extra_curl_args'] = list(extra_args)
    return kwargs


@click.command('request')
@request_options
@descriptor_options
@click.option('--include', '-i', 'show_headers', is_flag=True, help='Show response headers')
@click.option('--output', '-o', type=click.Path(dir_okay=False, writable=True), help='Write body to file')
@click.option('--force-refresh', is_flag=True, help='Re-download the binary before the request')
@click.pass_context
@handle_errors
def request_command(
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
    show_headers: bool,
    output: Optional[str],
    force_refresh: bool,
) -> None:
    """
    Issue an HTTP request that looks like a real browser.

    The body goes to stdout (or --output); headers and diagnostics go to stderr.

    Examples:
        mimicurl request https://example.com -b firefox -i
        mimicurl request https://api.example.com/items -X POST --json '{"a": 1}'
    """
    descriptor = build_descriptor(browser, version, platform, architecture)
    client = make_client(ctx, descriptor, binary_path=binary_path)
    kwargs = request_kwargs(headers, params, data, json_body, proxy, timeout, max_redirects, insecure, extra_args)

    spec = client.build_spec(url, method=method, **kwargs)
    response = run_async(client.send(spec, force_refresh=force_refresh))

    if show_headers:
        render_headers(response)
    if response.redirects:
        err_console.print(f"[dim]Followed {response.redirects} redirect(s)[/dim]")
    if response.decode_failed:
        err_console.print(f"[yellow]⚠️  Body could not be decoded: {response.decode_error}[/yellow]")

    if output:
        with open(output, 'wb') as f:
            f.write(response.raw_body)
        err_console.print(f"[green]✅ Saved {len(response.raw_body)} bytes to {output}[/green]")
    else:
        stdout = click.get_binary_stream("stdout")
        stdout.write(response.raw_body)
        stdout.flush()

    if not response.ok:
        ctx.exit(1)
