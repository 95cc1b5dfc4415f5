"""
Shared helpers for CLI commands: client wiring, option groups and
error reporting.
"""

import asyncio
import functools
import logging
from typing import Any, Callable, Optional, Sequence, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ...application.client import ImpersonationClient
from ...domain.entities.descriptor import BrowserDescriptor
from ...domain.entities.response import ResponseEnvelope
from ...domain.errors import ImpersonationError
from ...infrastructure.config.settings_manager import SettingsManager


logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)


def descriptor_options(func: Callable) -> Callable:
    """Attach --browser/--version/--platform/--arch options"""
    options = [
        click.option('--browser', '-b', help='Browser to impersonate (chrome, edge, firefox, safari)'),
        click.option('--browser-version', 'version', help='Browser version, e.g. 131 (default: latest)'),
        click.option('--platform', help='Target platform (default: host)'),
        click.option('--arch', 'architecture', help='Target architecture (default: host)'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def request_options(func: Callable) -> Callable:
    """Attach the options shared by request and preview"""
    options = [
        click.argument('url'),
        click.option('--method', '-X', default='GET', show_default=True, help='HTTP method'),
        click.option('--header', '-H', 'headers', multiple=True, help='Header as "Name: value" (repeatable)'),
        click.option('--param', '-p', 'params', multiple=True, help='Query param as key=value (repeatable)'),
        click.option('--data', '-d', help='Request body (prefix with @ to read a file)'),
        click.option('--json', 'json_body', help='JSON request body'),
        click.option('--proxy', help='Proxy URL (http, https, socks4, socks5)'),
        click.option('--timeout', '-t', type=float, help='Timeout in seconds'),
        click.option('--max-redirects', type=int, help='Maximum redirects to follow (0 disables)'),
        click.option('--insecure', '-k', is_flag=True, help='Skip TLS verification'),
        click.option('--binary', 'binary_path', type=click.Path(dir_okay=False), help='Use this binary instead of provisioning'),
        click.option('--curl-arg', 'extra_args', multiple=True, help='Extra raw curl argument, appended last (repeatable)'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_descriptor(
    browser: Optional[str], version: Optional[str], platform: Optional[str], architecture: Optional[str]
) -> Optional[BrowserDescriptor]:
    if not any((browser, version, platform, architecture)):
        return None
    return BrowserDescriptor(
        browser=browser or "chrome", version=version, platform=platform, architecture=architecture
    )


def make_client(ctx: click.Context, descriptor: Optional[BrowserDescriptor], **kwargs) -> ImpersonationClient:
    """Client configured from the settings file, with CLI values on top"""
    manager: SettingsManager = ctx.obj['settings_manager']
    settings = manager.get_settings()
    if descriptor is not None:
        kwargs['descriptor'] = descriptor
    return ImpersonationClient.from_settings(settings, **kwargs)


def parse_headers(values: Sequence[str]) -> Tuple[Tuple[str, str], ...]:
    headers = []
    for value in values:
        name, sep, rest = value.partition(':')
        if not sep:
            # curl style "Name;" sends an empty header
            if value.endswith(';'):
                headers.append((value[:-1].strip(), ""))
                continue
            raise click.BadParameter(f"Header must be 'Name: value', got {value!r}", param_hint='--header')
        headers.append((name.strip(), rest.strip()))
    return tuple(headers)


def parse_params(values: Sequence[str]) -> Tuple[Tuple[str, str], ...]:
    params = []
    for value in values:
        key, sep, rest = value.partition('=')
        if not sep:
            raise click.BadParameter(f"Param must be key=value, got {value!r}", param_hint='--param')
        params.append((key, rest))
    return tuple(params)


def read_body(data: Optional[str]) -> Any:
    if data and data.startswith('@'):
        with open(data[1:], 'rb') as f:
            return f.read()
    return data


def handle_errors(func: Callable) -> Callable:
    """Render engine errors in red and exit with status 1"""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ImpersonationError as e:
            logger.error("%s: %s", type(e).__name__, e)
            err_console.print(f"[red]❌ {type(e).__name__}: {escape(str(e))}[/red]")
            if getattr(e, 'retryable', False):
                err_console.print("[yellow]This error is usually transient; retrying may help[/yellow]")
            raise SystemExit(1)
    return wrapper


def run_async(coro):
    return asyncio.run(coro)


def render_headers(response: ResponseEnvelope) -> None:
    table = Table(title=f"HTTP/{response.http_version} {response.status} {response.status_text}")
    table.add_column("Header", style="cyan")
    table.add_column("Value", style="white")
    for name, value in response.header_list:
        table.add_row(name, value)
    err_console.print(table)
