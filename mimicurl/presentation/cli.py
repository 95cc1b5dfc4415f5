"""
CLI Presentation Layer - Main Entry Point
Clean routing to modular commands
"""

import logging
from typing import Optional

import click

from ..infrastructure.config.settings_manager import SettingsManager
from .commands import (
    clear_cache_command,
    download_command,
    preview_command,
    request_command,
    targets_command,
)


@click.group()
@click.option('--config', '-c', 'config_path', type=click.Path(dir_okay=False), help='Settings file (default: mimicurl.yaml)')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], verbose: bool):
    """🕵️ mimicurl - HTTP requests with real browser fingerprints"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    ctx.ensure_object(dict)
    ctx.obj['settings_manager'] = SettingsManager(config_path)


# Register commands
cli.add_command(request_command)
cli.add_command(preview_command)
cli.add_command(download_command)
cli.add_command(targets_command)
cli.add_command(clear_cache_command)


if __name__ == "__main__":
    cli()
