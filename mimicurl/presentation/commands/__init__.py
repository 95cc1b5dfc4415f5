"""
Presentation Commands Module
All CLI command implementations
"""

from .request_command import request_command
from .preview_command import preview_command
from .download_command import download_command
from .targets_command import targets_command
from .clear_cache_command import clear_cache_command

__all__ = [
    'request_command',
    'preview_command',
    'download_command',
    'targets_command',
    'clear_cache_command',
]
