#!/usr/bin/env python3
"""
mimicurl - browser-impersonating HTTP client
Main entry point following Clean Architecture principles

Architecture Layers:
- Domain: Descriptors, request/response entities and pure services
- Application: Use cases and the client facade
- Infrastructure: Binary store, process executor, transport, settings
- Presentation: User interface (CLI)
"""

from mimicurl.presentation.cli import cli

if __name__ == "__main__":
    cli()
