"""
Process Executor - runs one impersonation process per request.

The argument vector goes straight to ``create_subprocess_exec``; no shell
is involved. stdout and stderr are captured separately. On timeout or
cancellation the child is killed and reaped before the error propagates,
so no orphaned process survives the call.
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Mapping, Optional, Sequence

from ..domain.entities.response import RawOutput
from ..domain.errors import ProcessFailed, RequestTimeout, excerpt
from ..domain.repositories.base import ProcessRunner
from ..domain.services.proxy_resolver import PROXY_ENV_VARS
from ..domain.services.response_parser import looks_like_response, strip_trailer

logger = logging.getLogger(__name__)

CURL_TIMEOUT_EXIT = 28


def child_environment(environ: Optional[Mapping[str, str]] = None) -> dict:
    """Environment for the child with proxy variables removed"""
    source = os.environ if environ is None else environ
    return {k: v for k, v in source.items() if k.upper() not in PROXY_ENV_VARS}


class AsyncProcessExecutor(ProcessRunner):
    """asyncio subprocess runner"""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = environ

    async def run(self, binary_path: str, argv: Sequence[str], timeout: Optional[float] = None) -> RawOutput:
        try:
            process = await asyncio.create_subprocess_exec(
                binary_path, *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=child_environment(self._environ),
            )
        except OSError as e:
            raise ProcessFailed(None, detail=f"Failed to spawn {binary_path}: {e}") from e

        logger.debug("Spawned pid %s", process.pid)
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
        except asyncio.TimeoutError:
            await self._terminate(process)
            raise RequestTimeout(timeout, pid=process.pid) from None
        except asyncio.CancelledError:
            await self._terminate(process)
            raise

        raw = RawOutput(exit_code=process.returncode, stdout=stdout, stderr=stderr, pid=process.pid)
        if raw.exit_code == CURL_TIMEOUT_EXIT:
            raise RequestTimeout(timeout, pid=process.pid, stderr_excerpt=excerpt(strip_trailer(stderr)))
        if raw.exit_code != 0 and not looks_like_response(raw):
            raise ProcessFailed(raw.exit_code, excerpt(strip_trailer(stderr)))
        return raw

    @staticmethod
    async def _terminate(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()
        logger.debug("Terminated pid %s (exit %s)", process.pid, process.returncode)


__all__ = ["AsyncProcessExecutor", "child_environment"]
