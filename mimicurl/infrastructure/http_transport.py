"""HTTP transport abstraction used to fetch binary archives.

Provides a simple async interface with a `fetch` method so the binary store
stays testable. The default implementation uses curl-cffi's AsyncSession.
"""
from __future__ import annotations

import logging
from typing import Optional

from curl_cffi import CurlError
from curl_cffi.requests import AsyncSession

from ..domain.errors import DownloadFailed

logger = logging.getLogger(__name__)


class ArchiveTransport:
    """Abstract transport interface. Concrete transports return the full
    response body for a 2xx answer and raise DownloadFailed otherwise.
    """

    async def fetch(self, url: str, timeout: float = 300.0) -> bytes:
        raise NotImplementedError()


class CurlCffiTransport(ArchiveTransport):
    """curl-cffi based transport; follows the release host's redirects."""

    def __init__(self, impersonate: Optional[str] = "chrome", proxy: Optional[str] = None):
        self._impersonate = impersonate
        self._proxy = proxy

    async def fetch(self, url: str, timeout: float = 300.0) -> bytes:
        logger.info("Downloading %s", url)
        try:
            async with AsyncSession() as session:
                resp = await session.get(
                    url,
                    impersonate=self._impersonate,
                    proxy=self._proxy,
                    timeout=timeout,
                    allow_redirects=True,
                )
        except (CurlError, OSError) as e:
            raise DownloadFailed(url, e) from e

        if not 200 <= resp.status_code < 300:
            raise DownloadFailed(url, f"HTTP {resp.status_code} {resp.reason or ''}".strip(), status=resp.status_code)
        logger.debug("Fetched %d bytes from %s", len(resp.content), url)
        return resp.content


__all__ = ["ArchiveTransport", "CurlCffiTransport"]
