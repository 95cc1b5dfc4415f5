"""
Domain Errors
Every failure kind of the engine is a distinct exception type so callers
can branch on it (retry on timeouts and downloads, never on unsupported
descriptors).
"""

from typing import Iterable, Optional


class ImpersonationError(Exception):
    """Base class for all engine errors"""
    retryable = False


class InvalidRequest(ImpersonationError, ValueError):
    """Request cannot be turned into a process invocation"""


class UnsupportedDescriptor(ImpersonationError):
    """Descriptor combination absent from the support matrix"""

    def __init__(self, axis: str, value: object, supported: Iterable[str] = (), detail: str = ""):
        self.axis = axis
        self.value = value
        self.supported = tuple(supported)
        message = f"Unsupported {axis}: {value}"
        if detail:
            message += f" ({detail})"
        if self.supported:
            message += f". Supported {axis}s: {', '.join(self.supported)}"
        super().__init__(message)


class DownloadFailed(ImpersonationError):
    """Archive could not be fetched"""
    retryable = True

    def __init__(self, url: str, cause: object, status: Optional[int] = None):
        self.url = url
        self.cause = cause
        self.status = status
        super().__init__(f"Download failed for {url}: {cause}")


class VerificationFailed(ImpersonationError):
    """Extracted or cached binary did not pass verification"""

    def __init__(self, key: object, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Verification failed for {key}: {reason}")


class InvalidProxyUrl(ImpersonationError, ValueError):
    """Proxy string could not be parsed or uses an unsupported scheme"""

    def __init__(self, value: str, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid proxy URL {value!r}: {reason}")


class ProcessFailed(ImpersonationError):
    """Impersonation process exited without a parseable response"""

    # curl exit codes for connection level failures worth retrying
    TRANSIENT_EXIT_CODES = frozenset({5, 6, 7, 35, 52, 56})

    def __init__(self, exit_code: Optional[int], stderr_excerpt: str = "", detail: str = ""):
        self.exit_code = exit_code
        self.stderr_excerpt = stderr_excerpt
        message = detail or f"Impersonation process exited with code {exit_code}"
        if stderr_excerpt:
            message += f": {stderr_excerpt}"
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.exit_code in self.TRANSIENT_EXIT_CODES


class RequestTimeout(ImpersonationError):
    """Request exceeded its timeout; the child process was terminated"""
    retryable = True

    def __init__(self, timeout: Optional[float], pid: Optional[int] = None, stderr_excerpt: str = ""):
        self.timeout = timeout
        self.pid = pid
        self.stderr_excerpt = stderr_excerpt
        super().__init__(f"Request timed out after {timeout} seconds")


class MalformedOutput(ImpersonationError):
    """Captured output does not follow the response framing"""

    def __init__(self, reason: str, excerpt: str = ""):
        self.reason = reason
        self.excerpt = excerpt
        message = reason
        if excerpt:
            message += f"\nOutput: {excerpt}"
        super().__init__(message)


class DecodeFailed(ImpersonationError):
    """Body could not be decoded into the requested payload (non-fatal)"""

    def __init__(self, content_type: str, cause: object):
        self.content_type = content_type
        self.cause = cause
        super().__init__(f"Could not decode {content_type or 'body'}: {cause}")


def excerpt(data, limit: int = 500) -> str:
    """Printable, bounded preview of captured bytes"""
    if isinstance(data, bytes):
        data = data.decode('utf-8', errors='replace')
    data = (data or "").strip()
    if len(data) > limit:
        return data[:limit] + "..."
    return data


__all__ = [
    "ImpersonationError", "InvalidRequest", "UnsupportedDescriptor", "DownloadFailed",
    "VerificationFailed", "InvalidProxyUrl", "ProcessFailed", "RequestTimeout",
    "MalformedOutput", "DecodeFailed", "excerpt",
]
