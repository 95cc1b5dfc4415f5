"""
mimicurl - browser-impersonating HTTP requests through curl-impersonate.
"""

from .application.client import (
    ImpersonationClient,
    delete,
    download_binary,
    get,
    head,
    options,
    patch,
    post,
    put,
    request,
)
from .domain.entities.descriptor import (
    Architecture,
    BinaryKey,
    BinaryRecord,
    Browser,
    BrowserDescriptor,
    Platform,
    ResolvedDescriptor,
)
from .domain.entities.request import Method, ProxySpec, RequestSpec
from .domain.entities.response import RawOutput, RequestInfo, ResponseEnvelope
from .domain.errors import (
    DecodeFailed,
    DownloadFailed,
    ImpersonationError,
    InvalidProxyUrl,
    InvalidRequest,
    MalformedOutput,
    ProcessFailed,
    RequestTimeout,
    UnsupportedDescriptor,
    VerificationFailed,
)

__version__ = "0.1.0"

__all__ = [
    "ImpersonationClient", "request", "get", "post", "put", "patch", "delete", "head", "options",
    "download_binary", "Architecture", "BinaryKey", "BinaryRecord", "Browser", "BrowserDescriptor",
    "Platform", "ResolvedDescriptor", "Method", "ProxySpec", "RequestSpec", "RawOutput",
    "RequestInfo", "ResponseEnvelope", "ImpersonationError", "InvalidRequest", "UnsupportedDescriptor",
    "DownloadFailed", "VerificationFailed", "InvalidProxyUrl", "ProcessFailed", "RequestTimeout",
    "MalformedOutput", "DecodeFailed",
]
