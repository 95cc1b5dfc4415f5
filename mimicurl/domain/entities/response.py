"""
Domain Entities - Response Side
Raw process output and the structured response envelope
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..errors import DecodeFailed


@dataclass(frozen=True)
class RawOutput:
    """Captured output of one impersonation process"""
    exit_code: Optional[int]
    stdout: bytes
    stderr: bytes = b""
    pid: Optional[int] = None

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode('utf-8', errors='replace')


@dataclass(frozen=True)
class RequestInfo:
    """Echo of the effective request, kept for observability"""
    url: str
    method: str
    headers: Tuple[Tuple[str, str], ...]
    argv: Tuple[str, ...]
    command: str


@dataclass
class ResponseEnvelope:
    """
    Structured result of one request.
    ``headers`` is the simple map view; ``header_list`` keeps every
    occurrence in received order for multi-value headers.
    """
    status: int
    status_text: str
    http_version: str
    header_list: List[Tuple[str, str]]
    headers: Dict[str, str]
    raw_body: bytes
    request: Optional[RequestInfo] = None
    data: Any = None
    decode_error: Optional[DecodeFailed] = None
    redirects: int = 0

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def decode_failed(self) -> bool:
        return self.decode_error is not None

    @property
    def content_type(self) -> str:
        return (self.get_header('content-type') or '').lower()

    @property
    def encoding(self) -> str:
        for part in self.content_type.split(';')[1:]:
            key, _, value = part.strip().partition('=')
            if key == 'charset' and value:
                return value.strip('"\' ')
        return 'utf-8'

    @property
    def text(self) -> str:
        try:
            return self.raw_body.decode(self.encoding, errors='replace')
        except LookupError:
            return self.raw_body.decode('utf-8', errors='replace')

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive lookup in the simple map view"""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def get_all(self, name: str) -> List[str]:
        """Every value received for a header name, in order"""
        lowered = name.lower()
        return [value for key, value in self.header_list if key.lower() == lowered]

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization"""
        return {
            "status": self.status,
            "status_text": self.status_text,
            "http_version": self.http_version,
            "headers": dict(self.headers),
            "body_size": len(self.raw_body),
            "data": self.data,
            "decode_error": str(self.decode_error) if self.decode_error else None,
            "redirects": self.redirects,
            "request": {
                "url": self.request.url,
                "method": self.request.method,
                "command": self.request.command,
            } if self.request else None,
        }
