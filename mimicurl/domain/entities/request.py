"""
Domain Entities - Request Side
Immutable request and proxy value objects
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import quote

from ..errors import InvalidRequest


class Method(Enum):
    """HTTP methods accepted by the engine"""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @classmethod
    def parse(cls, value: Union[str, "Method", None]) -> "Method":
        if value is None:
            return cls.GET
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise InvalidRequest(f"Unsupported HTTP method: {value!r}") from None


class ProxyScheme(Enum):
    """Proxy protocols the impersonation binary understands"""
    HTTP = "http"
    HTTPS = "https"
    SOCKS4 = "socks4"
    SOCKS5 = "socks5"


@dataclass(frozen=True)
class ProxySpec:
    """Value Object for a parsed proxy endpoint"""
    scheme: ProxyScheme
    host: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None

    def __post_init__(self):
        if not self.host:
            raise ValueError("Proxy host is required")
        if not 0 < self.port < 65536:
            raise ValueError("Proxy port must be between 1 and 65535")

    @property
    def has_credentials(self) -> bool:
        return self.username is not None

    def _host_part(self) -> str:
        return f"[{self.host}]" if ':' in self.host else self.host

    def to_url(self, mask_password: bool = False) -> str:
        """Render the proxy in the URL form passed to ``--proxy``"""
        auth = ""
        if self.has_credentials:
            auth = quote(self.username, safe='')
            if self.password is not None:
                secret = "***" if mask_password else quote(self.password, safe='')
                auth = f"{auth}:{secret}"
            auth += "@"
        return f"{self.scheme.value}://{auth}{self._host_part()}:{self.port}"

    def __str__(self) -> str:
        return self.to_url(mask_password=True)


HeaderInput = Union[Mapping[str, str], Iterable[Tuple[str, str]], None]
ParamInput = Union[Mapping[str, Any], Iterable[Tuple[str, Any]], None]


def _pairs(value) -> List[Tuple[str, Any]]:
    if value is None:
        return []
    if isinstance(value, Mapping):
        return list(value.items())
    return [tuple(item) for item in value]


def normalize_headers(headers: HeaderInput) -> Tuple[Tuple[str, str], ...]:
    """Ordered header pairs; names keep their case, CR/LF is rejected"""
    result = []
    for name, value in _pairs(headers):
        name = str(name).strip()
        value = "" if value is None else str(value)
        if not name or ':' in name:
            raise InvalidRequest(f"Invalid header name: {name!r}")
        if any(ch in name + value for ch in '\r\n\0'):
            raise InvalidRequest(f"Header {name!r} contains a line break")
        result.append((name, value))
    return tuple(result)


def merge_headers(base: HeaderInput, override: HeaderInput) -> Tuple[Tuple[str, str], ...]:
    """Overlay headers case-insensitively, keeping the base order"""
    merged = list(normalize_headers(base))
    for name, value in normalize_headers(override):
        for index, (existing, _) in enumerate(merged):
            if existing.lower() == name.lower():
                merged[index] = (name, value)
                break
        else:
            merged.append((name, value))
    return tuple(merged)


@dataclass(frozen=True)
class RequestSpec:
    """
    Request handed to the engine.
    Frozen once built; headers and params are stored as ordered tuples.
    """
    url: str
    method: Method = Method.GET
    headers: Tuple[Tuple[str, str], ...] = ()
    params: Tuple[Tuple[str, str], ...] = ()
    data: Any = None
    timeout: Optional[float] = None
    max_redirects: int = 10
    proxy: Optional[str] = None
    insecure_tls: bool = False
    extra_curl_args: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.url or not str(self.url).strip():
            raise InvalidRequest("URL is required")
        object.__setattr__(self, 'url', str(self.url).strip())
        object.__setattr__(self, 'method', Method.parse(self.method))
        object.__setattr__(self, 'headers', normalize_headers(self.headers))
        object.__setattr__(
            self, 'params',
            tuple((str(k), "" if v is None else str(v)) for k, v in _pairs(self.params))
        )
        object.__setattr__(self, 'extra_curl_args', tuple(str(a) for a in (self.extra_curl_args or ())))
        if self.timeout is not None and self.timeout <= 0:
            raise InvalidRequest("Timeout must be positive")
        if self.max_redirects is None or self.max_redirects < 0:
            raise InvalidRequest("Max redirects must be zero or positive")

    @property
    def scheme(self) -> str:
        head, sep, _ = self.url.partition('://')
        return head.lower() if sep else "http"

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive lookup of the last header with this name"""
        found = None
        for key, value in self.headers:
            if key.lower() == name.lower():
                found = value
        return found
