"""
Command Building Service
Turns a resolved descriptor and a RequestSpec into the argument vector of
one impersonation process.

Argument order contract:
    profile TLS/HTTP flags, method, headers, body, --max-time, redirects,
    --insecure, --proxy, output framing flags, --url, then extra_curl_args.
curl lets the last occurrence of a flag win, so extra_curl_args supplied by
the caller override anything computed from the RequestSpec.

The vector is never joined into a shell string for execution; header and
body content always travel as single literal arguments.
"""

import json
import os
import shlex
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
from urllib.parse import quote, urlencode, urlsplit, urlunsplit

from ..entities.descriptor import ResolvedDescriptor
from ..entities.request import Method, ProxySpec, RequestSpec, merge_headers
from ..errors import InvalidRequest
from .proxy_resolver import ProxyResolver
from .response_parser import WRITE_OUT_FORMAT


# Bodies above this size go through a temp file to stay clear of ARG_MAX
INLINE_BODY_LIMIT = 32 * 1024

_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_QUERY_SAFE = "=&%:@!$'()*+,;/?-._~"


def build_url(url: str, params: Sequence[Tuple[str, str]] = ()) -> str:
    """Percent-encode the URL and merge query params after any existing query"""
    parts = urlsplit(url)
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        raise InvalidRequest(f"URL must be absolute http(s): {url!r}")
    query = quote(parts.query, safe=_QUERY_SAFE)
    if params:
        extra = urlencode(list(params), quote_via=quote)
        query = f"{query}&{extra}" if query else extra
    return urlunsplit((
        parts.scheme.lower(), parts.netloc, quote(parts.path, safe=_PATH_SAFE) or "/", query, ""
    ))


def max_time_override(extra_args: Sequence[str]) -> Optional[float]:
    """Last --max-time / -m value among caller-supplied curl arguments, if any"""
    found = None
    args = list(extra_args)
    for i, arg in enumerate(args):
        if arg in ("--max-time", "-m"):
            value = args[i + 1] if i + 1 < len(args) else None
        elif arg.startswith("-m") and not arg.startswith("--"):
            value = arg[2:]
        else:
            continue
        try:
            found = float(value)
        except (TypeError, ValueError):
            # curl rejects it too and reports the error itself
            continue
    return found


def header_argument(name: str, value: str) -> str:
    # curl drops "Name:" with an empty value; "Name;" sends it empty
    return f"{name}: {value}" if value else f"{name};"


@dataclass
class BuiltCommand:
    """Argument vector plus the temp files that must outlive the process"""
    binary_path: str
    argv: List[str]
    url: str
    method: Method
    headers: Tuple[Tuple[str, str], ...]
    proxy: Optional[ProxySpec] = None
    temp_files: List[str] = field(default_factory=list)

    @property
    def full_argv(self) -> List[str]:
        return [self.binary_path] + self.argv

    def command_line(self) -> str:
        """Printable command line with proxy credentials masked"""
        shown = [self.binary_path]
        hide_next = False
        for arg in self.argv:
            if hide_next and self.proxy is not None:
                shown.append(self.proxy.to_url(mask_password=True))
            else:
                shown.append(arg)
            hide_next = arg == "--proxy"
        return shlex.join(shown)

    def cleanup(self) -> None:
        while self.temp_files:
            path = self.temp_files.pop()
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass


class CommandBuilder:
    """
    Domain Service building process invocations.
    Only the body temp file touches the filesystem; preview builds skip it.
    """

    def __init__(self, inline_body_limit: int = INLINE_BODY_LIMIT, temp_dir: Optional[str] = None):
        self._inline_body_limit = inline_body_limit
        self._temp_dir = temp_dir

    def build(
        self,
        binary_path: str,
        resolved: ResolvedDescriptor,
        request: RequestSpec,
        proxy: Optional[ProxySpec] = None,
        materialize_body: bool = True,
    ) -> BuiltCommand:
        url = build_url(request.url, request.params)
        body, content_type = self._encode_body(request.data)

        headers = merge_headers(resolved.profile.headers, request.headers)
        if content_type and not any(k.lower() == "content-type" for k, _ in headers):
            headers += (("Content-Type", content_type),)

        command = BuiltCommand(
            binary_path=str(binary_path),
            argv=list(resolved.profile.tls_args),
            url=url,
            method=request.method,
            headers=headers,
            proxy=proxy,
        )
        argv = command.argv

        if request.method == Method.HEAD:
            argv.append("--head")
        elif request.method != Method.GET or body is not None:
            argv += ["--request", request.method.value]

        for name, value in headers:
            argv += ["--header", header_argument(name, value)]

        if body is not None:
            try:
                argv += self._body_arguments(body, command, materialize_body)
            except OSError:
                command.cleanup()
                raise

        if request.timeout is not None:
            argv += ["--max-time", f"{request.timeout:g}"]
        if request.max_redirects > 0:
            argv += ["--location", "--max-redirs", str(request.max_redirects)]
        if request.insecure_tls:
            argv.append("--insecure")
        argv += ProxyResolver.render(proxy)

        argv += ["--silent", "--show-error", "--include", "--write-out", WRITE_OUT_FORMAT]
        argv += ["--url", url]
        argv += list(request.extra_curl_args)
        return command

    @staticmethod
    def _encode_body(data) -> Tuple[Optional[bytes], Optional[str]]:
        if data is None:
            return None, None
        if isinstance(data, (bytes, bytearray, memoryview)):
            return bytes(data), None
        if isinstance(data, str):
            return data.encode('utf-8'), None
        try:
            return json.dumps(data, ensure_ascii=False).encode('utf-8'), "application/json"
        except (TypeError, ValueError) as e:
            raise InvalidRequest(f"Body is not JSON serializable: {e}") from None

    def _body_arguments(self, body: bytes, command: BuiltCommand, materialize: bool) -> List[str]:
        if len(body) <= self._inline_body_limit and b"\0" not in body:
            try:
                return ["--data-raw", body.decode('utf-8')]
            except UnicodeDecodeError:
                pass
        if not materialize:
            return ["--data-binary", f"@<temp file: {len(body)} bytes>"]
        fd, path = tempfile.mkstemp(prefix="mimicurl-body-", suffix=".bin", dir=self._temp_dir)
        command.temp_files.append(path)
        with os.fdopen(fd, 'wb') as f:
            f.write(body)
        return ["--data-binary", f"@{path}"]


__all__ = ["CommandBuilder", "BuiltCommand", "build_url", "max_time_override", "INLINE_BODY_LIMIT"]
