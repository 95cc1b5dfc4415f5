"""
Response Parsing Service
Decodes the captured output of an impersonation process into a
ResponseEnvelope.

Framing: curl writes every received header block (``--include``) followed
by the raw body to stdout, and a ``--write-out`` trailer to stderr carrying
``size_header``, the byte length of all header blocks. The body is
everything after that many bytes, so separator-like bytes inside the body
never truncate it. When the trailer is missing (a caller-supplied
``--write-out`` replaced it) the parser falls back to consuming only blocks
that start with ``HTTP/``.
"""

import json
import re
from http import HTTPStatus
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..entities.response import RawOutput, RequestInfo, ResponseEnvelope
from ..errors import DecodeFailed, MalformedOutput, excerpt


FRAME_MARKER = "@@mimicurl-frame@@"
WRITE_OUT_FORMAT = (
    "%{stderr}\n" + FRAME_MARKER +
    " size_header=%{size_header} code=%{response_code} redirects=%{num_redirects}\n"
)

_TRAILER_RE = re.compile(
    re.escape(FRAME_MARKER).encode() + rb" size_header=(\d+) code=(\d+) redirects=(\d+)"
)
_STATUS_RE = re.compile(r"^HTTP/(\d(?:\.\d)?)\s+(\d{3})(?:\s+(.*))?$")

# Headers whose repeated values combine into one comma-separated value
LIST_HEADERS = frozenset({
    "accept", "accept-encoding", "accept-language", "access-control-allow-headers",
    "access-control-allow-methods", "access-control-expose-headers", "allow",
    "cache-control", "connection", "content-encoding", "link", "pragma",
    "transfer-encoding", "vary", "via", "warning",
})


def parse_trailer(stderr: bytes) -> Optional[Dict[str, int]]:
    """Last framing trailer written to stderr, if any"""
    matches = list(_TRAILER_RE.finditer(stderr or b""))
    if not matches:
        return None
    size_header, code, redirects = (int(g) for g in matches[-1].groups())
    return {"size_header": size_header, "code": code, "redirects": redirects}


def strip_trailer(stderr: bytes) -> bytes:
    """Diagnostic stderr text without the framing trailer"""
    return _TRAILER_RE.sub(b"", stderr or b"").strip()


def looks_like_response(raw: RawOutput) -> bool:
    trailer = parse_trailer(raw.stderr)
    if trailer and trailer["size_header"] > 0:
        return True
    return raw.stdout.startswith(b"HTTP/")


def _next_block_end(data: bytes, start: int, limit: int) -> Optional[Tuple[int, int]]:
    ends = []
    for separator in (b"\r\n\r\n", b"\n\n"):
        index = data.find(separator, start, limit)
        if index != -1:
            ends.append((index, len(separator)))
    return min(ends) if ends else None


def split_header_blocks(data: bytes, limit: Optional[int] = None) -> Tuple[List[bytes], int]:
    """Consecutive header blocks from the start of ``data`` and the offset after them"""
    limit = len(data) if limit is None else limit
    blocks, position = [], 0
    while position < limit and data.startswith(b"HTTP/", position):
        end = _next_block_end(data, position, limit)
        if end is None:
            raise MalformedOutput("Unterminated header block", excerpt(data[position:position + 500]))
        index, length = end
        blocks.append(data[position:index])
        position = index + length
    return blocks, position


class ResponseParser:
    """
    Domain Service for output decoding.
    Structured (JSON) bodies are decoded on a best-effort basis; decode
    failures are reported on the envelope, never raised.
    """

    def parse(
        self,
        raw: RawOutput,
        decoder: Optional[Callable[[Any], Any]] = None,
        request: Optional[RequestInfo] = None,
    ) -> ResponseEnvelope:
        stdout = raw.stdout or b""
        if len(stdout) < 5:
            raise MalformedOutput(
                f"Empty or too short response from the impersonation binary ({len(stdout)} bytes). "
                "This usually means the connection failed, the proxy is unreachable or the URL is invalid",
                excerpt(strip_trailer(raw.stderr) or stdout),
            )

        trailer = parse_trailer(raw.stderr)
        blocks, body_offset = self._frame(stdout, trailer)
        if not blocks:
            raise MalformedOutput("No HTTP response found", excerpt(stdout))

        version, status, status_text, header_list = self._parse_block(blocks[-1])
        body = stdout[body_offset:]

        envelope = ResponseEnvelope(
            status=status,
            status_text=status_text,
            http_version=version,
            header_list=header_list,
            headers=self._simple_view(header_list),
            raw_body=body,
            request=request,
            redirects=trailer["redirects"] if trailer else self._count_redirects(blocks),
        )
        self._decode(envelope, decoder)
        return envelope

    def _frame(self, stdout: bytes, trailer: Optional[Dict[str, int]]) -> Tuple[List[bytes], int]:
        if trailer:
            size = trailer["size_header"]
            if 0 < size <= len(stdout) and stdout[:size].endswith((b"\r\n\r\n", b"\n\n")):
                blocks, offset = split_header_blocks(stdout, size)
                if offset == size:
                    return blocks, offset
        return split_header_blocks(stdout)

    @staticmethod
    def _parse_block(block: bytes) -> Tuple[str, int, str, List[Tuple[str, str]]]:
        lines = block.decode('iso-8859-1').replace('\r\n', '\n').split('\n')
        match = _STATUS_RE.match(lines[0].strip())
        if not match:
            raise MalformedOutput("Invalid status line", excerpt(lines[0]))
        version, code, reason = match.group(1), int(match.group(2)), (match.group(3) or "").strip()
        if not reason:
            try:
                reason = HTTPStatus(code).phrase
            except ValueError:
                reason = ""

        header_list: List[Tuple[str, str]] = []
        for line in lines[1:]:
            if not line.strip():
                continue
            if line[0] in ' \t' and header_list:
                name, value = header_list[-1]
                header_list[-1] = (name, f"{value} {line.strip()}")
                continue
            name, sep, value = line.partition(':')
            if not sep or not name.strip():
                continue
            header_list.append((name.strip(), value.strip()))
        return version, code, reason, header_list

    @staticmethod
    def _simple_view(header_list: List[Tuple[str, str]]) -> Dict[str, str]:
        view: Dict[str, str] = {}
        names: Dict[str, str] = {}
        for name, value in header_list:
            lowered = name.lower()
            key = names.setdefault(lowered, name)
            if key in view and lowered in LIST_HEADERS:
                view[key] = f"{view[key]}, {value}"
            else:
                view[key] = value
        return view

    @staticmethod
    def _count_redirects(blocks: List[bytes]) -> int:
        return sum(1 for block in blocks[:-1] if re.match(rb"HTTP/\S+\s+3\d\d", block))

    @staticmethod
    def _decode(envelope: ResponseEnvelope, decoder: Optional[Callable[[Any], Any]]) -> None:
        content_type = envelope.content_type
        mime = content_type.split(';')[0].strip()
        if not (mime == "application/json" or mime.endswith("+json")) or not envelope.raw_body.strip():
            return
        try:
            payload = json.loads(envelope.raw_body.decode(envelope.encoding))
            envelope.data = decoder(payload) if decoder else payload
        except Exception as e:
            envelope.data = None
            envelope.decode_error = DecodeFailed(content_type, e)


__all__ = [
    "ResponseParser", "WRITE_OUT_FORMAT", "FRAME_MARKER", "parse_trailer",
    "strip_trailer", "looks_like_response", "split_header_blocks",
]
