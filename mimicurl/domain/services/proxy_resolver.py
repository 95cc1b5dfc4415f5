"""
Proxy Resolution Service
Parses explicit proxy strings and, absent one, scans an injected
environment mapping for the variable matching the request scheme.
"""

from typing import Mapping, Optional, Tuple
from urllib.parse import unquote, urlsplit

from ..entities.request import ProxyScheme, ProxySpec
from ..errors import InvalidProxyUrl


DEFAULT_PORTS = {
    ProxyScheme.HTTP: 80,
    ProxyScheme.HTTPS: 443,
    ProxyScheme.SOCKS4: 1080,
    ProxyScheme.SOCKS5: 1080,
}

_SCHEME_ALIASES = {"socks5h": "socks5", "socks4a": "socks4", "socks": "socks5"}

PROXY_ENV_VARS = ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "NO_PROXY")


def env_candidates(request_scheme: str) -> Tuple[str, ...]:
    """Variables consulted for a request scheme, in priority order"""
    scheme = (request_scheme or "http").lower()
    specific = "HTTPS_PROXY" if scheme == "https" else "HTTP_PROXY"
    return (specific, "ALL_PROXY")


def parse_proxy(value: str) -> ProxySpec:
    """Parse ``[scheme://][user[:pass]@]host[:port]``; bare hosts default to http"""
    raw = (value or "").strip()
    if not raw:
        raise InvalidProxyUrl(value, "empty proxy string")
    if "://" not in raw:
        raw = f"http://{raw}"

    try:
        parts = urlsplit(raw)
        port = parts.port
    except ValueError as e:
        raise InvalidProxyUrl(value, str(e)) from None

    scheme_name = _SCHEME_ALIASES.get(parts.scheme.lower(), parts.scheme.lower())
    try:
        scheme = ProxyScheme(scheme_name)
    except ValueError:
        supported = ", ".join(s.value for s in ProxyScheme)
        raise InvalidProxyUrl(value, f"unsupported scheme {parts.scheme!r} (supported: {supported})") from None

    if not parts.hostname:
        raise InvalidProxyUrl(value, "missing host")
    if parts.path not in ("", "/") or parts.query or parts.fragment:
        raise InvalidProxyUrl(value, "proxy URL must not carry a path or query")

    return ProxySpec(
        scheme=scheme,
        host=parts.hostname,
        port=port or DEFAULT_PORTS[scheme],
        username=unquote(parts.username) if parts.username is not None else None,
        password=unquote(parts.password) if parts.password is not None else None,
    )


def _bypassed(no_proxy: str, host: str) -> bool:
    host = (host or "").lower()
    for entry in (no_proxy or "").split(','):
        entry = entry.strip().lower().lstrip('.')
        if not entry:
            continue
        if entry == '*' or host == entry or host.endswith('.' + entry):
            return True
    return False


class ProxyResolver:
    """
    Domain Service for proxy selection.
    Explicit config wins; otherwise the first syntactically valid
    environment entry for the request scheme is used.
    """

    def resolve(
        self,
        explicit_proxy: Optional[str],
        request_scheme: str,
        environment: Optional[Mapping[str, str]] = None,
        host: Optional[str] = None,
    ) -> Optional[ProxySpec]:
        if explicit_proxy:
            return parse_proxy(explicit_proxy)

        env = self._case_folded(environment or {})
        if host and _bypassed(env.get("NO_PROXY", ""), host):
            return None

        for name in env_candidates(request_scheme):
            value = env.get(name)
            if not value:
                continue
            try:
                return parse_proxy(value)
            except InvalidProxyUrl:
                continue
        return None

    @staticmethod
    def render(proxy: Optional[ProxySpec]) -> Tuple[str, ...]:
        """Flag/value pair the impersonation binary expects"""
        if proxy is None:
            return ()
        return ("--proxy", proxy.to_url())

    @staticmethod
    def _case_folded(environment: Mapping[str, str]) -> dict:
        # Upper-case names win over lower-case ones when both are set
        folded = {}
        for name, value in environment.items():
            upper = name.upper()
            if upper not in PROXY_ENV_VARS:
                continue
            if name == upper or upper not in folded:
                folded[upper] = value
        return folded
