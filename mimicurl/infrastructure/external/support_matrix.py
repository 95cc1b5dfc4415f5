"""
Static Support Matrix
Browser versions, host variants and fingerprint profiles served by the
curl-impersonate releases. Adding a browser version or host variant is a
data change here.
"""

from typing import Dict, Mapping, Tuple

from ...domain.entities.descriptor import Browser, BrowserProfile, Platform
from ...domain.repositories.base import SupportMatrixRepository


DEFAULT_RELEASE = "v1.0.0"

# platform -> architecture -> release asset triple
HOST_VARIANTS: Dict[str, Dict[str, str]] = {
    "linux": {"x64": "x86_64-linux-gnu", "arm64": "aarch64-linux-gnu"},
    "macos": {"x64": "x86_64-macos", "arm64": "arm64-macos"},
    "windows": {"x64": "x86_64-win32"},
}

_CHROME_CIPHERS = (
    "TLS_AES_128_GCM_SHA256,TLS_AES_256_GCM_SHA384,TLS_CHACHA20_POLY1305_SHA256,"
    "ECDHE-ECDSA-AES128-GCM-SHA256,ECDHE-RSA-AES128-GCM-SHA256,"
    "ECDHE-ECDSA-AES256-GCM-SHA384,ECDHE-RSA-AES256-GCM-SHA384,"
    "ECDHE-ECDSA-CHACHA20-POLY1305,ECDHE-RSA-CHACHA20-POLY1305,"
    "ECDHE-RSA-AES128-SHA,ECDHE-RSA-AES256-SHA,AES128-GCM-SHA256,"
    "AES256-GCM-SHA384,AES128-SHA,AES256-SHA"
)

_FIREFOX_CIPHERS = (
    "TLS_AES_128_GCM_SHA256,TLS_CHACHA20_POLY1305_SHA256,TLS_AES_256_GCM_SHA384,"
    "ECDHE-ECDSA-AES128-GCM-SHA256,ECDHE-RSA-AES128-GCM-SHA256,"
    "ECDHE-ECDSA-CHACHA20-POLY1305,ECDHE-RSA-CHACHA20-POLY1305,"
    "ECDHE-ECDSA-AES256-GCM-SHA384,ECDHE-RSA-AES256-GCM-SHA384,"
    "ECDHE-ECDSA-AES256-SHA,ECDHE-ECDSA-AES128-SHA,ECDHE-RSA-AES128-SHA,"
    "ECDHE-RSA-AES256-SHA,AES128-GCM-SHA256,AES256-GCM-SHA384,AES128-SHA,AES256-SHA"
)

_SAFARI_CIPHERS = (
    "TLS_AES_128_GCM_SHA256,TLS_AES_256_GCM_SHA384,TLS_CHACHA20_POLY1305_SHA256,"
    "ECDHE-ECDSA-AES256-GCM-SHA384,ECDHE-ECDSA-AES128-GCM-SHA256,"
    "ECDHE-ECDSA-CHACHA20-POLY1305,ECDHE-RSA-AES256-GCM-SHA384,"
    "ECDHE-RSA-AES128-GCM-SHA256,ECDHE-RSA-CHACHA20-POLY1305,"
    "ECDHE-ECDSA-AES256-SHA,ECDHE-ECDSA-AES128-SHA,ECDHE-RSA-AES256-SHA,"
    "ECDHE-RSA-AES128-SHA,AES256-GCM-SHA384,AES128-GCM-SHA256,AES256-SHA,AES128-SHA"
)

_CHROMIUM_H2 = (
    "--http2",
    "--http2-settings", "1:65536;2:0;4:6291456;6:262144",
    "--http2-window-update", "15663105",
    "--http2-stream-weight", "256",
    "--http2-stream-exclusive", "1",
    "--compressed",
)


def _chromium_args(curves: str, ech: bool = True, permute: bool = True,
                   http2: Tuple[str, ...] = _CHROMIUM_H2) -> Tuple[str, ...]:
    args = ("--ciphers", _CHROME_CIPHERS, "--curves", curves) + http2
    if ech:
        args += ("--ech", "grease")
    args += ("--tlsv1.2", "--alps")
    if permute:
        args += ("--tls-permute-extensions",)
    return args + ("--cert-compression", "brotli", "--tls-grease")


def _firefox_args() -> Tuple[str, ...]:
    return (
        "--ciphers", _FIREFOX_CIPHERS,
        "--curves", "X25519MLKEM768:X25519:P-256:P-384:P-521:ffdhe2048:ffdhe3072",
        "--signature-hashes",
        "ecdsa_secp256r1_sha256,ecdsa_secp384r1_sha384,ecdsa_secp521r1_sha512,"
        "rsa_pss_rsae_sha256,rsa_pss_rsae_sha384,rsa_pss_rsae_sha512,"
        "rsa_pkcs1_sha256,rsa_pkcs1_sha384,rsa_pkcs1_sha512,ecdsa_sha1,rsa_pkcs1_sha1",
        "--http2",
        "--http2-settings", "1:65536;2:0;4:131072;5:16384",
        "--http2-window-update", "12517377",
        "--http2-pseudo-headers-order", "mpas",
        "--compressed",
        "--ech", "grease",
        "--tls-extension-order", "0-23-65281-10-11-35-16-5-34-18-51-43-13-45-28-27-65037",
        "--tls-delegated-credentials",
        "ecdsa_secp256r1_sha256:ecdsa_secp384r1_sha384:ecdsa_secp521r1_sha512:ecdsa_sha1",
        "--cert-compression", "zlib,brotli,zstd",
    )


def _safari_args(http2_settings: str, window_update: str, pseudo_order: str) -> Tuple[str, ...]:
    return (
        "--ciphers", _SAFARI_CIPHERS,
        "--curves", "X25519:P-256:P-384:P-521",
        "--signature-hashes",
        "ecdsa_secp256r1_sha256,rsa_pss_rsae_sha256,rsa_pkcs1_sha256,"
        "ecdsa_secp384r1_sha384,rsa_pss_rsae_sha384,rsa_pkcs1_sha384,"
        "rsa_pss_rsae_sha512,rsa_pkcs1_sha512,rsa_pkcs1_sha1",
        "--http2",
        "--http2-settings", http2_settings,
        "--http2-pseudo-headers-order", pseudo_order,
        "--http2-window-update", window_update,
        "--http2-stream-weight", "256",
        "--http2-stream-exclusive", "0",
        "--compressed",
        "--tls-grease",
        "--no-tls-session-ticket",
        "--cert-compression", "zlib",
    )


_CHROME_LEGACY = _chromium_args("X25519:P-256:P-384", ech=False)
_CHROME_MLKEM = _chromium_args("X25519MLKEM768:X25519:P-256:P-384")
_EDGE_LEGACY = _chromium_args(
    "X25519:P-256:P-384", ech=False, permute=False,
    http2=("--http2",
           "--http2-settings", "1:65536;3:1000;4:6291456;6:262144",
           "--http2-window-update", "15663105",
           "--http2-stream-weight", "256",
           "--http2-stream-exclusive", "1",
           "--compressed"),
)
_FIREFOX = _firefox_args()
_SAFARI_18 = _safari_args("2:0;3:100;4:2097152;9:1", "10420225", "msap")

# curl-impersonate target -> TLS and HTTP/2 flags; targets share a tuple only
# where their fingerprints are identical
TARGET_TLS_ARGS: Dict[str, Tuple[str, ...]] = {
    "chrome116": _CHROME_LEGACY,
    "chrome120": _CHROME_LEGACY,
    "chrome124": _chromium_args("X25519Kyber768Draft00:X25519:P-256:P-384"),
    "chrome131": _CHROME_MLKEM,
    "chrome136": _CHROME_MLKEM,
    "edge99": _EDGE_LEGACY,
    "edge101": _EDGE_LEGACY,
    "firefox133": _FIREFOX,
    "firefox135": _FIREFOX,
    "safari170": _safari_args("2:0;4:4194304;3:100", "10485760", "mspa"),
    "safari180": _SAFARI_18,
    "safari184": _SAFARI_18,
}

_UA_PLATFORM = {
    "linux": ("X11; Linux x86_64", '"Linux"'),
    "windows": ("Windows NT 10.0; Win64; x64", '"Windows"'),
    "macos": ("Macintosh; Intel Mac OS X 10_15_7", '"macOS"'),
}

_NAVIGATE_HEADERS = (
    ("Sec-Fetch-Site", "none"),
    ("Sec-Fetch-Mode", "navigate"),
    ("Sec-Fetch-User", "?1"),
    ("Sec-Fetch-Dest", "document"),
)

# browser -> ordered versions (oldest first) -> curl-impersonate target
BROWSER_TARGETS: Dict[str, Dict[str, str]] = {
    "chrome": {"116": "chrome116", "120": "chrome120", "124": "chrome124",
               "131": "chrome131", "136": "chrome136"},
    "edge": {"99": "edge99", "101": "edge101"},
    "firefox": {"133": "firefox133", "135": "firefox135"},
    "safari": {"17.0": "safari170", "18.0": "safari180", "18.4": "safari184"},
}

_FAMILY = {"chrome": "chromium", "edge": "chromium", "firefox": "firefox", "safari": "safari"}


def _chromium_headers(browser: str, version: str, platform: str) -> Tuple[Tuple[str, str], ...]:
    os_token, ch_platform = _UA_PLATFORM.get(platform, _UA_PLATFORM["linux"])
    brand = "Google Chrome" if browser == "chrome" else "Microsoft Edge"
    user_agent = (f"Mozilla/5.0 ({os_token}) AppleWebKit/537.36 (KHTML, like Gecko) "
                  f"Chrome/{version}.0.0.0 Safari/537.36")
    if browser == "edge":
        user_agent += f" Edg/{version}.0.0.0"
    return (
        ("sec-ch-ua", f'"Chromium";v="{version}", "{brand}";v="{version}", "Not.A/Brand";v="99"'),
        ("sec-ch-ua-mobile", "?0"),
        ("sec-ch-ua-platform", ch_platform),
        ("Upgrade-Insecure-Requests", "1"),
        ("User-Agent", user_agent),
        ("Accept", "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,"
                   "image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"),
    ) + _NAVIGATE_HEADERS + (
        ("Accept-Encoding", "gzip, deflate, br, zstd"),
        ("Accept-Language", "en-US,en;q=0.9"),
        ("Priority", "u=0, i"),
    )


def _firefox_headers(version: str, platform: str) -> Tuple[Tuple[str, str], ...]:
    os_token = {"windows": "Windows NT 10.0; Win64; x64",
                "macos": "Macintosh; Intel Mac OS X 10.15"}.get(platform, "X11; Linux x86_64")
    return (
        ("User-Agent", f"Mozilla/5.0 ({os_token}; rv:{version}.0) Gecko/20100101 Firefox/{version}.0"),
        ("Accept", "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"),
        ("Accept-Language", "en-US,en;q=0.5"),
        ("Accept-Encoding", "gzip, deflate, br, zstd"),
        ("Upgrade-Insecure-Requests", "1"),
    ) + _NAVIGATE_HEADERS + (
        ("Priority", "u=0, i"),
        ("TE", "trailers"),
    )


def _safari_headers(version: str) -> Tuple[Tuple[str, str], ...]:
    return (
        ("Accept", "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"),
        ("Sec-Fetch-Site", "none"),
        ("Accept-Encoding", "gzip, deflate, br"),
        ("Sec-Fetch-Mode", "navigate"),
        ("User-Agent", "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
                       f"(KHTML, like Gecko) Version/{version} Safari/605.1.15"),
        ("Accept-Language", "en-US,en;q=0.9"),
        ("Sec-Fetch-Dest", "document"),
        ("Priority", "u=0, i"),
    )


def _build_matrix() -> Dict[str, Dict[str, Dict[str, Dict[str, str]]]]:
    return {
        browser: {
            version: {platform: dict(archs) for platform, archs in HOST_VARIANTS.items()}
            for version in versions
        }
        for browser, versions in BROWSER_TARGETS.items()
    }


class InMemorySupportMatrix(SupportMatrixRepository):
    """
    In-memory support matrix
    Contains the predefined browser targets and host variants
    """

    def __init__(self, release: str = DEFAULT_RELEASE, matrix: Mapping = None,
                 targets: Mapping[str, Mapping[str, str]] = None):
        self._release = release
        self._targets = {b: dict(v) for b, v in (targets or BROWSER_TARGETS).items()}
        self._matrix = matrix if matrix is not None else _build_matrix()

    @property
    def release(self) -> str:
        return self._release

    def get_matrix(self) -> Mapping:
        return self._matrix

    def latest_version(self, browser: Browser) -> str:
        versions = list(self._targets.get(browser.value, {}))
        if not versions:
            raise KeyError(browser.value)
        return versions[-1]

    def get_profile(self, browser: Browser, version: str, platform: Platform) -> BrowserProfile:
        target = self._targets[browser.value][version]
        family = _FAMILY[browser.value]
        if family == "chromium":
            headers = _chromium_headers(browser.value, version, platform.value)
        elif family == "firefox":
            headers = _firefox_headers(version, platform.value)
        else:
            headers = _safari_headers(version)
        return BrowserProfile(target=target, tls_args=TARGET_TLS_ARGS[target], headers=headers)


__all__ = ["InMemorySupportMatrix", "HOST_VARIANTS", "BROWSER_TARGETS", "TARGET_TLS_ARGS", "DEFAULT_RELEASE"]
