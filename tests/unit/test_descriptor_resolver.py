"""
Unit tests for DescriptorResolver and the static support matrix
"""

from unittest.mock import MagicMock

import pytest

from mimicurl.domain.entities.descriptor import Architecture, Browser, BrowserDescriptor, Platform
from mimicurl.domain.errors import UnsupportedDescriptor
from mimicurl.domain.services.descriptor_resolver import DescriptorResolver, asset_name_for
from mimicurl.infrastructure.external.support_matrix import (
    BROWSER_TARGETS, DEFAULT_RELEASE, HOST_VARIANTS, TARGET_TLS_ARGS,
)


def all_supported_descriptors():
    for browser, versions in BROWSER_TARGETS.items():
        for version in versions:
            for platform, archs in HOST_VARIANTS.items():
                for arch in archs:
                    yield BrowserDescriptor(browser=browser, version=version, platform=platform, architecture=arch)


class TestResolveSupported:
    """Every matrix entry resolves, and resolves the same way every time"""

    def test_total_and_deterministic_over_matrix(self, resolver):
        for descriptor in all_supported_descriptors():
            first = resolver.resolve(descriptor)
            second = resolver.resolve(descriptor)

            assert first == second
            assert first.browser.value == descriptor.browser.value
            assert first.version == descriptor.version
            assert first.key.value == f"{DEFAULT_RELEASE}-{first.platform.value}-{first.architecture.value}"

    def test_defaults_fill_from_host_and_latest(self, resolver):
        resolved = resolver.resolve(BrowserDescriptor())

        assert resolved.browser == Browser.CHROME
        assert resolved.version == "136"
        assert resolved.platform == Platform.LINUX
        assert resolved.architecture == Architecture.X64
        assert resolved.target == "chrome136"

    def test_none_descriptor_uses_defaults(self, resolver):
        assert resolver.resolve(None) == resolver.resolve(BrowserDescriptor())

    def test_latest_keyword(self, resolver):
        resolved = resolver.resolve(BrowserDescriptor(browser="firefox", version="latest"))
        assert resolved.version == "135"

    def test_full_version_matches_major_prefix(self, resolver):
        resolved = resolver.resolve(BrowserDescriptor(browser="chrome", version="131.0.6778.86"))
        assert resolved.version == "131"
        assert resolved.target == "chrome131"

    def test_leading_v_is_stripped(self, resolver):
        assert resolver.resolve(BrowserDescriptor(browser="safari", version="v18.4")).version == "18.4"

    def test_archive_identifier(self, resolver):
        resolved = resolver.resolve(
            BrowserDescriptor(browser="edge", platform="macos", architecture="arm64")
        )

        assert resolved.archive.asset_name == asset_name_for(DEFAULT_RELEASE, "arm64-macos")
        assert resolved.archive.asset_name == f"curl-impersonate-{DEFAULT_RELEASE}.arm64-macos.tar.gz"
        assert resolved.archive.binary_name == "curl-impersonate"

    def test_windows_binary_name(self, resolver):
        resolved = resolver.resolve(BrowserDescriptor(platform="windows", architecture="x64"))
        assert resolved.archive.binary_name == "curl-impersonate.exe"

    def test_browsers_share_binary_key(self, resolver):
        chrome = resolver.resolve(BrowserDescriptor(browser="chrome"))
        firefox = resolver.resolve(BrowserDescriptor(browser="firefox"))

        assert chrome.key == firefox.key
        assert chrome.profile.tls_args != firefox.profile.tls_args

    @pytest.mark.parametrize("browser,older,newer", [
        ("chrome", "116", "136"),
        ("chrome", "124", "131"),
        ("safari", "17.0", "18.4"),
    ])
    def test_fingerprint_follows_version(self, resolver, browser, older, newer):
        old = resolver.resolve(BrowserDescriptor(browser=browser, version=older))
        new = resolver.resolve(BrowserDescriptor(browser=browser, version=newer))

        assert old.profile.tls_args != new.profile.tls_args

    def test_legacy_chromium_has_no_post_quantum_curves(self, resolver):
        for descriptor in (BrowserDescriptor(browser="chrome", version="116"),
                           BrowserDescriptor(browser="edge", version="99")):
            args = resolver.resolve(descriptor).profile.tls_args
            curves = args[args.index("--curves") + 1]
            assert "MLKEM" not in curves
            assert "--ech" not in args

    def test_edge_differs_from_current_chrome(self, resolver):
        edge = resolver.resolve(BrowserDescriptor(browser="edge", version="99"))
        chrome = resolver.resolve(BrowserDescriptor(browser="chrome", version="136"))
        assert edge.profile.tls_args != chrome.profile.tls_args

    def test_every_target_has_flags(self):
        targets = [t for versions in BROWSER_TARGETS.values() for t in versions.values()]
        assert sorted(TARGET_TLS_ARGS) == sorted(targets)

    def test_profile_headers_follow_platform(self, resolver):
        resolved = resolver.resolve(BrowserDescriptor(platform="windows", architecture="x64"))
        headers = dict(resolved.profile.headers)

        assert headers["sec-ch-ua-platform"] == '"Windows"'
        assert "Windows NT 10.0" in headers["User-Agent"]


class TestResolveUnsupported:
    """Unmapped combinations fail fast and name the missing axis"""

    @pytest.mark.parametrize("descriptor,axis", [
        (BrowserDescriptor(browser="opera"), "browser"),
        (BrowserDescriptor(browser="chrome", version="42"), "version"),
        (BrowserDescriptor(platform="android"), "platform"),
        (BrowserDescriptor(platform="ios", architecture="arm64"), "platform"),
        (BrowserDescriptor(platform="windows", architecture="arm64"), "architecture"),
        (BrowserDescriptor(platform="linux", architecture="riscv64"), "architecture"),
    ])
    def test_names_axis(self, resolver, descriptor, axis):
        with pytest.raises(UnsupportedDescriptor) as exc:
            resolver.resolve(descriptor)

        assert exc.value.axis == axis
        assert exc.value.retryable is False

    def test_unsupported_host_platform(self, matrix):
        resolver = DescriptorResolver(matrix, host=("freebsd", "x64"))

        with pytest.raises(UnsupportedDescriptor) as exc:
            resolver.resolve(BrowserDescriptor())

        assert exc.value.axis == "platform"
        assert exc.value.value == "freebsd"

    def test_error_lists_supported_values(self, resolver):
        with pytest.raises(UnsupportedDescriptor) as exc:
            resolver.resolve(BrowserDescriptor(browser="firefox", version="99"))

        assert set(exc.value.supported) == {"133", "135"}
        assert "Supported versions" in str(exc.value)

    def test_never_touches_the_store(self, resolver):
        store = MagicMock()

        with pytest.raises(UnsupportedDescriptor):
            resolver.resolve(BrowserDescriptor(browser="netscape"))

        store.ensure.assert_not_called()

    def test_validate_raises(self, resolver):
        with pytest.raises(UnsupportedDescriptor):
            resolver.validate(BrowserDescriptor(browser="chrome", version="1"))
