"""
Descriptor Resolution Service
Fills gaps in a BrowserDescriptor and validates it against the support
matrix. Pure and deterministic: host facts are injected, no I/O happens.
"""

import platform as platform_module
import sys
from typing import Optional, Tuple

from ..entities.descriptor import (
    ArchiveSpec, Architecture, BinaryKey, Browser, BrowserDescriptor, Platform, ResolvedDescriptor
)
from ..errors import UnsupportedDescriptor
from ..repositories.base import SupportMatrixRepository


_MACHINE_ALIASES = {
    "x86_64": "x64", "amd64": "x64", "x64": "x64",
    "aarch64": "arm64", "arm64": "arm64", "armv8": "arm64", "armv8l": "arm64",
}


def detect_host() -> Tuple[str, str]:
    """Platform and architecture of the running interpreter, as raw names"""
    if hasattr(sys, 'getandroidapilevel'):
        system = "android"
    elif sys.platform == "ios":
        system = "ios"
    elif sys.platform.startswith("win"):
        system = "windows"
    elif sys.platform == "darwin":
        system = "macos"
    else:
        system = sys.platform
    machine = platform_module.machine().lower()
    return system, _MACHINE_ALIASES.get(machine, machine)


def asset_name_for(release: str, triple: str) -> str:
    return f"curl-impersonate-{release}.{triple}.tar.gz"


class DescriptorResolver:
    """
    Domain Service turning partial descriptors into resolved ones.
    Axes are checked in matrix order (browser, version, platform,
    architecture); the first missing one is named in the error.
    """

    def __init__(self, matrix: SupportMatrixRepository, host: Optional[Tuple[str, str]] = None):
        self._matrix = matrix
        self._host = host or detect_host()

    @property
    def host(self) -> Tuple[str, str]:
        return self._host

    def resolve(self, descriptor: Optional[BrowserDescriptor] = None) -> ResolvedDescriptor:
        descriptor = descriptor or BrowserDescriptor()
        table = self._matrix.get_matrix()

        browser = descriptor.browser
        if not isinstance(browser, Browser) or browser.value not in table:
            raise UnsupportedDescriptor("browser", _name(browser), sorted(table))
        versions = table[browser.value]

        version = self._resolve_version(browser, descriptor.version, versions)
        platforms = versions[version]

        platform = descriptor.platform if descriptor.platform is not None else self._host[0]
        platform = _to_enum(Platform, platform)
        if platform is None or platform.value not in platforms:
            raise UnsupportedDescriptor(
                "platform", _name(descriptor.platform or self._host[0]), sorted(platforms),
                detail=f"{browser.value} {version}"
            )
        architectures = platforms[platform.value]

        architecture = descriptor.architecture if descriptor.architecture is not None else self._host[1]
        architecture = _to_enum(Architecture, architecture)
        if architecture is None or architecture.value not in architectures:
            raise UnsupportedDescriptor(
                "architecture", _name(descriptor.architecture or self._host[1]), sorted(architectures),
                detail=f"{browser.value} {version} on {platform.value}"
            )

        triple = architectures[architecture.value]
        release = self._matrix.release
        return ResolvedDescriptor(
            browser=browser,
            version=version,
            platform=platform,
            architecture=architecture,
            key=BinaryKey(f"{release}-{platform.value}-{architecture.value}"),
            archive=ArchiveSpec(
                release=release,
                asset_name=asset_name_for(release, triple),
                binary_name="curl-impersonate.exe" if platform == Platform.WINDOWS else "curl-impersonate",
            ),
            profile=self._matrix.get_profile(browser, version, platform),
        )

    def validate(self, descriptor: BrowserDescriptor) -> None:
        """Fail fast on a descriptor that cannot be resolved"""
        self.resolve(descriptor)

    def _resolve_version(self, browser: Browser, requested: Optional[str], versions) -> str:
        if requested in (None, "", "latest"):
            return self._matrix.latest_version(browser)
        if requested in versions:
            return requested
        # "131.0.6778.86" resolves to "131", "18.4.1" to "18.4"
        candidates = [v for v in versions if requested.startswith(v + ".")]
        if candidates:
            return max(candidates, key=len)
        raise UnsupportedDescriptor("version", requested, list(versions), detail=browser.value)


def _to_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        return None


def _name(value) -> str:
    return value.value if hasattr(value, 'value') else str(value)
