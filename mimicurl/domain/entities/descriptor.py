"""
Domain Entities - Browser Descriptors and Binary Records
Value objects identifying which fingerprint to impersonate and which
binary variant serves it
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class Browser(Enum):
    """Browser families whose fingerprint can be impersonated"""
    CHROME = "chrome"
    FIREFOX = "firefox"
    EDGE = "edge"
    SAFARI = "safari"


class Platform(Enum):
    """Operating system axis of a descriptor"""
    LINUX = "linux"
    WINDOWS = "windows"
    MACOS = "macos"
    ANDROID = "android"
    IOS = "ios"


class Architecture(Enum):
    """CPU architecture axis of a descriptor"""
    X64 = "x64"
    ARM64 = "arm64"


def _coerce(enum_cls, value):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return value


@dataclass(frozen=True)
class BrowserDescriptor:
    """
    Partially specified browser descriptor.
    Missing fields are filled by the DescriptorResolver. Strings are
    normalized into the enums when they name a known member; unknown
    strings are kept so the resolver can report the offending axis.
    """
    browser: object = Browser.CHROME
    version: Optional[str] = None
    platform: object = None
    architecture: object = None

    def __post_init__(self):
        object.__setattr__(self, 'browser', _coerce(Browser, self.browser or Browser.CHROME))
        object.__setattr__(self, 'platform', _coerce(Platform, self.platform))
        object.__setattr__(self, 'architecture', _coerce(Architecture, self.architecture))
        if self.version is not None:
            version = str(self.version).strip().lower()
            if version.startswith('v'):
                version = version[1:]
            object.__setattr__(self, 'version', version or None)

    @property
    def is_empty(self) -> bool:
        return (self.version is None and self.platform is None
                and self.architecture is None and self.browser == Browser.CHROME)


@dataclass(frozen=True)
class BinaryKey:
    """Value Object for the canonical identity of one cacheable binary variant"""
    value: str

    def __post_init__(self):
        if not self.value or not self.value.strip():
            raise ValueError("Binary key must be a non-empty string")
        if '/' in self.value or '\\' in self.value or self.value.startswith('.'):
            raise ValueError("Binary key must be usable as a directory name")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ArchiveSpec:
    """Downloadable archive that contains one binary variant"""
    release: str
    asset_name: str
    binary_name: str = "curl-impersonate"
    sha256: Optional[str] = None

    @property
    def is_zip(self) -> bool:
        return self.asset_name.endswith('.zip')


@dataclass(frozen=True)
class BrowserProfile:
    """
    Fingerprint profile of one browser version.
    Holds the fixed TLS/HTTP flags and the default header set sent in
    browser order.
    """
    target: str
    tls_args: Tuple[str, ...]
    headers: Tuple[Tuple[str, str], ...] = ()


@dataclass(frozen=True)
class ResolvedDescriptor:
    """Fully specified descriptor validated against the support matrix"""
    browser: Browser
    version: str
    platform: Platform
    architecture: Architecture
    key: BinaryKey
    archive: ArchiveSpec
    profile: BrowserProfile

    @property
    def target(self) -> str:
        return self.profile.target

    def to_dict(self) -> dict:
        return {
            "browser": self.browser.value,
            "version": self.version,
            "platform": self.platform.value,
            "architecture": self.architecture.value,
            "key": self.key.value,
            "release": self.archive.release,
            "asset": self.archive.asset_name,
            "target": self.profile.target,
        }


class BinaryState(Enum):
    """Provisioning lifecycle of a binary key"""
    ABSENT = "absent"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    VERIFYING = "verifying"
    READY = "ready"


@dataclass(frozen=True)
class BinaryRecord:
    """
    Provisioned binary owned by the BinaryStore.
    Persisted next to the binary as metadata so later lookups can skip
    the download.
    """
    key: BinaryKey
    path: str
    executable: bool
    archive_sha256: str
    binary_sha256: str
    binary_size: int
    acquired_at: datetime
    release: str = ""
    source_url: str = ""
    state: BinaryState = field(default=BinaryState.READY)

    def __post_init__(self):
        if not self.path:
            raise ValueError("Binary record requires a path")
        if self.binary_size < 0:
            raise ValueError("Binary size must be non-negative")

    @property
    def is_ready(self) -> bool:
        return self.state == BinaryState.READY and self.executable

    def to_dict(self) -> dict:
        """Convert to dictionary for the on-disk metadata record"""
        return {
            "key": self.key.value,
            "path": self.path,
            "executable": self.executable,
            "archive_sha256": self.archive_sha256,
            "binary_sha256": self.binary_sha256,
            "binary_size": self.binary_size,
            "acquired_at": self.acquired_at.isoformat(),
            "release": self.release,
            "source_url": self.source_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BinaryRecord":
        return cls(
            key=BinaryKey(data["key"]),
            path=data["path"],
            executable=bool(data.get("executable", False)),
            archive_sha256=data.get("archive_sha256", ""),
            binary_sha256=data.get("binary_sha256", ""),
            binary_size=int(data.get("binary_size", 0)),
            acquired_at=datetime.fromisoformat(data["acquired_at"]),
            release=data.get("release", ""),
            source_url=data.get("source_url", ""),
        )
