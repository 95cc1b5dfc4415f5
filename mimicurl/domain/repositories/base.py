"""
Domain Repository Interfaces
Ports the use cases depend on; infrastructure supplies the adapters
"""

from abc import ABC, abstractmethod
from typing import Mapping, Optional, Sequence

from ..entities.descriptor import (
    BinaryKey, BinaryRecord, Browser, BrowserProfile, Platform, ResolvedDescriptor
)
from ..entities.response import RawOutput


class SupportMatrixRepository(ABC):
    """
    Repository interface for the static support matrix
    browser -> version -> platform -> architecture -> variant triple
    """

    @property
    @abstractmethod
    def release(self) -> str:
        """Release tag every variant is downloaded from"""
        pass

    @abstractmethod
    def get_matrix(self) -> Mapping[str, Mapping[str, Mapping[str, Mapping[str, str]]]]:
        """Map-of-maps keyed by browser, version, platform and architecture"""
        pass

    @abstractmethod
    def latest_version(self, browser: Browser) -> str:
        """Latest stable version declared for a browser"""
        pass

    @abstractmethod
    def get_profile(self, browser: Browser, version: str, platform: Platform) -> BrowserProfile:
        """Fingerprint profile for a supported browser version"""
        pass


class BinaryRepository(ABC):
    """
    Repository interface for provisioned impersonation binaries
    Owns the on-disk cache and its records
    """

    @abstractmethod
    async def ensure(self, resolved: ResolvedDescriptor, force_refresh: bool = False) -> BinaryRecord:
        """Return a ready binary for the descriptor, provisioning it if needed"""
        pass

    @abstractmethod
    def expected_path(self, resolved: ResolvedDescriptor) -> str:
        """Where the binary for a descriptor lives, provisioned or not"""
        pass

    @abstractmethod
    def lookup(self, key: BinaryKey) -> Optional[BinaryRecord]:
        """Ready record for a key, without any provisioning"""
        pass

    @abstractmethod
    def clear(self, key: Optional[BinaryKey] = None) -> int:
        """Remove one cached variant, or all of them"""
        pass


class ProcessRunner(ABC):
    """Runs one impersonation process and captures its output"""

    @abstractmethod
    async def run(self, binary_path: str, argv: Sequence[str], timeout: Optional[float] = None) -> RawOutput:
        """Spawn, wait (bounded by timeout) and return the captured output"""
        pass
