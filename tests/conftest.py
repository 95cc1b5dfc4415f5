import asyncio
import io
import stat
import tarfile
import textwrap

import pytest

from mimicurl.domain.entities.descriptor import Architecture, BrowserDescriptor, Platform
from mimicurl.domain.errors import DownloadFailed
from mimicurl.domain.services.descriptor_resolver import DescriptorResolver
from mimicurl.infrastructure.external.support_matrix import InMemorySupportMatrix
from mimicurl.infrastructure.http_transport import ArchiveTransport




def make_archive(binary: bytes, name: str = "curl-impersonate", folder: str = "curl-impersonate") -> bytes:
    """In-memory tar.gz holding one executable file"""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tf:
        info = tarfile.TarInfo(f"{folder}/{name}" if folder else name)
        info.size = len(binary)
        info.mode = 0o755
        tf.addfile(info, io.BytesIO(binary))
    return buffer.getvalue()


def fake_binary_script(body: str) -> bytes:
    """Shell script padded past the minimum binary size"""
    script = "#!/bin/sh\n" + textwrap.dedent(body).strip() + "\n"
    return (script + "#" * 2048 + "\n").encode()


class FakeTransport(ArchiveTransport):
    """Serves a fixed archive and counts fetches"""

    def __init__(self, archive: bytes = b"", error: Exception = None, delay: float = 0.0):
        self.archive = archive
        self.error = error
        self.delay = delay
        self.calls = []

    async def fetch(self, url, timeout=300.0):
        self.calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.archive


class FlakyTransport(FakeTransport):
    """Fails the first ``failures`` fetches"""

    def __init__(self, archive: bytes, failures: int):
        super().__init__(archive)
        self.failures = failures

    async def fetch(self, url, timeout=300.0):
        self.calls.append(url)
        if len(self.calls) <= self.failures:
            raise DownloadFailed(url, "connection reset")
        return self.archive


def write_script(path, body: str) -> str:
    path.write_bytes(fake_binary_script(body))
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def matrix():
    return InMemorySupportMatrix()


@pytest.fixture
def resolver(matrix):
    return DescriptorResolver(matrix, host=("linux", "x64"))


@pytest.fixture
def linux_chrome():
    return BrowserDescriptor(browser="chrome", platform=Platform.LINUX, architecture=Architecture.X64)


@pytest.fixture
def resolved(resolver, linux_chrome):
    return resolver.resolve(linux_chrome)


@pytest.fixture
def archive_factory():
    return make_archive


@pytest.fixture
def transport_factory():
    def factory(archive=b"", error=None, delay=0.0, failures=None):
        if failures is not None:
            return FlakyTransport(archive, failures)
        return FakeTransport(archive, error=error, delay=delay)
    return factory


@pytest.fixture
def script_factory(tmp_path):
    """Writes an executable fake binary under tmp_path"""
    counter = {"n": 0}

    def factory(body: str, name: str = None) -> str:
        counter["n"] += 1
        return write_script(tmp_path / (name or f"fake-curl-{counter['n']}"), body)
    return factory


@pytest.fixture
def fake_binary_bytes():
    return fake_binary_script
