"""
Binary Store - filesystem cache of impersonation binaries.

Layout: one subdirectory per binary key under the cache root, holding the
extracted archive and a ``record.json`` metadata file. A key directory only
appears once its binary is extracted, executable and verified: work happens
in a hidden staging directory that is renamed into place at the end, and
removed on any failure.

Concurrent ``ensure`` calls for one key share a single in-flight
provisioning (single-flight); every caller observes the same record or the
same exception. Ready records are served from memory without locking.
"""
from __future__ import annotations

import asyncio
import hashlib
import io
import json
import logging
import os
import shutil
import stat
import tarfile
import tempfile
import zipfile
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, Optional

from ..domain.entities.descriptor import BinaryKey, BinaryRecord, BinaryState, ResolvedDescriptor
from ..domain.errors import DownloadFailed, VerificationFailed
from ..domain.repositories.base import BinaryRepository
from .http_transport import ArchiveTransport, CurlCffiTransport

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://github.com/lexiforest/curl-impersonate/releases/download"
METADATA_FILE = "record.json"
MIN_BINARY_SIZE = 1024

SYSTEM_SEARCH_PATHS = (
    "/usr/local/bin", "/usr/bin", "/bin", "/usr/local/sbin", "/usr/sbin", "/sbin",
    "./binaries", ".",
)


@lru_cache(maxsize=1)
def default_cache_root() -> Path:
    """Cache root under the home directory, else under the working directory.

    Decided once per process.
    """
    try:
        root = Path.home() / ".mimicurl" / "binaries"
        root.mkdir(parents=True, exist_ok=True)
        if not os.access(root, os.W_OK):
            raise PermissionError(f"{root} is not writable")
        return root
    except (OSError, RuntimeError, KeyError) as e:
        fallback = Path.cwd() / ".mimicurl" / "binaries"
        logger.warning("Home cache directory unavailable (%s); using %s", e, fallback)
        return fallback


def file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def is_executable(path: Path) -> bool:
    if not path.is_file():
        return False
    if os.name == "nt":
        return path.suffix.lower() in (".exe", ".bat", ".cmd")
    return os.access(path, os.X_OK)


def make_executable(path: Path) -> None:
    if os.name == "nt":
        return
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def find_system_binary(binary_name: str, search_paths: Iterable[str] = SYSTEM_SEARCH_PATHS) -> Optional[Path]:
    """First executable ``binary_name`` found on the well-known search paths"""
    for directory in search_paths:
        candidate = Path(directory) / binary_name
        if is_executable(candidate):
            return candidate.resolve()
    return None


class BinaryStore(BinaryRepository):
    """
    Filesystem-backed binary repository.
    Per key: Absent -> Downloading -> Extracting -> Verifying -> Ready.
    """

    def __init__(
        self,
        cache_root: Optional[os.PathLike] = None,
        transport: Optional[ArchiveTransport] = None,
        base_url: str = DEFAULT_BASE_URL,
        download_timeout: float = 300.0,
        min_binary_size: int = MIN_BINARY_SIZE,
        download_retries: int = 0,
        use_system_binary: bool = False,
    ):
        self._root = Path(cache_root) if cache_root else default_cache_root()
        self._transport = transport or CurlCffiTransport()
        self._base_url = base_url.rstrip('/')
        self._download_timeout = download_timeout
        self._min_binary_size = min_binary_size
        self._download_retries = max(0, download_retries)
        self._use_system_binary = use_system_binary
        self._records: Dict[str, BinaryRecord] = {}
        self._states: Dict[str, BinaryState] = {}
        self._inflight: Dict[str, asyncio.Future] = {}

    @property
    def root(self) -> Path:
        return self._root

    def key_dir(self, key: BinaryKey) -> Path:
        return self._root / key.value

    def url_for(self, resolved: ResolvedDescriptor) -> str:
        return f"{self._base_url}/{resolved.archive.release}/{resolved.archive.asset_name}"

    def state(self, key: BinaryKey) -> BinaryState:
        return self._states.get(key.value, BinaryState.ABSENT)

    def expected_path(self, resolved: ResolvedDescriptor) -> str:
        record = self.lookup(resolved.key)
        if record:
            return record.path
        return str(self.key_dir(resolved.key) / resolved.archive.binary_name)

    def lookup(self, key: BinaryKey) -> Optional[BinaryRecord]:
        """Ready record from memory, else from the on-disk metadata without re-hashing"""
        record = self._ready_record(key)
        if record:
            return record
        record = self._read_record(key)
        if record and is_executable(Path(record.path)):
            return record
        return None

    def _ready_record(self, key: BinaryKey) -> Optional[BinaryRecord]:
        record = self._records.get(key.value)
        if record and is_executable(Path(record.path)):
            return record
        return None

    async def ensure(self, resolved: ResolvedDescriptor, force_refresh: bool = False) -> BinaryRecord:
        key = resolved.key.value
        if not force_refresh:
            record = self._ready_record(resolved.key)
            if record:
                return record

        inflight = self._inflight.get(key)
        if inflight is not None:
            logger.debug("Joining in-flight provisioning of %s", key)
            return await asyncio.shield(inflight)

        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            record = await self._provision(resolved, force_refresh)
        except asyncio.CancelledError:
            self._fail(future, DownloadFailed(self.url_for(resolved), "provisioning was cancelled"))
            raise
        except Exception as e:
            self._fail(future, e)
            raise
        else:
            future.set_result(record)
            return record
        finally:
            self._inflight.pop(key, None)
            if key in self._records:
                self._states[key] = BinaryState.READY
            else:
                self._states.pop(key, None)

    def clear(self, key: Optional[BinaryKey] = None) -> int:
        """Delete cached binaries; returns the number of key directories removed"""
        if key is not None:
            targets = [self.key_dir(key)]
        elif self._root.is_dir():
            targets = [p for p in self._root.iterdir() if p.is_dir()]
        else:
            targets = []

        removed = 0
        for directory in targets:
            if directory.is_dir():
                shutil.rmtree(directory)
                removed += 1
            self._records.pop(directory.name, None)
            self._states.pop(directory.name, None)
        logger.info("Removed %d cached binaries from %s", removed, self._root)
        return removed

    @staticmethod
    def _fail(future: asyncio.Future, error: BaseException) -> None:
        future.set_exception(error)
        # mark retrieved so an unobserved failure is not logged by asyncio
        future.exception()

    async def _provision(self, resolved: ResolvedDescriptor, force_refresh: bool) -> BinaryRecord:
        key = resolved.key.value

        if not force_refresh:
            record = await asyncio.to_thread(self._load_record, resolved)
            if record is None and self._use_system_binary:
                record = self._system_record(resolved)
            if record is not None:
                return self._promote(record)

        archive = await self._download(resolved)

        self._states[key] = BinaryState.EXTRACTING
        staging = self._make_staging(resolved)
        try:
            await self._in_worker(staging, self._extract, resolved, archive, staging)
            self._states[key] = BinaryState.VERIFYING
            record = await self._in_worker(staging, self._verify_and_install, resolved, staging, archive)
        finally:
            shutil.rmtree(staging, ignore_errors=True)
        logger.info("Binary %s ready at %s", key, record.path)
        return self._promote(record)

    @staticmethod
    async def _in_worker(staging: Path, func, *args):
        """Run ``func`` in a thread; if cancelled, remove ``staging`` once the thread is done"""
        work = asyncio.ensure_future(asyncio.to_thread(func, *args))
        try:
            return await asyncio.shield(work)
        except asyncio.CancelledError:
            def cleanup(done: asyncio.Future) -> None:
                if not done.cancelled():
                    done.exception()
                shutil.rmtree(staging, ignore_errors=True)
            work.add_done_callback(cleanup)
            raise

    def _promote(self, record: BinaryRecord) -> BinaryRecord:
        self._records[record.key.value] = record
        self._states[record.key.value] = BinaryState.READY
        return record

    async def _download(self, resolved: ResolvedDescriptor) -> bytes:
        url = self.url_for(resolved)
        self._states[resolved.key.value] = BinaryState.DOWNLOADING
        attempts = self._download_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await self._transport.fetch(url, timeout=self._download_timeout)
            except DownloadFailed as e:
                if attempt == attempts:
                    raise
                logger.warning("Download attempt %d/%d failed: %s", attempt, attempts, e)
        raise DownloadFailed(url, "no download attempted")

    def _read_record(self, key: BinaryKey) -> Optional[BinaryRecord]:
        metadata = self.key_dir(key) / METADATA_FILE
        if not metadata.is_file():
            return None
        try:
            return BinaryRecord.from_dict(json.loads(metadata.read_text(encoding='utf-8')))
        except (OSError, ValueError, KeyError) as e:
            logger.warning("Ignoring unreadable record for %s: %s", key, e)
            return None

    def _load_record(self, resolved: ResolvedDescriptor) -> Optional[BinaryRecord]:
        record = self._read_record(resolved.key)
        if record is None:
            return None

        binary = Path(record.path)
        if not binary.is_file():
            logger.warning("Cached binary for %s is missing; re-provisioning", resolved.key)
            return None
        if file_sha256(binary) != record.binary_sha256:
            logger.warning("Checksum mismatch for cached %s; re-provisioning", resolved.key)
            return None
        if not is_executable(binary):
            make_executable(binary)
        logger.debug("Using cached binary %s", binary)
        return record

    def _system_record(self, resolved: ResolvedDescriptor) -> Optional[BinaryRecord]:
        found = find_system_binary(resolved.archive.binary_name)
        if found is None:
            return None
        logger.info("Using pre-installed binary %s", found)
        return BinaryRecord(
            key=resolved.key,
            path=str(found),
            executable=True,
            archive_sha256="",
            binary_sha256=file_sha256(found),
            binary_size=found.stat().st_size,
            acquired_at=datetime.now(timezone.utc),
            release=resolved.archive.release,
            source_url=f"file://{found}",
        )

    def _make_staging(self, resolved: ResolvedDescriptor) -> Path:
        self._root.mkdir(parents=True, exist_ok=True)
        for stale in self._root.glob(f".{resolved.key.value}-*"):
            shutil.rmtree(stale, ignore_errors=True)
        return Path(tempfile.mkdtemp(prefix=f".{resolved.key.value}-", dir=self._root))

    def _extract(self, resolved: ResolvedDescriptor, archive: bytes, staging: Path) -> None:
        try:
            expected = resolved.archive.sha256
            if expected and hashlib.sha256(archive).hexdigest() != expected.lower():
                raise VerificationFailed(resolved.key, "archive checksum does not match the support matrix")
            if resolved.archive.is_zip:
                with zipfile.ZipFile(io.BytesIO(archive)) as zf:
                    zf.extractall(staging)
            else:
                with tarfile.open(fileobj=io.BytesIO(archive), mode='r:*') as tf:
                    tf.extractall(staging, filter='data')
        except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
            raise VerificationFailed(resolved.key, f"could not extract archive: {e}") from e

    def _verify_and_install(self, resolved: ResolvedDescriptor, staging: Path, archive: bytes) -> BinaryRecord:
        name = resolved.archive.binary_name
        matches = sorted(p for p in staging.rglob(name) if p.is_file())
        if not matches:
            raise VerificationFailed(resolved.key, f"{name} not found in archive")
        binary = matches[0]

        size = binary.stat().st_size
        if size < self._min_binary_size:
            raise VerificationFailed(resolved.key, f"{name} is only {size} bytes")
        try:
            make_executable(binary)
        except OSError as e:
            raise VerificationFailed(resolved.key, f"cannot set executable permission: {e}") from e
        if not is_executable(binary):
            raise VerificationFailed(resolved.key, f"{name} is not executable")

        final_dir = self.key_dir(resolved.key)
        record = BinaryRecord(
            key=resolved.key,
            path=str(final_dir / binary.relative_to(staging)),
            executable=True,
            archive_sha256=hashlib.sha256(archive).hexdigest(),
            binary_sha256=file_sha256(binary),
            binary_size=size,
            acquired_at=datetime.now(timezone.utc),
            release=resolved.archive.release,
            source_url=self.url_for(resolved),
        )
        with open(staging / METADATA_FILE, 'w', encoding='utf-8') as f:
            json.dump(record.to_dict(), f, indent=2)

        if final_dir.exists():
            shutil.rmtree(final_dir)
        os.replace(staging, final_dir)
        return record


__all__ = ["BinaryStore", "default_cache_root", "find_system_binary", "DEFAULT_BASE_URL", "MIN_BINARY_SIZE"]
