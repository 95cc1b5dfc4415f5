"""
Application Use Cases - Orchestration Layer
resolve -> proxy -> binary -> build -> run -> parse
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional
from urllib.parse import urlsplit

from ...domain.entities.descriptor import (
    Browser, BinaryRecord, BrowserDescriptor, Platform, ResolvedDescriptor,
)
from ...domain.entities.request import ProxySpec, RequestSpec
from ...domain.entities.response import RequestInfo, ResponseEnvelope
from ...domain.errors import VerificationFailed
from ...domain.repositories.base import BinaryRepository, ProcessRunner, SupportMatrixRepository
from ...domain.services.command_builder import BuiltCommand, CommandBuilder, max_time_override
from ...domain.services.descriptor_resolver import DescriptorResolver
from ...domain.services.proxy_resolver import ProxyResolver
from ...domain.services.response_parser import ResponseParser
from ...infrastructure.binary_store import is_executable


logger = logging.getLogger(__name__)

# Extra wall-clock time granted so curl's own --max-time fires first
TIMEOUT_GRACE = 1.0


@dataclass
class ImpersonatedRequest:
    """Request DTO for one impersonated HTTP call"""
    spec: RequestSpec
    descriptor: Optional[BrowserDescriptor] = None
    binary_path: Optional[str] = None
    decoder: Optional[Callable[[Any], Any]] = None
    force_refresh: bool = False


@dataclass
class CommandPreview:
    """Response DTO for the command preview use case"""
    resolved: ResolvedDescriptor
    argv: List[str]
    command_line: str
    proxy: Optional[ProxySpec]
    binary_ready: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'target': self.resolved.target,
            'key': self.resolved.key.value,
            'argv': list(self.argv),
            'command': self.command_line,
            'proxy': self.proxy.to_url(mask_password=True) if self.proxy else None,
            'binary_ready': self.binary_ready,
        }


def _host_of(url: str) -> Optional[str]:
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None


def _explicit_binary(path: str) -> str:
    if not is_executable(Path(path)):
        raise VerificationFailed(path, "binary is missing or not executable")
    return str(path)


class _PlanningMixin:
    """Shared resolve/proxy/build steps of the request and preview use cases"""

    _resolver: DescriptorResolver
    _proxy_resolver: ProxyResolver
    _builder: CommandBuilder
    _environ: Mapping[str, str]

    def _resolve_proxy(self, spec: RequestSpec) -> Optional[ProxySpec]:
        return self._proxy_resolver.resolve(
            spec.proxy, spec.scheme, self._environ, host=_host_of(spec.url)
        )


class RequestUseCase(_PlanningMixin):
    """
    Primary Use Case: issue one request through the impersonation binary.
    Resolution and provisioning errors abort before any process is spawned.
    """

    def __init__(
        self,
        resolver: DescriptorResolver,
        binary_repository: BinaryRepository,
        process_runner: ProcessRunner,
        builder: Optional[CommandBuilder] = None,
        parser: Optional[ResponseParser] = None,
        proxy_resolver: Optional[ProxyResolver] = None,
        environ: Optional[Mapping[str, str]] = None,
        timeout_grace: float = TIMEOUT_GRACE,
    ):
        self._resolver = resolver
        self._binaries = binary_repository
        self._runner = process_runner
        self._builder = builder or CommandBuilder()
        self._parser = parser or ResponseParser()
        self._proxy_resolver = proxy_resolver or ProxyResolver()
        self._environ = os.environ if environ is None else environ
        self._timeout_grace = timeout_grace

    async def execute(self, request: ImpersonatedRequest) -> ResponseEnvelope:
        spec = request.spec

        # 1. Pure planning: nothing touches disk or network yet
        resolved = self._resolver.resolve(request.descriptor)
        proxy = self._resolve_proxy(spec)

        # 2. Binary
        if request.binary_path:
            binary_path = _explicit_binary(request.binary_path)
        else:
            record = await self._binaries.ensure(resolved, force_refresh=request.force_refresh)
            binary_path = record.path

        # 3. Build, run and parse
        command = self._builder.build(binary_path, resolved, spec, proxy)
        try:
            logger.debug("Running %s", command.command_line())
            raw = await self._runner.run(command.binary_path, command.argv, self._process_timeout(spec))
        finally:
            command.cleanup()

        return self._parser.parse(raw, decoder=request.decoder, request=self._request_info(command))

    def _process_timeout(self, spec: RequestSpec) -> Optional[float]:
        # a caller's --max-time wins over the computed one, as it does in curl
        timeout = max_time_override(spec.extra_curl_args)
        if timeout is None:
            timeout = spec.timeout
        # curl treats --max-time 0 as no limit
        if not timeout:
            return None
        return timeout + self._timeout_grace

    @staticmethod
    def _request_info(command: BuiltCommand) -> RequestInfo:
        return RequestInfo(
            url=command.url,
            method=command.method.value,
            headers=command.headers,
            argv=tuple(command.full_argv),
            command=command.command_line(),
        )


class PreviewCommandUseCase(_PlanningMixin):
    """Return the exact argument vector a request would run, without executing it"""

    def __init__(
        self,
        resolver: DescriptorResolver,
        binary_repository: BinaryRepository,
        builder: Optional[CommandBuilder] = None,
        proxy_resolver: Optional[ProxyResolver] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self._resolver = resolver
        self._binaries = binary_repository
        self._builder = builder or CommandBuilder()
        self._proxy_resolver = proxy_resolver or ProxyResolver()
        self._environ = os.environ if environ is None else environ

    def execute(
        self,
        spec: RequestSpec,
        descriptor: Optional[BrowserDescriptor] = None,
        binary_path: Optional[str] = None,
    ) -> CommandPreview:
        resolved = self._resolver.resolve(descriptor)
        proxy = self._resolve_proxy(spec)
        if binary_path:
            path, ready = str(binary_path), is_executable(Path(binary_path))
        else:
            path = self._binaries.expected_path(resolved)
            ready = self._binaries.lookup(resolved.key) is not None

        command = self._builder.build(path, resolved, spec, proxy, materialize_body=False)
        return CommandPreview(
            resolved=resolved,
            argv=command.full_argv,
            command_line=command.command_line(),
            proxy=proxy,
            binary_ready=ready,
        )


class ProvisionBinaryUseCase:
    """Make sure the binary for a descriptor is downloaded and verified"""

    def __init__(self, resolver: DescriptorResolver, binary_repository: BinaryRepository):
        self._resolver = resolver
        self._binaries = binary_repository

    async def execute(
        self, descriptor: Optional[BrowserDescriptor] = None, force_refresh: bool = False
    ) -> BinaryRecord:
        resolved = self._resolver.resolve(descriptor)
        record = await self._binaries.ensure(resolved, force_refresh=force_refresh)
        logger.info("Binary %s ready at %s", record.key.value, record.path)
        return record


@dataclass
class TargetInfo:
    browser: str
    version: str
    platform: str
    architecture: str
    target: str
    triple: str
    latest: bool


class ListTargetsUseCase:
    """Flatten the support matrix for diagnostics"""

    def __init__(self, matrix: SupportMatrixRepository):
        self._matrix = matrix

    def execute(self, browser: Optional[str] = None) -> List[TargetInfo]:
        targets = []
        for browser_name, versions in self._matrix.get_matrix().items():
            if browser and browser_name != browser.lower():
                continue
            latest = self._matrix.latest_version(Browser(browser_name))
            for version, platforms in versions.items():
                for platform_name, architectures in platforms.items():
                    profile = self._matrix.get_profile(Browser(browser_name), version, Platform(platform_name))
                    for arch_name, triple in architectures.items():
                        targets.append(TargetInfo(
                            browser=browser_name,
                            version=version,
                            platform=platform_name,
                            architecture=arch_name,
                            target=profile.target,
                            triple=triple,
                            latest=version == latest,
                        ))
        return targets
