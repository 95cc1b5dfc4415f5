"""
Client facade over the request engine.
Wires the default infrastructure and applies client-level defaults.
"""

import functools
from typing import Any, Callable, Mapping, Optional, Sequence
from urllib.parse import urljoin, urlsplit

from ..domain.entities.descriptor import BinaryRecord, BrowserDescriptor, ResolvedDescriptor
from ..domain.entities.request import HeaderInput, RequestSpec, merge_headers
from ..domain.entities.response import ResponseEnvelope
from ..domain.repositories.base import BinaryRepository, ProcessRunner, SupportMatrixRepository
from ..domain.services.descriptor_resolver import DescriptorResolver
from ..infrastructure.binary_store import BinaryStore
from ..infrastructure.config.settings_manager import Settings, SettingsManager
from ..infrastructure.external.support_matrix import InMemorySupportMatrix
from ..infrastructure.process_executor import AsyncProcessExecutor
from .use_cases.impersonated_request import (
    CommandPreview,
    ImpersonatedRequest,
    ListTargetsUseCase,
    PreviewCommandUseCase,
    ProvisionBinaryUseCase,
    RequestUseCase,
    TargetInfo,
)

_UNSET = object()


def join_url(base_url: Optional[str], url: str) -> str:
    """Resolve a relative URL against base_url; absolute URLs pass through"""
    if not base_url or urlsplit(url).scheme:
        return url
    return urljoin(base_url, url)


@functools.lru_cache(maxsize=None)
def default_store() -> BinaryStore:
    """Process-wide store shared by clients that do not bring their own.

    Built from the settings file and environment on first use.
    """
    return store_from_settings(SettingsManager().get_settings())


def store_from_settings(settings: Settings) -> BinaryStore:
    return BinaryStore(
        cache_root=settings.cache_dir,
        base_url=settings.download_base_url,
        download_timeout=settings.download_timeout,
        min_binary_size=settings.min_binary_size,
        download_retries=settings.download_retries,
        use_system_binary=settings.use_system_binary,
    )


class ImpersonationClient:
    """
    Issues requests that look like a given browser.

    Client-level headers, params and options apply to every request;
    per-request values win and headers merge case-insensitively.
    """

    def __init__(
        self,
        descriptor: Optional[BrowserDescriptor] = None,
        base_url: Optional[str] = None,
        headers: HeaderInput = None,
        params: Any = None,
        timeout: Optional[float] = 30.0,
        max_redirects: int = 10,
        proxy: Optional[str] = None,
        insecure_tls: bool = False,
        extra_curl_args: Sequence[str] = (),
        binary_path: Optional[str] = None,
        store: Optional[BinaryRepository] = None,
        matrix: Optional[SupportMatrixRepository] = None,
        runner: Optional[ProcessRunner] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.matrix = matrix or InMemorySupportMatrix()
        self.resolver = DescriptorResolver(self.matrix)
        # fail fast on an unsupported explicit descriptor
        if descriptor is not None:
            self.resolver.validate(descriptor)

        self.descriptor = descriptor
        self.base_url = base_url
        self.headers = merge_headers((), headers)
        self.params = params
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.proxy = proxy
        self.insecure_tls = insecure_tls
        self.extra_curl_args = tuple(extra_curl_args)
        self.binary_path = binary_path
        self.store = store or default_store()

        self._request_use_case = RequestUseCase(
            self.resolver, self.store, runner or AsyncProcessExecutor(environ=environ), environ=environ
        )
        self._preview_use_case = PreviewCommandUseCase(self.resolver, self.store, environ=environ)
        self._provision_use_case = ProvisionBinaryUseCase(self.resolver, self.store)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "ImpersonationClient":
        """Build a client from loaded settings; keyword arguments override them"""
        defaults = settings.defaults
        if 'descriptor' not in kwargs and (defaults.browser or defaults.version):
            kwargs['descriptor'] = BrowserDescriptor(browser=defaults.browser or "chrome", version=defaults.version)
        kwargs.setdefault('timeout', defaults.timeout)
        kwargs.setdefault('max_redirects', defaults.max_redirects)
        kwargs.setdefault('insecure_tls', defaults.insecure_tls)
        kwargs.setdefault('extra_curl_args', defaults.extra_curl_args)
        if 'store' not in kwargs:
            kwargs['store'] = store_from_settings(settings)
        if 'matrix' not in kwargs and settings.release:
            kwargs['matrix'] = InMemorySupportMatrix(release=settings.release)
        return cls(**kwargs)

    def resolve(self) -> ResolvedDescriptor:
        return self.resolver.resolve(self.descriptor)

    def build_spec(
        self,
        url: str,
        method: str = "GET",
        headers: HeaderInput = None,
        params: Any = None,
        data: Any = None,
        timeout: Any = _UNSET,
        max_redirects: Optional[int] = None,
        proxy: Optional[str] = None,
        insecure_tls: Optional[bool] = None,
        extra_curl_args: Optional[Sequence[str]] = None,
        base_url: Optional[str] = None,
    ) -> RequestSpec:
        """Merge client defaults with per-request values into a RequestSpec"""
        return RequestSpec(
            url=join_url(base_url or self.base_url, url),
            method=method,
            headers=merge_headers(self.headers, headers),
            params=self._merge_params(params),
            data=data,
            timeout=self.timeout if timeout is _UNSET else timeout,
            max_redirects=self.max_redirects if max_redirects is None else max_redirects,
            proxy=proxy or self.proxy,
            insecure_tls=self.insecure_tls if insecure_tls is None else insecure_tls,
            extra_curl_args=self.extra_curl_args + tuple(extra_curl_args or ()),
        )

    def _merge_params(self, params: Any) -> list:
        merged = []
        for source in (self.params, params):
            if not source:
                continue
            merged.extend(source.items() if isinstance(source, Mapping) else source)
        return merged

    async def send(
        self,
        spec: RequestSpec,
        decoder: Optional[Callable[[Any], Any]] = None,
        force_refresh: bool = False,
    ) -> ResponseEnvelope:
        """Run an already-built RequestSpec"""
        return await self._request_use_case.execute(ImpersonatedRequest(
            spec=spec,
            descriptor=self.descriptor,
            binary_path=self.binary_path,
            decoder=decoder,
            force_refresh=force_refresh,
        ))

    async def request(
        self, method: str, url: str, decoder: Optional[Callable[[Any], Any]] = None, **kwargs
    ) -> ResponseEnvelope:
        spec = self.build_spec(url, method=method, **kwargs)
        return await self.send(spec, decoder=decoder)

    async def get(self, url: str, **kwargs) -> ResponseEnvelope:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, data: Any = None, **kwargs) -> ResponseEnvelope:
        return await self.request("POST", url, data=data, **kwargs)

    async def put(self, url: str, data: Any = None, **kwargs) -> ResponseEnvelope:
        return await self.request("PUT", url, data=data, **kwargs)

    async def patch(self, url: str, data: Any = None, **kwargs) -> ResponseEnvelope:
        return await self.request("PATCH", url, data=data, **kwargs)

    async def delete(self, url: str, **kwargs) -> ResponseEnvelope:
        return await self.request("DELETE", url, **kwargs)

    async def head(self, url: str, **kwargs) -> ResponseEnvelope:
        return await self.request("HEAD", url, **kwargs)

    async def options(self, url: str, **kwargs) -> ResponseEnvelope:
        return await self.request("OPTIONS", url, **kwargs)

    async def ensure_binary(self, force_refresh: bool = False) -> BinaryRecord:
        return await self._provision_use_case.execute(self.descriptor, force_refresh=force_refresh)

    def preview(self, url: str, method: str = "GET", **kwargs) -> CommandPreview:
        """Exact command a request would run; never provisions or spawns"""
        spec = self.build_spec(url, method=method, **kwargs)
        return self._preview_use_case.execute(spec, self.descriptor, self.binary_path)

    def list_targets(self, browser: Optional[str] = None) -> Sequence[TargetInfo]:
        return ListTargetsUseCase(self.matrix).execute(browser)


def _client(descriptor: Optional[BrowserDescriptor] = None, **kwargs) -> ImpersonationClient:
    return ImpersonationClient(descriptor=descriptor, **kwargs)


async def request(method: str, url: str, descriptor: Optional[BrowserDescriptor] = None, **kwargs) -> ResponseEnvelope:
    return await _client(descriptor).request(method, url, **kwargs)


async def get(url: str, descriptor: Optional[BrowserDescriptor] = None, **kwargs) -> ResponseEnvelope:
    return await _client(descriptor).get(url, **kwargs)


async def post(url: str, data: Any = None, descriptor: Optional[BrowserDescriptor] = None, **kwargs) -> ResponseEnvelope:
    return await _client(descriptor).post(url, data=data, **kwargs)


async def put(url: str, data: Any = None, descriptor: Optional[BrowserDescriptor] = None, **kwargs) -> ResponseEnvelope:
    return await _client(descriptor).put(url, data=data, **kwargs)


async def patch(url: str, data: Any = None, descriptor: Optional[BrowserDescriptor] = None, **kwargs) -> ResponseEnvelope:
    return await _client(descriptor).patch(url, data=data, **kwargs)


async def delete(url: str, descriptor: Optional[BrowserDescriptor] = None, **kwargs) -> ResponseEnvelope:
    return await _client(descriptor).delete(url, **kwargs)


async def head(url: str, descriptor: Optional[BrowserDescriptor] = None, **kwargs) -> ResponseEnvelope:
    return await _client(descriptor).head(url, **kwargs)


async def options(url: str, descriptor: Optional[BrowserDescriptor] = None, **kwargs) -> ResponseEnvelope:
    return await _client(descriptor).options(url, **kwargs)


async def download_binary(
    descriptor: Optional[BrowserDescriptor] = None,
    force_refresh: bool = False,
    store: Optional[BinaryRepository] = None,
) -> BinaryRecord:
    """Provision the binary for a descriptor without issuing a request"""
    return await _client(descriptor, store=store).ensure_binary(force_refresh=force_refresh)
