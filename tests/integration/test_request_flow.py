"""
End-to-end request flow: provisioning from an in-memory archive, then a real
subprocess running a fake impersonation binary
"""

import os
import sys

import pytest

from mimicurl.application.client import ImpersonationClient, download_binary
from mimicurl.domain.errors import ProcessFailed, RequestTimeout
from mimicurl.domain.services.response_parser import FRAME_MARKER
from mimicurl.infrastructure.binary_store import BinaryStore


pytestmark = pytest.mark.skipif(sys.platform.startswith("win"), reason="requires a POSIX shell")

HEAD = "HTTP/1.1 200 OK\r\nContent-Type: application/json\r\nX-Echo: yes\r\n\r\n"


def responder(body_printf: str, head: str = HEAD) -> str:
    """Fake curl: answers with ``head`` and a body, framing trailer on stderr"""
    size = len(head.encode())
    escaped_head = head.replace("\r", "\\r").replace("\n", "\\n")
    return f"""
        url=""
        while [ $# -gt 0 ]; do
          case "$1" in
            --url) url="$2"; shift ;;
          esac
          shift
        done
        printf '{escaped_head}'
        {body_printf}
        printf '\\n{FRAME_MARKER} size_header={size} code=200 redirects=0\\n' >&2
    """


@pytest.fixture
def provisioned_client(tmp_path, linux_chrome, archive_factory, fake_binary_bytes, transport_factory):
    def factory(script_body: str, **kwargs):
        archive = archive_factory(fake_binary_bytes(script_body))
        transport = transport_factory(archive)
        store = BinaryStore(tmp_path / "cache", transport=transport)
        client = ImpersonationClient(descriptor=linux_chrome, store=store, environ={}, **kwargs)
        return client, transport
    return factory


class TestRequestFlow:

    @pytest.mark.asyncio
    async def test_json_response(self, provisioned_client):
        client, transport = provisioned_client(responder('printf \'{"url": "%s"}\' "$url"'))

        response = await client.get("https://example.com/data", params={"id": "7"})

        assert response.status == 200
        assert response.headers["X-Echo"] == "yes"
        assert response.data == {"url": "https://example.com/data?id=7"}
        assert response.request.argv[0].endswith("curl-impersonate")
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_binary_is_provisioned_once(self, provisioned_client):
        client, transport = provisioned_client(responder("printf '{}'"))

        for _ in range(3):
            await client.get("https://example.com")

        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_separator_in_body_survives(self, provisioned_client):
        body = "a\\r\\n\\r\\nHTTP/1.1 500 Nope\\r\\n\\r\\nb"
        client, _ = provisioned_client(responder(f"printf '{body}'"))

        response = await client.get("https://example.com")

        assert response.raw_body == b"a\r\n\r\nHTTP/1.1 500 Nope\r\n\r\nb"
        assert response.status == 200
        assert response.decode_failed

    @pytest.mark.asyncio
    async def test_timeout_terminates_process(self, provisioned_client):
        client, _ = provisioned_client("exec sleep 30")

        with pytest.raises(RequestTimeout) as exc:
            await client.get("https://example.com", timeout=0.2)

        with pytest.raises(ProcessLookupError):
            os.kill(exc.value.pid, 0)

    @pytest.mark.asyncio
    async def test_caller_max_time_outlives_computed_timeout(self, provisioned_client):
        client, _ = provisioned_client("sleep 1.5\n" + responder("printf 'ok'"))

        response = await client.get("https://example.com", timeout=0.3, extra_curl_args=["--max-time", "10"])

        assert response.status == 200
        assert response.raw_body == b"ok"

    @pytest.mark.asyncio
    async def test_connection_failure(self, provisioned_client):
        client, _ = provisioned_client("echo 'curl: (6) Could not resolve host: nowhere' >&2\nexit 6")

        with pytest.raises(ProcessFailed) as exc:
            await client.get("https://nowhere.invalid")

        assert exc.value.exit_code == 6
        assert "Could not resolve host" in str(exc.value)

    @pytest.mark.asyncio
    async def test_large_body_temp_file_is_removed(self, provisioned_client):
        script = responder('printf \'{"size": %s}\' "$(wc -c < "${body#@}")"')
        script = script.replace('--url) url="$2"; shift ;;',
                                '--url) url="$2"; shift ;;\n            --data-binary) body="$2"; shift ;;')
        client, _ = provisioned_client(script)

        response = await client.post("https://example.com/upload", data=b"z" * 40000)

        assert response.data == {"size": 40000}
        argv = list(response.request.argv)
        body_file = argv[argv.index("--data-binary") + 1][1:]
        assert not os.path.exists(body_file)


@pytest.mark.asyncio
async def test_download_binary(tmp_path, linux_chrome, archive_factory, fake_binary_bytes, transport_factory):
    transport = transport_factory(archive_factory(fake_binary_bytes("exit 0")))
    store = BinaryStore(tmp_path / "cache", transport=transport)

    record = await download_binary(linux_chrome, store=store)

    assert record.is_ready
    assert record.key.value == "v1.0.0-linux-x64"
    assert len(transport.calls) == 1
