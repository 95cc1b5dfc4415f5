"""
Unit tests for domain entities and errors
"""

from datetime import datetime, timezone

import pytest

from mimicurl.domain.entities.descriptor import (
    Architecture,
    BinaryKey,
    BinaryRecord,
    BinaryState,
    Browser,
    BrowserDescriptor,
    Platform,
)
from mimicurl.domain.entities.request import Method, RequestSpec, merge_headers, normalize_headers
from mimicurl.domain.errors import (
    DownloadFailed,
    ImpersonationError,
    InvalidProxyUrl,
    InvalidRequest,
    ProcessFailed,
    RequestTimeout,
    UnsupportedDescriptor,
    VerificationFailed,
    excerpt,
)


class TestBrowserDescriptor:

    def test_strings_become_enums(self):
        descriptor = BrowserDescriptor(browser="Firefox", platform="LINUX", architecture="arm64")

        assert descriptor.browser == Browser.FIREFOX
        assert descriptor.platform == Platform.LINUX
        assert descriptor.architecture == Architecture.ARM64

    def test_unknown_strings_are_kept(self):
        descriptor = BrowserDescriptor(browser="opera")
        assert descriptor.browser == "opera"

    def test_empty_descriptor(self):
        assert BrowserDescriptor().is_empty
        assert not BrowserDescriptor(version="120").is_empty

    def test_is_hashable(self):
        assert len({BrowserDescriptor(), BrowserDescriptor(browser="chrome")}) == 1


class TestBinaryKey:

    @pytest.mark.parametrize("value", ["", "  ", "a/b", "..", ".hidden", "a\\b"])
    def test_rejects_unsafe_names(self, value):
        with pytest.raises(ValueError):
            BinaryKey(value)

    def test_str(self):
        assert str(BinaryKey("v1.0.0-linux-x64")) == "v1.0.0-linux-x64"


class TestBinaryRecord:

    def test_metadata_round_trip(self):
        record = BinaryRecord(
            key=BinaryKey("v1.0.0-linux-x64"),
            path="/cache/v1.0.0-linux-x64/curl-impersonate",
            executable=True,
            archive_sha256="a" * 64,
            binary_sha256="b" * 64,
            binary_size=4096,
            acquired_at=datetime(2026, 1, 2, tzinfo=timezone.utc),
            release="v1.0.0",
        )

        restored = BinaryRecord.from_dict(record.to_dict())

        assert restored == record
        assert restored.is_ready
        assert restored.state == BinaryState.READY

    def test_requires_path(self):
        with pytest.raises(ValueError):
            BinaryRecord(key=BinaryKey("k"), path="", executable=True, archive_sha256="",
                         binary_sha256="", binary_size=0, acquired_at=datetime.now(timezone.utc))


class TestRequestSpec:

    def test_normalizes_inputs(self):
        spec = RequestSpec(url=" https://h/ ", method="post", headers={"A": 1}, params={"p": None})

        assert spec.url == "https://h/"
        assert spec.method == Method.POST
        assert spec.headers == (("A", "1"),)
        assert spec.params == (("p", ""),)
        assert spec.scheme == "https"

    def test_is_immutable(self):
        spec = RequestSpec(url="https://h/")
        with pytest.raises(AttributeError):
            spec.url = "https://other/"

    @pytest.mark.parametrize("kwargs", [
        {"url": ""},
        {"url": "https://h/", "method": "BREW"},
        {"url": "https://h/", "timeout": 0},
        {"url": "https://h/", "max_redirects": -1},
        {"url": "https://h/", "headers": {"X-Bad": "a\r\nInjected: 1"}},
        {"url": "https://h/", "headers": {"Bad:Name": "v"}},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(InvalidRequest):
            RequestSpec(**kwargs)

    def test_invalid_request_is_value_error(self):
        with pytest.raises(ValueError):
            RequestSpec(url="")

    def test_header_lookup_is_case_insensitive(self):
        spec = RequestSpec(url="https://h/", headers=[("Accept", "a"), ("accept", "b")])
        assert spec.header("ACCEPT") == "b"


class TestHeaders:

    def test_merge_overrides_in_place(self):
        merged = merge_headers([("A", "1"), ("B", "2")], {"b": "3", "C": "4"})
        assert merged == (("A", "1"), ("b", "3"), ("C", "4"))

    def test_normalize_keeps_order_and_case(self):
        assert normalize_headers([("X-B", "1"), ("x-a", "2")]) == (("X-B", "1"), ("x-a", "2"))


class TestErrors:

    def test_hierarchy(self):
        for error in (
            UnsupportedDescriptor("browser", "x"),
            DownloadFailed("u", "boom"),
            VerificationFailed("k", "bad"),
            InvalidProxyUrl("p", "bad"),
            ProcessFailed(1),
            RequestTimeout(1.0),
        ):
            assert isinstance(error, ImpersonationError)

    def test_retryable_kinds(self):
        assert RequestTimeout(1.0).retryable
        assert DownloadFailed("u", "boom").retryable
        assert ProcessFailed(7).retryable
        assert not ProcessFailed(3).retryable
        assert not UnsupportedDescriptor("browser", "x").retryable
        assert not VerificationFailed("k", "bad").retryable

    def test_process_failed_message_includes_stderr(self):
        error = ProcessFailed(6, "Could not resolve host")

        assert error.exit_code == 6
        assert "Could not resolve host" in str(error)

    def test_excerpt_is_bounded(self):
        text = excerpt(b"x" * 2000, limit=100)
        assert len(text) <= 110
