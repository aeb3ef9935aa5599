"""Tests for tools/http.py."""

from __future__ import annotations

import urllib.error
from pathlib import Path

from rearm_ci.core.result import Err, Ok
from rearm_ci.tools.http import HttpClient, HttpError, MockHttpClient, RealHttpClient


class TestHttpError:
    def test_str_with_status(self) -> None:
        error = HttpError(url="https://x/y", status=404, message="Not Found")
        assert str(error) == "HTTP 404: Not Found (https://x/y)"

    def test_str_network(self) -> None:
        error = HttpError(url="https://x/y", status=0, message="Connection refused")
        assert str(error) == "Connection refused (https://x/y)"


class TestRealHttpClient:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(RealHttpClient(), HttpClient)

    def test_error_mapping(self) -> None:
        timeout = RealHttpClient._error("u", TimeoutError())
        assert timeout.message == "Request timed out"
        url_error = RealHttpClient._error("u", urllib.error.URLError("no route"))
        assert url_error.status == 0
        assert url_error.message == "no route"

    def test_invalid_url(self) -> None:
        result = RealHttpClient(timeout=1.0).get_text("not a url")
        assert isinstance(result, Err)
        assert result.error.status == 0


class TestMockHttpClient:
    def test_text(self) -> None:
        http = MockHttpClient()
        http.set_text("https://x/sums", "abc  rearm.zip\n")
        assert http.get_text("https://x/sums") == Ok("abc  rearm.zip\n")
        assert http.calls == [("get_text", "https://x/sums")]

    def test_unknown_url_is_404(self, tmp_path: Path) -> None:
        http = MockHttpClient()
        text = http.get_text("https://x/missing")
        download = http.download("https://x/missing", tmp_path / "f")
        assert isinstance(text, Err) and text.error.status == 404
        assert isinstance(download, Err) and download.error.status == 404

    def test_download_writes_file(self, tmp_path: Path) -> None:
        http = MockHttpClient()
        http.set_download("https://x/f.zip", b"data")
        result = http.download("https://x/f.zip", tmp_path / "sub" / "f.zip")
        assert result == Ok(tmp_path / "sub" / "f.zip")
        assert (tmp_path / "sub" / "f.zip").read_bytes() == b"data"
