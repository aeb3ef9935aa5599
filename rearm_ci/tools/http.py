"""HTTP access for the CLI installer.

- HttpClient: protocol the installer depends on
- RealHttpClient: urllib with the system certificate store
- MockHttpClient: canned responses for tests
"""

from __future__ import annotations

import ssl
import urllib.error
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from rearm_ci import __version__
from rearm_ci.core.result import Err, Ok, Result

__all__ = ["HttpClient", "HttpError", "MockHttpClient", "RealHttpClient"]

_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP failure.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
    """

    url: str
    status: int
    message: str

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


@runtime_checkable
class HttpClient(Protocol):
    def get_text(self, url: str) -> Result[str, HttpError]:
        """Fetch ``url`` and decode it as UTF-8."""
        ...

    def download(
        self,
        url: str,
        dest: Path,
        progress: Callable[[int, int], None] | None = None,
    ) -> Result[Path, HttpError]:
        """Stream ``url`` into ``dest``; ``progress(done, total)`` per chunk."""
        ...


class RealHttpClient:
    def __init__(self, timeout: float = 60.0, user_agent: str = f"rearm-ci/{__version__}") -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def _request(self, url: str) -> urllib.request.Request:
        return urllib.request.Request(url, headers={"User-Agent": self.user_agent})

    @staticmethod
    def _error(url: str, exc: Exception) -> HttpError:
        if isinstance(exc, urllib.error.HTTPError):
            return HttpError(url=url, status=exc.code, message=str(exc.reason))
        if isinstance(exc, urllib.error.URLError):
            return HttpError(url=url, status=0, message=str(exc.reason))
        if isinstance(exc, TimeoutError):
            return HttpError(url=url, status=0, message="Request timed out")
        return HttpError(url=url, status=0, message=str(exc))

    def get_text(self, url: str) -> Result[str, HttpError]:
        try:
            with urllib.request.urlopen(
                self._request(url), timeout=self.timeout, context=self._ssl_context
            ) as response:
                body: bytes = response.read()
        except (urllib.error.URLError, ValueError, OSError) as e:
            return Err(self._error(url, e))

        try:
            return Ok(body.decode("utf-8"))
        except UnicodeDecodeError as e:
            return Err(HttpError(url=url, status=0, message=f"Decode error: {e}"))

    def download(
        self,
        url: str,
        dest: Path,
        progress: Callable[[int, int], None] | None = None,
    ) -> Result[Path, HttpError]:
        try:
            with urllib.request.urlopen(
                self._request(url), timeout=self.timeout, context=self._ssl_context
            ) as response:
                total = int(response.headers.get("Content-Length", 0))
                done = 0
                dest.parent.mkdir(parents=True, exist_ok=True)
                with dest.open("wb") as f:
                    while chunk := response.read(_CHUNK_SIZE):
                        f.write(chunk)
                        done += len(chunk)
                        if progress:
                            progress(done, total)
        except (urllib.error.URLError, ValueError, OSError) as e:
            return Err(self._error(url, e))
        return Ok(dest)


class MockHttpClient:
    """Serves registered responses; unknown URLs answer 404.

    Usage:
        http = MockHttpClient()
        http.set_text("https://example.com/sha256sums.txt", "abc  rearm.zip\\n")
        http.set_download("https://example.com/rearm.zip", b"PK...")
    """

    def __init__(self) -> None:
        self._text: dict[str, str | HttpError] = {}
        self._downloads: dict[str, bytes | HttpError] = {}
        self.calls: list[tuple[str, str]] = []

    def set_text(self, url: str, response: str | HttpError) -> None:
        self._text[url] = response

    def set_download(self, url: str, response: bytes | HttpError) -> None:
        self._downloads[url] = response

    def get_text(self, url: str) -> Result[str, HttpError]:
        self.calls.append(("get_text", url))
        response = self._text.get(url)
        if response is None:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    def download(
        self,
        url: str,
        dest: Path,
        progress: Callable[[int, int], None] | None = None,
    ) -> Result[Path, HttpError]:
        self.calls.append(("download", url))
        response = self._downloads.get(url)
        if response is None:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))
        if isinstance(response, HttpError):
            return Err(response)

        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(response)
        if progress:
            progress(len(response), len(response))
        return Ok(dest)
