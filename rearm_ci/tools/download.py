"""Cached file downloads.

Files land in ``<cache_dir>/<url-hash>_<filename>`` so a pipeline that
installs the same CLI version twice downloads it once.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from rearm_ci.core.result import Err, Ok, Result
from rearm_ci.tools.http import HttpClient, HttpError

__all__ = ["DownloadResult", "Downloader"]


@dataclass(frozen=True, slots=True)
class DownloadResult:
    path: Path
    from_cache: bool
    size: int


class Downloader:
    def __init__(self, http: HttpClient, cache_dir: Path) -> None:
        self._http = http
        self._cache_dir = cache_dir

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def cache_path(self, url: str) -> Path:
        """``a1b2c3d4_rearm-25.10.10-linux-amd64.zip`` for a given URL."""
        filename = Path(urlparse(url).path).name or "download"
        url_hash = hashlib.sha256(url.encode()).hexdigest()[:8]
        return self._cache_dir / f"{url_hash}_{filename}"

    def evict(self, url: str) -> None:
        self.cache_path(url).unlink(missing_ok=True)

    def download(
        self,
        url: str,
        *,
        force: bool = False,
        progress: Callable[[int, int], None] | None = None,
    ) -> Result[DownloadResult, HttpError]:
        path = self.cache_path(url)
        if not force and path.exists():
            return Ok(DownloadResult(path=path, from_cache=True, size=path.stat().st_size))

        self._cache_dir.mkdir(parents=True, exist_ok=True)
        result = self._http.download(url, path, progress=progress)
        if isinstance(result, Err):
            # Drop the partial file.
            path.unlink(missing_ok=True)
            return result

        return Ok(DownloadResult(path=path, from_cache=False, size=path.stat().st_size))
