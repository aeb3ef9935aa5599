"""Install the rearm CLI for later pipeline steps.

The archive ``rearm-<version>-<os>-amd64.zip`` and the digest list
``sha256sums.txt`` are published side by side under
``<download_base>/<version>/``. The archive is verified against the digest
list before it is unpacked.
"""

from __future__ import annotations

import hashlib
import tempfile
from dataclasses import dataclass
from pathlib import Path

from rearm_ci.core.result import Err, Ok, Result
from rearm_ci.output.console import ConsoleProtocol, Style
from rearm_ci.pipeline.host import HostProtocol
from rearm_ci.pipeline.state import PipelineState
from rearm_ci.platform.detection import Platform
from rearm_ci.services.release.errors import ReleaseError
from rearm_ci.tools.download import Downloader, DownloadResult
from rearm_ci.tools.http import HttpClient
from rearm_ci.tools.installer import Installer

__all__ = [
    "CliInstallOutcome",
    "DIGEST_LIST_NAME",
    "archive_name",
    "install_cli",
    "parse_sha256sums",
]

DIGEST_LIST_NAME = "sha256sums.txt"
CLI_NAME = "rearm"


@dataclass(frozen=True, slots=True)
class CliInstallOutcome:
    version: str
    executable: Path
    from_cache: bool = False


def archive_name(version: str, platform: Platform) -> str | None:
    suffix = platform.download_suffix
    if suffix is None:
        return None
    return f"{CLI_NAME}-{version}-{suffix}.zip"


def _is_sha256(value: str) -> bool:
    return len(value) == 64 and all(ch in "0123456789abcdef" for ch in value)


def parse_sha256sums(text: str) -> dict[str, str]:
    """Map file name to digest from ``<hex>  <name>`` lines.

    The binary-mode marker (``<hex> *<name>``) is accepted; malformed lines
    are ignored.
    """
    digests: dict[str, str] = {}
    for line in text.splitlines():
        parts = line.strip().split(maxsplit=1)
        if len(parts) != 2:
            continue
        digest, name = parts[0].lower(), parts[1].strip().lstrip("*")
        if _is_sha256(digest) and name:
            digests[name] = digest
    return digests


def _sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        while True:
            chunk = f.read(1024 * 1024)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def _download_verified(
    downloader: Downloader,
    url: str,
    expected: str,
) -> Result[DownloadResult, ReleaseError]:
    # A cached archive that no longer matches is fetched once more.
    for force in (False, True):
        downloaded = downloader.download(url, force=force)
        if isinstance(downloaded, Err):
            return Err(
                ReleaseError(
                    kind="download_failed",
                    message="failed to download the rearm CLI",
                    hint=str(downloaded.error),
                )
            )
        actual = _sha256_file(downloaded.value.path)
        if actual == expected:
            return downloaded
        downloader.evict(url)
        if not downloaded.value.from_cache:
            return Err(
                ReleaseError(
                    kind="checksum_mismatch",
                    message=f"checksum mismatch for {downloaded.value.path.name}",
                    hint=f"expected {expected}, got {actual}",
                )
            )
    return Err(ReleaseError(kind="checksum_mismatch", message=f"checksum mismatch for {url}"))


def _find_executable(files: tuple[Path, ...], install_dir: Path, name: str) -> Path | None:
    direct = install_dir / name
    if direct.is_file():
        return direct
    for f in files:
        if f.name == name:
            return f
    return None


def install_cli(
    *,
    version: str,
    download_base: str,
    platform: Platform,
    host: HostProtocol,
    http: HttpClient,
    console: ConsoleProtocol,
    tools_dir: Path | None = None,
) -> Result[CliInstallOutcome, ReleaseError]:
    name = archive_name(version, platform)
    if name is None:
        return Err(
            ReleaseError(
                kind="install_failed",
                message=f"no rearm CLI build for platform: {platform}",
                hint="published builds: linux-amd64, windows-amd64",
            )
        )

    state = PipelineState(host)
    root = tools_dir or state.tool_directory() or Path(tempfile.gettempdir())
    base = f"{download_base.rstrip('/')}/{version}"
    url = f"{base}/{name}"

    console.header(f"Installing rearm CLI {version}")
    console.print(f"Download URL: {url}", Style.DIM)

    sums = http.get_text(f"{base}/{DIGEST_LIST_NAME}")
    if isinstance(sums, Err):
        return Err(
            ReleaseError(
                kind="download_failed",
                message=f"failed to download {DIGEST_LIST_NAME}",
                hint=str(sums.error),
            )
        )
    expected = parse_sha256sums(sums.value).get(name)
    if expected is None:
        return Err(
            ReleaseError(
                kind="checksum_mismatch",
                message=f"no digest for {name} in {DIGEST_LIST_NAME}",
                hint=f"{base}/{DIGEST_LIST_NAME}",
            )
        )

    downloader = Downloader(http, root / "rearm-cli" / "cache")
    downloaded = _download_verified(downloader, url, expected)
    if isinstance(downloaded, Err):
        return downloaded
    if downloaded.value.from_cache:
        console.print(f"Using cached archive: {downloaded.value.path}", Style.DIM)

    install_dir = root / "rearm-cli" / version
    installed = Installer().install(downloaded.value.path, install_dir)
    if isinstance(installed, Err):
        return Err(
            ReleaseError(
                kind="install_failed",
                message="failed to extract the rearm CLI",
                hint=str(installed.error),
            )
        )

    exe = _find_executable(installed.value.files, install_dir, platform.exe_name(CLI_NAME))
    if exe is None:
        return Err(
            ReleaseError(
                kind="install_failed",
                message=f"{platform.exe_name(CLI_NAME)} not found in the archive",
                hint=str(install_dir),
            )
        )
    if not platform.is_windows:
        try:
            exe.chmod(0o755)
        except OSError as e:
            return Err(
                ReleaseError(kind="install_failed", message=f"chmod failed: {e}", hint=str(exe))
            )

    state.record_cli_path(exe)
    host.prepend_path(exe.parent)
    console.success(f"rearm CLI {version} installed: {exe}")
    return Ok(
        CliInstallOutcome(version=version, executable=exe, from_cache=downloaded.value.from_cache)
    )
