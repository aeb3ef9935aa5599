"""Zip extraction with path-traversal protection.

Entries that are absolute, contain ``..``, name a drive, are symlinks, or
would resolve outside the install directory are skipped.
"""

from __future__ import annotations

import shutil
import stat
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from rearm_ci.core.result import Err, Ok, Result

__all__ = ["InstallError", "InstallResult", "Installer"]


@dataclass(frozen=True, slots=True)
class InstallError:
    archive: Path
    message: str

    def __str__(self) -> str:
        return f"{self.message}: {self.archive}"


@dataclass(frozen=True, slots=True)
class InstallResult:
    install_dir: Path
    files: tuple[Path, ...]

    @property
    def files_count(self) -> int:
        return len(self.files)


def safe_relative_path(member_name: str) -> Path | None:
    """Sanitized relative path for an archive entry, or None if unsafe."""
    normalized = member_name.replace("\\", "/")
    if normalized.startswith("/"):
        return None
    parts = PurePosixPath(normalized).parts
    if not parts or any(part in {"", ".", ".."} for part in parts):
        return None
    if parts[0].endswith(":"):
        return None
    return Path(*parts)


def _is_within(root: Path, target: Path) -> bool:
    try:
        return target.resolve().is_relative_to(root.resolve())
    except OSError:
        return False


class Installer:
    """Unpacks a zip archive into a fresh directory.

    Usage:
        result = Installer().install(archive, tools_dir / "rearm-25.10.10")
    """

    def install(self, archive: Path, install_dir: Path) -> Result[InstallResult, InstallError]:
        if not archive.exists():
            return Err(InstallError(archive=archive, message="Archive not found"))
        if not archive.name.lower().endswith(".zip"):
            return Err(
                InstallError(archive=archive, message=f"Unsupported archive format: {archive.suffix}")
            )

        try:
            if install_dir.exists():
                shutil.rmtree(install_dir)
            install_dir.mkdir(parents=True, exist_ok=True)

            files: list[Path] = []
            with zipfile.ZipFile(archive, "r") as zf:
                for info in zf.infolist():
                    if info.is_dir():
                        continue
                    rel_path = safe_relative_path(info.filename)
                    if rel_path is None:
                        continue
                    unix_mode = info.external_attr >> 16
                    if stat.S_IFMT(unix_mode) == stat.S_IFLNK:
                        continue
                    target = install_dir / rel_path
                    if not _is_within(install_dir, target):
                        continue

                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(info) as src, target.open("wb") as dst:
                        shutil.copyfileobj(src, dst)
                    if unix_mode & 0o777:
                        target.chmod(unix_mode & 0o777)
                    files.append(target)
        except zipfile.BadZipFile as e:
            return Err(InstallError(archive=archive, message=f"Invalid zip file: {e}"))
        except OSError as e:
            return Err(InstallError(archive=archive, message=f"IO error: {e}"))

        return Ok(InstallResult(install_dir=install_dir, files=tuple(files)))
