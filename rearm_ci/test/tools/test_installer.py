"""Tests for tools/installer.py - Archive extraction."""

import stat
import sys
import zipfile
from pathlib import Path

import pytest

from rearm_ci.core.result import Err, Ok
from rearm_ci.tools.installer import Installer, InstallError, safe_relative_path


def create_zip(path: Path, files: dict[str, bytes], *, prefix: str = "") -> None:
    """Create a .zip archive with the given files."""
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in files.items():
            full_name = f"{prefix}/{name}" if prefix else name
            zf.writestr(full_name, content)


class TestSafeRelativePath:
    @pytest.mark.parametrize(
        "name",
        ["/etc/passwd", "../evil", "bin/../../evil", "C:/evil.exe", "", "..\\evil"],
    )
    def test_unsafe(self, name: str) -> None:
        assert safe_relative_path(name) is None

    def test_backslashes_normalized(self) -> None:
        assert safe_relative_path("bin\\rearm.exe") == Path("bin") / "rearm.exe"

    def test_plain(self) -> None:
        assert safe_relative_path("rearm") == Path("rearm")


class TestInstaller:
    def test_extracts_files(self, tmp_path: Path) -> None:
        archive = tmp_path / "rearm.zip"
        create_zip(archive, {"rearm": b"#!/bin/sh\n", "LICENSE": b"text"}, prefix="bin")

        result = Installer().install(archive, tmp_path / "out")

        assert isinstance(result, Ok)
        assert result.value.files_count == 2
        assert (tmp_path / "out" / "bin" / "rearm").read_bytes() == b"#!/bin/sh\n"

    def test_replaces_existing_install(self, tmp_path: Path) -> None:
        archive = tmp_path / "rearm.zip"
        create_zip(archive, {"rearm": b"new"})
        out = tmp_path / "out"
        out.mkdir()
        (out / "stale").write_text("old")

        Installer().install(archive, out)

        assert not (out / "stale").exists()
        assert (out / "rearm").read_bytes() == b"new"

    def test_zip_slip_entries_skipped(self, tmp_path: Path) -> None:
        archive = tmp_path / "evil.zip"
        create_zip(archive, {"../escape.txt": b"x", "/abs.txt": b"x", "ok.txt": b"fine"})
        out = tmp_path / "nested" / "out"

        result = Installer().install(archive, out)

        assert isinstance(result, Ok)
        assert [f.name for f in result.value.files] == ["ok.txt"]
        assert not (tmp_path / "nested" / "escape.txt").exists()

    def test_symlink_entries_skipped(self, tmp_path: Path) -> None:
        archive = tmp_path / "link.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            info = zipfile.ZipInfo("link")
            info.external_attr = (stat.S_IFLNK | 0o777) << 16
            zf.writestr(info, "/etc/passwd")
            zf.writestr("rearm", b"bin")

        result = Installer().install(archive, tmp_path / "out")

        assert isinstance(result, Ok)
        assert [f.name for f in result.value.files] == ["rearm"]

    @pytest.mark.skipif(sys.platform == "win32", reason="unix modes")
    def test_unix_mode_applied(self, tmp_path: Path) -> None:
        archive = tmp_path / "rearm.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            info = zipfile.ZipInfo("rearm")
            info.external_attr = (stat.S_IFREG | 0o755) << 16
            zf.writestr(info, b"bin")

        Installer().install(archive, tmp_path / "out")

        assert (tmp_path / "out" / "rearm").stat().st_mode & 0o777 == 0o755

    def test_missing_archive(self, tmp_path: Path) -> None:
        result = Installer().install(tmp_path / "missing.zip", tmp_path / "out")
        assert isinstance(result, Err)
        assert result.error.message == "Archive not found"

    def test_unsupported_format(self, tmp_path: Path) -> None:
        archive = tmp_path / "rearm.tar.gz"
        archive.write_bytes(b"x")
        result = Installer().install(archive, tmp_path / "out")
        assert isinstance(result, Err)
        assert result.error.message.startswith("Unsupported archive format")

    def test_corrupt_zip(self, tmp_path: Path) -> None:
        archive = tmp_path / "rearm.zip"
        archive.write_bytes(b"not a zip")
        result = Installer().install(archive, tmp_path / "out")
        assert isinstance(result, Err)
        assert result.error.message.startswith("Invalid zip file")

    def test_error_str(self) -> None:
        error = InstallError(archive=Path("a.zip"), message="Bad archive")
        assert str(error) == "Bad archive: a.zip"
