"""
Unit tests for filesystem utilities and archive extraction.
"""

import io
import os
import sys
import tarfile
import zipfile

import pytest

from buildcache_action.core.filesystem import (
    ArchiveExtractionError,
    InsecureArchiveError,
    UnsupportedArchiveFormat,
    ensure_directory,
    extract_archive,
    is_executable,
    validate_archive_path,
)
from tests.fixtures.archives import BINARY_MEMBER, make_tarball, make_zip


class TestEnsureDirectory:
    def test_creates_nested(self, tmp_path):
        target = tmp_path / "a" / "b"
        assert ensure_directory(target) == target.resolve()
        assert target.is_dir()

    def test_idempotent(self, tmp_path):
        ensure_directory(tmp_path / "a")
        ensure_directory(tmp_path / "a")
        assert (tmp_path / "a").is_dir()


class TestIsExecutable:
    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_mode_bits(self, tmp_path):
        script = tmp_path / "tool"
        script.write_text("#!/bin/sh\n")
        script.chmod(0o644)
        assert is_executable(script) is False

        script.chmod(0o755)
        assert is_executable(script) is True

    def test_directory_is_not_executable(self, tmp_path):
        assert is_executable(tmp_path) is False


class TestValidateArchivePath:
    def test_safe_path(self, tmp_path):
        validate_archive_path("buildcache/bin/buildcache", tmp_path)

    def test_traversal_rejected(self, tmp_path):
        with pytest.raises(InsecureArchiveError, match="directory traversal"):
            validate_archive_path("../../etc/passwd", tmp_path)


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
class TestExtractArchive:
    """Test extract_archive."""

    def test_tarball_keeps_exec_bit(self, release_tarball, tmp_path):
        dest = tmp_path / "out"

        result = extract_archive(release_tarball, dest)

        assert result == dest
        assert os.access(dest / BINARY_MEMBER, os.X_OK)

    def test_zip_restores_exec_bit(self, release_zip, tmp_path):
        dest = tmp_path / "out"

        extract_archive(release_zip, dest)

        assert os.access(dest / BINARY_MEMBER, os.X_OK)

    def test_zip_without_mode_bits(self, tmp_path):
        archive = tmp_path / "plain.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("readme.txt", "hello")

        extract_archive(archive, tmp_path / "out")

        assert (tmp_path / "out" / "readme.txt").read_text() == "hello"

    def test_unsupported_format(self, tmp_path):
        archive = tmp_path / "buildcache.rar"
        archive.write_bytes(b"x")

        with pytest.raises(UnsupportedArchiveFormat):
            extract_archive(archive, tmp_path / "out")

    def test_missing_archive(self, tmp_path):
        with pytest.raises(ArchiveExtractionError, match="Archive not found"):
            extract_archive(tmp_path / "missing.tar.gz", tmp_path / "out")

    def test_corrupt_archive(self, tmp_path):
        archive = tmp_path / "corrupt.tar.gz"
        archive.write_bytes(b"not a tarball")

        with pytest.raises(ArchiveExtractionError, match="Failed to extract"):
            extract_archive(archive, tmp_path / "out")

    def test_traversal_in_tarball(self, tmp_path):
        archive = make_tarball(
            tmp_path / "evil.tar.gz", {"../evil": (b"x", 0o644)}
        )

        with pytest.raises(InsecureArchiveError):
            extract_archive(archive, tmp_path / "out")
        assert not (tmp_path / "evil").exists()

    def test_traversal_in_zip(self, tmp_path):
        archive = make_zip(tmp_path / "evil.zip", {"../evil": (b"x", 0o644)})

        with pytest.raises(InsecureArchiveError):
            extract_archive(archive, tmp_path / "out")

    def test_tar_xz(self, tmp_path):
        archive = tmp_path / "tool.tar.xz"
        with tarfile.open(archive, "w:xz") as tar:
            info = tarfile.TarInfo("tool/file.txt")
            info.size = 2
            tar.addfile(info, io.BytesIO(b"ok"))

        extract_archive(archive, tmp_path / "out")

        assert (tmp_path / "out" / "tool" / "file.txt").read_bytes() == b"ok"
