"""
tests/test_files.py
-------------------
Unit tests for pipeline/files.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

from pathlib import Path

import pytest

from pipeline.files import FileRelocationError, FileRelocator, is_url


@pytest.fixture
def relocator(tmp_path: Path) -> FileRelocator:
    return FileRelocator(tmp_path / "target", source_root=tmp_path / "source")


class TestFileRelocator:
    def test_relative_location_resolved_against_source_root(self, relocator, tmp_path: Path) -> None:
        assert relocator.resolve("images/avatars/a.png") == tmp_path / "source" / "images/avatars/a.png"

    def test_absolute_location_kept(self, relocator, tmp_path: Path) -> None:
        absolute = tmp_path / "elsewhere" / "a.png"
        assert relocator.resolve(absolute) == absolute

    def test_copy(self, relocator, tmp_path: Path) -> None:
        source = tmp_path / "source" / "a.png"
        source.parent.mkdir(parents=True)
        source.write_bytes(b"avatar")

        target = relocator.relocate("user.avatar", 12, "a.png")

        assert target == tmp_path / "target" / "user.avatar" / "12-a.png"
        assert target.read_bytes() == b"avatar"
        assert source.exists()

    def test_missing_file(self, relocator) -> None:
        with pytest.raises(FileRelocationError, match="does not exist"):
            relocator.relocate("user.avatar", 1, "missing.png")

    def test_directory_is_not_a_file(self, relocator, tmp_path: Path) -> None:
        (tmp_path / "source" / "dir").mkdir(parents=True)
        with pytest.raises(FileRelocationError):
            relocator.relocate("user.avatar", 1, "dir")

    def test_url_not_copied(self, relocator) -> None:
        with pytest.raises(FileRelocationError, match="Remote"):
            relocator.relocate("user.avatar", 1, "https://example.org/a.png")


class TestIsUrl:
    @pytest.mark.parametrize("location", ["http://a/b", "https://a/b", "ftp://a/b"])
    def test_urls(self, location: str) -> None:
        assert is_url(location)

    @pytest.mark.parametrize("location", ["a/b.png", "/var/www/a.png", "C:/forum/a.png"])
    def test_paths(self, location: str) -> None:
        assert not is_url(location)
