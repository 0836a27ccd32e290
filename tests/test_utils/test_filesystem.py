from __future__ import annotations

from pathlib import Path

import pytest

from depradar.exceptions import FileOperationError
from depradar.utils.filesystem import find_manifest_files, safe_read_file


@pytest.mark.unit
class TestSafeReadFile:
    """Tests for safe_read_file."""

    def test_reads_text(self, tmp_path: Path) -> None:
        manifest = tmp_path / "package.json"
        manifest.write_text('{"dependencies": {}}', encoding="utf-8")

        assert safe_read_file(manifest) == '{"dependencies": {}}'

    def test_strips_byte_order_mark(self, tmp_path: Path) -> None:
        """Visual Studio writes project files with a BOM."""
        project = tmp_path / "App.csproj"
        project.write_bytes(b"\xef\xbb\xbf<Project />")

        assert safe_read_file(project) == "<Project />"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileOperationError, match="File not found"):
            safe_read_file(tmp_path / "missing.txt")

    def test_directory_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(FileOperationError, match="Not a file"):
            safe_read_file(tmp_path)

    def test_size_limit(self, tmp_path: Path) -> None:
        big = tmp_path / "requirements.txt"
        big.write_text("x" * 100, encoding="utf-8")

        with pytest.raises(FileOperationError, match="too large") as exc_info:
            safe_read_file(big, max_size=10)

        assert exc_info.value.operation == "read"

    def test_size_limit_disabled(self, tmp_path: Path) -> None:
        big = tmp_path / "requirements.txt"
        big.write_text("x" * 100, encoding="utf-8")

        assert len(safe_read_file(big, max_size=None)) == 100

    def test_decode_error_wrapped(self, tmp_path: Path) -> None:
        bad = tmp_path / "go.mod"
        bad.write_bytes(b"\xff\xfe\xfa")

        with pytest.raises(FileOperationError, match="Failed to read"):
            safe_read_file(bad)


@pytest.mark.unit
class TestFindManifestFiles:
    """Tests for find_manifest_files."""

    def test_matches_patterns_sorted(self, tmp_path: Path) -> None:
        (tmp_path / "requirements.txt").write_text("", encoding="utf-8")
        (tmp_path / "requirements-dev.txt").write_text("", encoding="utf-8")
        (tmp_path / "package.json").write_text("{}", encoding="utf-8")
        (tmp_path / "README.md").write_text("", encoding="utf-8")

        found = find_manifest_files(tmp_path, ["requirements*.txt", "package.json"])

        assert [p.name for p in found] == [
            "package.json",
            "requirements-dev.txt",
            "requirements.txt",
        ]

    def test_overlapping_patterns_deduplicated(self, tmp_path: Path) -> None:
        (tmp_path / "App.csproj").write_text("<Project />", encoding="utf-8")

        found = find_manifest_files(tmp_path, ["*.csproj", "App.csproj"])

        assert len(found) == 1

    def test_not_recursive(self, tmp_path: Path) -> None:
        nested = tmp_path / "sub"
        nested.mkdir()
        (nested / "Cargo.toml").write_text("", encoding="utf-8")

        assert find_manifest_files(tmp_path, ["Cargo.toml"]) == []

    def test_not_a_directory(self, tmp_path: Path) -> None:
        file_path = tmp_path / "go.mod"
        file_path.write_text("module x", encoding="utf-8")

        with pytest.raises(FileOperationError, match="Not a directory"):
            find_manifest_files(file_path, ["*"])
