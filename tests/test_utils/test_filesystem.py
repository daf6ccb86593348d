from __future__ import annotations

import json
import pytest
from pathlib import Path
from unittest.mock import patch

from enginekeeper.exceptions import FileOperationError, ParseError
from enginekeeper.utils.filesystem import (
    create_backup,
    detect_indent,
    read_json_file,
    safe_read_file,
    safe_write_file,
    write_json_file,
)


@pytest.fixture
def manifest_file(tmp_path: Path) -> Path:
    """A small package.json with four-space indentation."""
    path = tmp_path / "package.json"
    path.write_text(
        json.dumps({"name": "app", "engines": {"node": ">= 14"}}, indent=4) + "\n",
        encoding="utf-8",
    )
    return path


@pytest.mark.unit
class TestSafeReadFile:
    """Tests for safe_read_file."""

    def test_reads_content(self, manifest_file: Path) -> None:
        """Test a regular file is returned as text."""
        assert '"name": "app"' in safe_read_file(manifest_file)

    def test_accepts_string_path(self, manifest_file: Path) -> None:
        """Test str paths work as well as Path objects."""
        assert safe_read_file(str(manifest_file)) == safe_read_file(manifest_file)

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a missing file raises FileOperationError."""
        with pytest.raises(FileOperationError) as exc_info:
            safe_read_file(tmp_path / "missing.json")

        assert exc_info.value.operation == "read"
        assert "File not found" in str(exc_info.value)

    def test_directory(self, tmp_path: Path) -> None:
        """Test a directory is rejected."""
        with pytest.raises(FileOperationError) as exc_info:
            safe_read_file(tmp_path)

        assert "Not a file" in str(exc_info.value)

    def test_size_limit(self, manifest_file: Path) -> None:
        """Test files above max_size are refused."""
        with pytest.raises(FileOperationError) as exc_info:
            safe_read_file(manifest_file, max_size=10)

        assert "too large" in str(exc_info.value)

    def test_no_size_limit(self, manifest_file: Path) -> None:
        """Test max_size=None disables the limit."""
        assert safe_read_file(manifest_file, max_size=None)

    def test_decode_error(self, tmp_path: Path) -> None:
        """Test undecodable bytes raise FileOperationError."""
        path = tmp_path / "binary.json"
        path.write_bytes(b"\xff\xfe\x00invalid")

        with pytest.raises(FileOperationError) as exc_info:
            safe_read_file(path)

        assert exc_info.value.original_error is not None


@pytest.mark.unit
class TestReadJsonFile:
    """Tests for read_json_file."""

    def test_decodes(self, manifest_file: Path) -> None:
        """Test JSON content is decoded with key order kept."""
        data = read_json_file(manifest_file)

        assert list(data) == ["name", "engines"]

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Test malformed JSON raises ParseError with a location."""
        path = tmp_path / "package-lock.json"
        path.write_text('{"lockfileVersion": 3,', encoding="utf-8")

        with pytest.raises(ParseError) as exc_info:
            read_json_file(path)

        assert "line 1" in str(exc_info.value)
        assert exc_info.value.file_path == str(path)


@pytest.mark.unit
class TestDetectIndent:
    """Tests for detect_indent."""

    @pytest.mark.parametrize(
        "indent, expected",
        [(2, 2), (4, 4), ("\t", "\t")],
    )
    def test_detects(self, indent, expected) -> None:
        """Test the first indented line decides the indentation."""
        content = json.dumps({"a": {"b": 1}}, indent=indent)

        assert detect_indent(content) == expected

    @pytest.mark.parametrize("content", ["{}", '{"a": 1}', ""])
    def test_default(self, content: str) -> None:
        """Test single-line documents fall back to two spaces."""
        assert detect_indent(content) == 2


@pytest.mark.unit
class TestBackupAndWrite:
    """Tests for create_backup, safe_write_file and write_json_file."""

    def test_create_backup(self, manifest_file: Path) -> None:
        """Test a timestamped copy is written next to the file."""
        backup = create_backup(manifest_file)

        assert backup.parent == manifest_file.resolve().parent
        assert backup.name.startswith("package.json.")
        assert backup.name.endswith(".backup")
        assert backup.read_text(encoding="utf-8") == manifest_file.read_text(encoding="utf-8")

    def test_create_backup_missing_file(self, tmp_path: Path) -> None:
        """Test backing up a missing file fails."""
        with pytest.raises(FileOperationError):
            create_backup(tmp_path / "missing.json")

    def test_create_backup_copy_failure(self, manifest_file: Path) -> None:
        """Test copy errors are wrapped."""
        with patch("shutil.copy2", side_effect=PermissionError("denied")):
            with pytest.raises(FileOperationError) as exc_info:
                create_backup(manifest_file)

        assert exc_info.value.operation == "backup"

    def test_safe_write_new_file(self, tmp_path: Path) -> None:
        """Test writing a new file creates no backup."""
        path = tmp_path / "new.json"

        backup = safe_write_file(path, "{}\n")

        assert backup is None
        assert path.read_text(encoding="utf-8") == "{}\n"

    def test_safe_write_keeps_backup(self, manifest_file: Path) -> None:
        """Test overwriting keeps the previous content in a backup."""
        original = manifest_file.read_text(encoding="utf-8")

        backup = safe_write_file(manifest_file, "{}\n")

        assert backup is not None
        assert backup.read_text(encoding="utf-8") == original
        assert manifest_file.read_text(encoding="utf-8") == "{}\n"

    def test_safe_write_without_backup(self, manifest_file: Path) -> None:
        """Test create_backup_file=False skips the backup."""
        assert safe_write_file(manifest_file, "{}\n", create_backup_file=False) is None
        assert not list(manifest_file.parent.glob("*.backup"))

    def test_safe_write_leaves_no_temp_files(self, manifest_file: Path) -> None:
        """Test the temporary file is renamed into place."""
        safe_write_file(manifest_file, "{}\n", create_backup_file=False)

        assert not list(manifest_file.parent.glob(".package.json.*.tmp"))

    def test_safe_write_failure_cleans_up(self, manifest_file: Path) -> None:
        """Test a failed replace removes the temporary file and raises."""
        with patch.object(Path, "replace", side_effect=OSError("disk full")):
            with pytest.raises(FileOperationError) as exc_info:
                safe_write_file(manifest_file, "{}\n", create_backup_file=False)

        assert "Atomic write failed" in str(exc_info.value)
        assert not list(manifest_file.parent.glob(".package.json.*.tmp"))

    def test_write_json_file(self, manifest_file: Path) -> None:
        """Test JSON is written with the given indent and a trailing newline."""
        data = read_json_file(manifest_file)
        data["engines"]["node"] = ">= 16"

        write_json_file(manifest_file, data, indent=detect_indent(manifest_file.read_text()))

        content = manifest_file.read_text(encoding="utf-8")
        assert content.endswith("}\n")
        assert '\n    "engines"' in content
        assert json.loads(content)["engines"] == {"node": ">= 16"}

    def test_write_json_file_keeps_unicode(self, tmp_path: Path) -> None:
        """Test non-ASCII text is written as-is."""
        path = tmp_path / "package.json"

        write_json_file(path, {"description": "café"}, trailing_newline=False)

        assert path.read_text(encoding="utf-8") == '{\n  "description": "café"\n}'
