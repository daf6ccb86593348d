"""
Filesystem utilities for enginekeeper.

Safe helpers for reading manifests and lockfiles and for rewriting
``package.json``. Writes are atomic (temporary file + replace) and can keep
a timestamped backup. All filesystem errors are normalized to
``FileOperationError``; malformed JSON raises ``ParseError``.
"""

from __future__ import annotations

import os
import re
import json
import shutil
import tempfile
from pathlib import Path
from datetime import datetime
from typing import Any, Optional, Union

from enginekeeper.utils.logger import get_logger
from enginekeeper.constants import MAX_FILE_SIZE
from enginekeeper.exceptions import FileOperationError, ParseError

logger = get_logger("filesystem")

PathLike = Union[str, Path]

_LEADING_INDENT = re.compile(r"^[ \t]+", re.MULTILINE)


def _validated_file(path: Path) -> Path:
    if not path.exists():
        raise FileOperationError(
            f"File not found: {path}",
            file_path=str(path),
            operation="read",
        )
    if not path.is_file():
        raise FileOperationError(
            f"Not a file: {path}",
            file_path=str(path),
            operation="read",
        )
    return path.resolve()


def _atomic_write(target: Path, content: str) -> None:
    """Write ``content`` to a sibling temporary file, then replace ``target``."""
    temp_path: Optional[Path] = None

    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(target.parent),
            delete=False,
            prefix=f".{target.name}.",
            suffix=".tmp",
        ) as tmp:
            temp_path = Path(tmp.name)
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())

        temp_path.replace(target)

    except OSError as exc:
        if temp_path is not None and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError as cleanup_exc:
                logger.warning(
                    "Failed to clean up temporary file %s: %s",
                    temp_path,
                    cleanup_exc,
                )

        raise FileOperationError(
            f"Atomic write failed: {exc}",
            file_path=str(target),
            operation="write",
            original_error=exc,
        ) from exc


def create_backup(file_path: PathLike) -> Path:
    """Copy ``file_path`` to ``<name>.<timestamp>.backup`` next to it."""
    path = _validated_file(Path(file_path))
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    backup_path = path.with_name(f"{path.name}.{timestamp}.backup")

    try:
        shutil.copy2(path, backup_path)
    except OSError as exc:
        raise FileOperationError(
            f"Failed to create backup: {exc}",
            file_path=str(path),
            operation="backup",
            original_error=exc,
        ) from exc

    logger.debug("Created backup: %s", backup_path)
    return backup_path


def safe_read_file(
    file_path: PathLike,
    *,
    max_size: Optional[int] = MAX_FILE_SIZE,
    encoding: str = "utf-8",
) -> str:
    """Read a text file, refusing files larger than ``max_size`` bytes."""
    path = _validated_file(Path(file_path))
    size = path.stat().st_size

    if max_size is not None and size > max_size:
        raise FileOperationError(
            f"File too large: {size} bytes (max {max_size})",
            file_path=str(path),
            operation="read",
        )

    try:
        return path.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError) as exc:
        raise FileOperationError(
            f"Failed to read file: {exc}",
            file_path=str(path),
            operation="read",
            original_error=exc,
        ) from exc


def read_json_file(file_path: PathLike) -> Any:
    """Read and decode a JSON file.

    Raises:
        FileOperationError: The file is missing, too large or unreadable.
        ParseError: The content is not valid JSON.
    """
    content = safe_read_file(file_path)
    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        raise ParseError(
            f"Invalid JSON at line {exc.lineno}, column {exc.colno}: {exc.msg}",
            file_path=str(file_path),
        ) from exc


def detect_indent(content: str) -> Union[int, str]:
    """Return the indentation used by a JSON document (npm's default is 2).

    Tabs are returned as the string ``"\\t"``, spaces as their count.
    """
    match = _LEADING_INDENT.search(content)
    if match is None:
        return 2
    indent = match.group(0)
    return indent if "\t" in indent else len(indent)


def safe_write_file(
    file_path: PathLike,
    content: str,
    *,
    create_backup_file: bool = True,
) -> Optional[Path]:
    """Atomically write text to a file.

    Args:
        file_path: Destination path.
        content: Text content to write.
        create_backup_file: Keep a timestamped copy of the previous content.

    Returns:
        Path to the created backup, if any.
    """
    path = Path(file_path)
    backup: Optional[Path] = None

    if create_backup_file and path.is_file():
        backup = create_backup(path)

    _atomic_write(path, content)
    return backup


def write_json_file(
    file_path: PathLike,
    data: Any,
    *,
    indent: Union[int, str] = 2,
    trailing_newline: bool = True,
    create_backup_file: bool = False,
) -> Optional[Path]:
    """Serialize ``data`` as JSON and write it atomically.

    Key order is preserved so that a rewritten ``package.json`` differs from
    the original only in the changed values.
    """
    content = json.dumps(data, indent=indent, ensure_ascii=False)
    if trailing_newline:
        content += "\n"
    return safe_write_file(file_path, content, create_backup_file=create_backup_file)
