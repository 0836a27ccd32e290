"""
Filesystem utilities for depradar.

Safe helpers for reading manifests and discovering them in a project
directory. All filesystem errors are normalized to ``FileOperationError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Union

from depradar.utils.logger import get_logger
from depradar.exceptions import FileOperationError
from depradar.constants import MAX_FILE_SIZE

logger = get_logger("filesystem")

PathLike = Union[str, Path]


def _validated_file(path: Path) -> Path:
    """Ensure ``path`` exists and is a regular file, then resolve it."""
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


def safe_read_file(
    file_path: PathLike,
    *,
    max_size: Optional[int] = MAX_FILE_SIZE,
    encoding: str = "utf-8",
) -> str:
    """Read a text file, refusing anything larger than ``max_size`` bytes.

    A UTF-8 byte order mark (common in ``.csproj`` files written by Visual
    Studio) is stripped.

    Args:
        file_path: Path to the file.
        max_size: Maximum allowed file size in bytes (``None`` disables
            the limit).
        encoding: Text encoding.

    Returns:
        File contents as a string.

    Raises:
        FileOperationError: Missing file, directory, oversized file, or
            read/decode failure.
    """
    path = _validated_file(Path(file_path))
    size = path.stat().st_size

    if max_size is not None and size > max_size:
        raise FileOperationError(
            f"File too large: {size} bytes (max {max_size})",
            file_path=str(path),
            operation="read",
        )

    try:
        text = path.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError) as exc:
        raise FileOperationError(
            f"Failed to read file: {exc}",
            file_path=str(path),
            operation="read",
            original_error=exc,
        ) from exc

    return text.lstrip("\ufeff")


def find_manifest_files(
    directory: PathLike,
    patterns: Iterable[str],
) -> List[Path]:
    """List files in ``directory`` (non-recursive) matching any glob pattern.

    Args:
        directory: Directory to scan.
        patterns: Glob patterns such as ``"package.json"`` or ``"*.csproj"``.

    Returns:
        Sorted, de-duplicated list of matching files.

    Raises:
        FileOperationError: ``directory`` is not a directory.
    """
    root = Path(directory)
    if not root.is_dir():
        raise FileOperationError(
            f"Not a directory: {root}",
            file_path=str(root),
            operation="scan",
        )

    found = set()
    for pattern in patterns:
        for candidate in root.glob(pattern):
            if candidate.is_file():
                found.add(candidate.resolve())

    logger.debug("Found %d manifest(s) in %s", len(found), root)
    return sorted(found)
