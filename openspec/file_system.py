"""Filesystem helpers used by ``init`` and ``update``."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import List, Optional, Union

from .errors import OpenSpecError

logger = logging.getLogger("openspec.configurators")

PathLike = Union[str, Path]

_WINDOWS_ROOT = re.compile(r"^[A-Za-z]:[\\/]|^\\\\")


def directory_exists(path: PathLike) -> bool:
    return Path(path).is_dir()


def file_exists(path: PathLike) -> bool:
    return Path(path).exists()


def create_directory(path: PathLike) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def read_file(path: PathLike) -> str:
    return Path(path).read_text(encoding="utf-8")


def write_file(path: PathLike, content: str) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _nearest_existing(path: Path) -> Optional[Path]:
    for candidate in [path, *path.parents]:
        if candidate.exists():
            return candidate
    return None


def can_write_file(path: PathLike) -> bool:
    """Whether ``path`` can be written, creating missing parents if needed."""
    path = Path(path)
    if path.exists():
        return path.is_file() and os.access(path, os.W_OK)
    existing = _nearest_existing(path.parent)
    return existing is not None and existing.is_dir() and os.access(existing, os.W_OK)


def ensure_write_permissions(path: PathLike) -> bool:
    existing = _nearest_existing(Path(path))
    return existing is not None and os.access(existing, os.W_OK)


def join_path(base: str, relative: str) -> str:
    """Join a forward-slash relative path onto ``base`` in the base's own style."""
    if _WINDOWS_ROOT.match(base):
        return str(PureWindowsPath(base, *relative.split("/")))
    return str(PurePosixPath(base, *relative.split("/")))


def _marker_line_index(lines: List[str], marker: str, start: int = 0) -> int:
    for index in range(start, len(lines)):
        if lines[index].strip() == marker:
            return index
    return -1


def update_file_with_markers(path: PathLike, content: str, start_marker: str, end_marker: str) -> None:
    """Write ``content`` between the marker lines of ``path``.

    A missing file is created with just the managed block. A file without
    markers gets the block prepended. Markers only count when they sit on
    their own line, so prose that mentions them is left alone.
    """
    path = Path(path)
    block = f"{start_marker}\n{content}\n{end_marker}"

    if not path.exists():
        write_file(path, block)
        return

    existing = read_file(path)
    lines = existing.splitlines(keepends=True)
    start = _marker_line_index(lines, start_marker)
    end = _marker_line_index(lines, end_marker, start + 1 if start != -1 else 0)

    if start == -1 and end == -1:
        write_file(path, f"{block}\n\n{existing}")
        return
    if start == -1 or end == -1:
        raise OpenSpecError(f"Invalid marker state in {path}. Found start: {start != -1}, Found end: {end != -1}")

    before = "".join(lines[:start])
    after = "".join(lines[end + 1:])
    if lines[end].endswith("\n"):
        after = "\n" + after
    write_file(path, f"{before}{block}{after}")
    logger.debug(f"Updated managed block in {path}")
