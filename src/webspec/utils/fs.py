"""
webspec — filesystem utilities

File: src/webspec/utils/fs.py

Purpose
- Atomic writes for compile outputs and workspace-contained path resolution for
  the plan executor.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- Resolution refuses relative paths that land outside the workspace root.

Non-functional requirements
- Standard library only and cross-platform behavior where feasible.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "is_within",
    "resolve_within",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        if isinstance(data, bytes):
            with os.fdopen(fd, "wb") as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())
        else:
            with os.fdopen(fd, "w", encoding=encoding, newline="") as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())

        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def is_within(child: PathLike, parent: PathLike) -> bool:
    """Return ``True`` if resolved ``child`` is within resolved ``parent``."""

    resolved_parent = Path(parent).resolve(strict=False)
    resolved_child = Path(child).resolve(strict=False)
    try:
        resolved_child.relative_to(resolved_parent)
    except ValueError:
        return False
    return True


def resolve_within(root: PathLike, relative: str) -> Path:
    """
    Resolve ``relative`` against ``root``.

    Raises ``ValueError`` for absolute paths and for paths (including symlinked ones)
    that resolve outside ``root``.
    """

    if Path(relative).is_absolute():
        raise ValueError(f"path must be relative to the workspace: {relative}")
    base = Path(root).resolve(strict=False)
    candidate = base / relative
    if not is_within(candidate, base):
        raise ValueError(f"path escapes the workspace: {relative}")
    return candidate
