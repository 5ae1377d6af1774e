"""
fluid-diagnose-bundler — filesystem utilities

File: src/fluid_diagnose_bundler/utils/fs.py

Purpose
- Provide atomic output files: data lands at the destination in a single rename
  or not at all.

Functional requirements
- Temp files live in the destination directory and are removed on every failure path.

Non-functional requirements
- Standard library only and cross-platform behavior where feasible.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

if TYPE_CHECKING:
    from collections.abc import Iterator

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_output",
]


@contextmanager
def atomic_output(path: PathLike) -> Iterator[BinaryIO]:
    """
    Yield a binary handle whose content replaces ``path`` when the block exits cleanly.

    The write strategy is:
    1. create temp file in the same directory,
    2. let the caller write, then flush + fsync file data,
    3. replace target via ``os.replace``.

    If the block raises, the temp file is deleted and ``path`` is left untouched.
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
        with os.fdopen(fd, "wb") as file_handle:
            yield file_handle
            file_handle.flush()
            os.fsync(file_handle.fileno())
        # mkstemp creates 0600 files; published archives are 0644.
        os.chmod(temp_path, 0o644)
        os.replace(temp_path, target)
        _fsync_directory(target_parent)
    except BaseException:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def _fsync_directory(path: Path) -> None:
    """
    Best-effort directory fsync for metadata durability after ``os.replace``.

    Some platforms/filesystems do not support fsync on directories.
    """

    if os.name == "nt":
        return

    flags = os.O_RDONLY
    if hasattr(os, "O_DIRECTORY"):
        flags |= os.O_DIRECTORY

    try:
        dir_fd = os.open(path, flags)
    except OSError:
        return

    try:
        os.fsync(dir_fd)
    except OSError:
        return
    finally:
        os.close(dir_fd)
