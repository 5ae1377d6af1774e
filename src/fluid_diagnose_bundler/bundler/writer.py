"""
fluid-diagnose-bundler — deterministic archive writer

File: src/fluid_diagnose_bundler/bundler/writer.py

Purpose
- Buffer archive entries in memory and emit them as one reproducible ``.tar.gz``.

Functional requirements
- Entries are written in byte-wise sorted path order under a single root directory.
- Every entry is a regular file: mode 0644, uid/gid 0, empty owner names, and
  mtime/atime/ctime equal to the build timestamp.
- The gzip layer uses a fixed compression level, mtime 0 and no embedded file name.
- The archive appears at its final path in one rename or not at all.

Non-functional requirements
- Identical entries and timestamp produce byte-identical archives.
"""

from __future__ import annotations

import gzip
import io
import tarfile
from datetime import datetime
from pathlib import Path
from typing import BinaryIO

from fluid_diagnose_bundler.bundler.errors import ArchiveWriteError, BundlePathError
from fluid_diagnose_bundler.bundler.layout import archive_file_name, join_archive_path
from fluid_diagnose_bundler.constants import ARCHIVE_FILE_MODE, DEFAULT_COMPRESSION_LEVEL
from fluid_diagnose_bundler.domain.models import to_utc
from fluid_diagnose_bundler.utils.fs import atomic_output


class ArchiveWriter:
    """In-memory staging area for one bundle archive."""

    def __init__(
        self,
        base_dir: str,
        timestamp: datetime,
        *,
        compression_level: int = DEFAULT_COMPRESSION_LEVEL,
    ) -> None:
        if isinstance(compression_level, bool) or not isinstance(compression_level, int):
            raise TypeError("compression_level must be an integer")
        if not 0 <= compression_level <= 9:
            raise ValueError("compression_level must be between 0 and 9")
        normalized_base = join_archive_path(base_dir)
        if "/" in normalized_base:
            raise BundlePathError("base directory must be a single path segment", logical_path=base_dir)
        self._base_dir = normalized_base
        self._epoch = int(to_utc(timestamp).timestamp())
        self._compression_level = compression_level
        self._files: dict[str, bytes] = {}

    @property
    def base_dir(self) -> str:
        return self._base_dir

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def add_file(self, path: str, content: bytes) -> None:
        if path in self._files:
            raise BundlePathError("duplicate archive entry", logical_path=path)
        self._files[path] = bytes(content)

    def write_to_disk(self, output_dir: str | Path) -> tuple[Path, int]:
        """
        Write the archive into ``output_dir`` and return ``(archive_path, content_bytes)``.

        ``content_bytes`` is the sum of the uncompressed entry sizes. Raises
        ``ArchiveWriteError`` when the directory cannot be created or the file
        cannot be written.
        """

        try:
            directory = Path(output_dir)
            directory.mkdir(parents=True, exist_ok=True)
            archive_path = (directory / archive_file_name(self._base_dir)).resolve()
        except OSError as exc:
            raise ArchiveWriteError(
                f"cannot prepare output directory {str(output_dir)!r}: {exc}"
            ) from exc

        try:
            with atomic_output(archive_path) as raw_handle:
                self._write_stream(raw_handle)
        except (OSError, tarfile.TarError) as exc:
            raise ArchiveWriteError(
                f"cannot write archive: {exc}", logical_path=archive_path.name
            ) from exc

        return archive_path, sum(len(content) for content in self._files.values())

    def _write_stream(self, raw_handle: BinaryIO) -> None:
        with gzip.GzipFile(
            fileobj=raw_handle,
            mode="wb",
            mtime=0,
            filename="",
            compresslevel=self._compression_level,
        ) as gz_handle:
            with tarfile.open(fileobj=gz_handle, mode="w", format=tarfile.PAX_FORMAT) as tar:
                for path in sorted(self._files, key=lambda item: item.encode("utf-8")):
                    payload = self._files[path]
                    tar.addfile(self._member_info(path, len(payload)), io.BytesIO(payload))

    def _member_info(self, path: str, size: int) -> tarfile.TarInfo:
        info = tarfile.TarInfo(name=f"{self._base_dir}/{path}")
        info.type = tarfile.REGTYPE
        info.size = size
        info.mode = ARCHIVE_FILE_MODE
        info.uid = 0
        info.gid = 0
        info.uname = ""
        info.gname = ""
        info.mtime = self._epoch
        info.pax_headers = {"atime": str(self._epoch), "ctime": str(self._epoch)}
        return info


__all__ = ["ArchiveWriter"]
