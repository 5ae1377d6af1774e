"""
fluid-diagnose-bundler — produced-bundle verification

File: src/fluid_diagnose_bundler/bundler/verify.py

Purpose
- Read a bundle archive back and check it against its own manifest.

Functional requirements
- Members are returned relative to the single archive root directory.
- Verification reports every problem found instead of stopping at the first one.
"""

from __future__ import annotations

import json
import tarfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from fluid_diagnose_bundler.bundler.errors import BundleError
from fluid_diagnose_bundler.bundler.layout import MANIFEST_FILE
from fluid_diagnose_bundler.bundler.manifest import aggregate_digest
from fluid_diagnose_bundler.domain.models import BundleManifest
from fluid_diagnose_bundler.utils.hashing import sha256_bytes, sha256_file


@dataclass(frozen=True, slots=True)
class BundleVerification:
    """Outcome of checking one archive against its manifest."""

    archive_path: Path
    root_dir: str
    archive_sha256: str
    manifest: BundleManifest | None
    problems: tuple[str, ...]

    @property
    def is_valid(self) -> bool:
        return self.manifest is not None and not self.problems

    def to_dict(self) -> dict[str, object]:
        return {
            "archive_path": str(self.archive_path),
            "root_dir": self.root_dir,
            "archive_sha256": self.archive_sha256,
            "is_valid": self.is_valid,
            "problems": list(self.problems),
        }


def read_bundle(path: str | Path) -> dict[str, bytes]:
    """Return archive members keyed by their path below the root directory, in archive order."""

    _root, members = _read_members(Path(path))
    return members


def verify_bundle(path: str | Path) -> BundleVerification:
    archive_path = Path(path)
    root_dir, members = _read_members(archive_path)
    archive_sha256 = sha256_file(archive_path)
    problems: list[str] = []

    names = list(members)
    encoded = [name.encode("utf-8") for name in names]
    if encoded != sorted(encoded):
        problems.append("archive entries are not in sorted order")

    raw_manifest = members.get(MANIFEST_FILE)
    if raw_manifest is None:
        problems.append(f"{MANIFEST_FILE} is missing")
        return BundleVerification(archive_path, root_dir, archive_sha256, None, tuple(problems))

    try:
        manifest = BundleManifest.from_dict(json.loads(raw_manifest.decode("utf-8")))
    except (UnicodeDecodeError, ValueError) as exc:
        problems.append(f"{MANIFEST_FILE} cannot be parsed: {exc}")
        return BundleVerification(archive_path, root_dir, archive_sha256, None, tuple(problems))

    listed: set[str] = set()
    for entry in manifest.files:
        if entry.path in listed:
            problems.append(f"{entry.path}: listed more than once")
            continue
        listed.add(entry.path)
        content = members.get(entry.path)
        if content is None:
            problems.append(f"{entry.path}: listed in manifest but missing from archive")
            continue
        if len(content) != entry.size:
            problems.append(f"{entry.path}: size {len(content)} != manifest size {entry.size}")
        if sha256_bytes(content) != entry.sha256:
            problems.append(f"{entry.path}: sha256 mismatch")

    for name in names:
        if name != MANIFEST_FILE and name not in listed:
            problems.append(f"{name}: present in archive but not listed in manifest")

    if manifest.total_files != len(manifest.files):
        problems.append(
            f"totalFiles {manifest.total_files} != number of listed files {len(manifest.files)}"
        )
    if aggregate_digest(entry.sha256 for entry in manifest.files) != manifest.content_hash:
        problems.append("contentHash does not match the listed file digests")

    return BundleVerification(archive_path, root_dir, archive_sha256, manifest, tuple(problems))


def _read_members(archive_path: Path) -> tuple[str, dict[str, bytes]]:
    root_dir: str | None = None
    members: dict[str, bytes] = {}
    try:
        with tarfile.open(archive_path, mode="r:gz") as tar:
            for member in tar.getmembers():
                parts = PurePosixPath(member.name).parts
                if not member.isfile() or len(parts) < 2 or member.name.startswith("/") or ".." in parts:
                    raise BundleError(f"unexpected archive member {member.name!r}")
                if root_dir is None:
                    root_dir = parts[0]
                elif parts[0] != root_dir:
                    raise BundleError(f"archive member {member.name!r} is outside root {root_dir!r}")
                handle = tar.extractfile(member)
                if handle is None:
                    raise BundleError(f"archive member {member.name!r} cannot be read")
                members["/".join(parts[1:])] = handle.read()
    except (EOFError, OSError, tarfile.TarError) as exc:
        raise BundleError(f"cannot read archive: {exc}", logical_path=archive_path.name) from exc
    if root_dir is None:
        raise BundleError("archive is empty", logical_path=archive_path.name)
    return root_dir, members


__all__ = ["BundleVerification", "read_bundle", "verify_bundle"]
