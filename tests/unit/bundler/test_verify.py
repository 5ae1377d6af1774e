"""
fluid-diagnose-bundler — unit tests for produced-bundle verification

File: tests/unit/bundler/test_verify.py

Purpose
- Validate reading bundles back and checking them against their manifest.

What this test file should cover
- A freshly built bundle verifies cleanly.
- Tampered, unlisted, and missing files are reported.
- Unreadable archives raise ``BundleError``.
"""

from __future__ import annotations

import hashlib
import io
import tarfile
from datetime import UTC, datetime
from pathlib import Path

import pytest

from fluid_diagnose_bundler.bundler.errors import BundleError
from fluid_diagnose_bundler.bundler.manifest import ManifestBuilder, encode_manifest
from fluid_diagnose_bundler.bundler.pipeline import BuildOptions, build_bundle
from fluid_diagnose_bundler.bundler.verify import read_bundle, verify_bundle
from fluid_diagnose_bundler.bundler.writer import ArchiveWriter
from fluid_diagnose_bundler.domain.models import BundleInput, DiagnosticResult, Issue

_TS = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)
_ROOT = "fluid-diagnose-20240101-120000"


def _write_archive(
    tmp_path: Path,
    listed: dict[str, bytes],
    archived: dict[str, bytes],
    *,
    with_manifest: bool = True,
) -> Path:
    manifest_builder = ManifestBuilder(generated_at=_TS)
    for path, content in listed.items():
        manifest_builder.add_file(path, len(content), content)
    writer = ArchiveWriter(_ROOT, _TS)
    for path, content in archived.items():
        writer.add_file(path, content)
    if with_manifest:
        writer.add_file("manifest.json", encode_manifest(manifest_builder.build()))
    archive_path, _ = writer.write_to_disk(tmp_path)
    return archive_path


def test_built_bundle_verifies_cleanly(tmp_path: Path) -> None:
    result = build_bundle(
        BundleInput(
            graph={"kind": "Dataset"},
            diagnosis=DiagnosticResult(issues=(Issue("Warning", "slow"),), score=80),
            logs={"fuse.log": b"ok"},
        ),
        BuildOptions(timestamp=_TS, output_dir=tmp_path, redact=True),
    )

    verification = verify_bundle(result.archive_path)

    assert verification.is_valid
    assert verification.problems == ()
    assert verification.root_dir == _ROOT
    assert verification.archive_sha256 == hashlib.sha256(result.archive_path.read_bytes()).hexdigest()
    assert verification.manifest == result.manifest
    assert verification.to_dict()["is_valid"] is True


def test_tampered_content_is_reported(tmp_path: Path) -> None:
    archive_path = _write_archive(
        tmp_path,
        listed={"logs/fuse.log": b"original"},
        archived={"logs/fuse.log": b"tampered"},
    )

    verification = verify_bundle(archive_path)

    assert not verification.is_valid
    assert verification.problems == ("logs/fuse.log: sha256 mismatch",)


def test_size_mismatch_and_missing_files_are_reported(tmp_path: Path) -> None:
    archive_path = _write_archive(
        tmp_path,
        listed={"graph.json": b"{}\n", "summary.txt": b"x"},
        archived={"graph.json": b"{ }\n"},
    )

    problems = verify_bundle(archive_path).problems

    assert "graph.json: size 4 != manifest size 3" in problems
    assert "summary.txt: listed in manifest but missing from archive" in problems


def test_unlisted_file_is_reported(tmp_path: Path) -> None:
    archive_path = _write_archive(
        tmp_path,
        listed={"graph.json": b"{}\n"},
        archived={"graph.json": b"{}\n", "logs/extra.log": b"x"},
    )

    verification = verify_bundle(archive_path)

    assert verification.problems == ("logs/extra.log: present in archive but not listed in manifest",)


def test_missing_manifest_is_reported(tmp_path: Path) -> None:
    archive_path = _write_archive(
        tmp_path,
        listed={},
        archived={"graph.json": b"{}\n"},
        with_manifest=False,
    )

    verification = verify_bundle(archive_path)

    assert verification.manifest is None
    assert not verification.is_valid
    assert verification.problems == ("manifest.json is missing",)


def test_read_bundle_strips_root_directory(tmp_path: Path) -> None:
    archive_path = _write_archive(
        tmp_path,
        listed={"graph.json": b"{}\n"},
        archived={"graph.json": b"{}\n"},
    )

    members = read_bundle(archive_path)

    assert list(members) == ["graph.json", "manifest.json"]
    assert members["graph.json"] == b"{}\n"


def test_non_gzip_file_raises_bundle_error(tmp_path: Path) -> None:
    archive_path = tmp_path / "broken.tar.gz"
    archive_path.write_bytes(b"not an archive")

    with pytest.raises(BundleError) as excinfo:
        verify_bundle(archive_path)

    assert excinfo.value.logical_path == "broken.tar.gz"


def test_member_outside_single_root_raises_bundle_error(tmp_path: Path) -> None:
    archive_path = tmp_path / "mixed.tar.gz"
    with tarfile.open(archive_path, mode="w:gz") as tar:
        for name in ("one/graph.json", "two/graph.json"):
            info = tarfile.TarInfo(name)
            info.size = 2
            tar.addfile(info, io.BytesIO(b"{}"))

    with pytest.raises(BundleError, match="outside root"):
        read_bundle(archive_path)
