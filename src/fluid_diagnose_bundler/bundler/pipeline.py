"""
fluid-diagnose-bundler — bundle build pipeline

File: src/fluid_diagnose_bundler/bundler/pipeline.py

Purpose
- Turn one ``BundleInput`` into one redacted, reproducible ``.tar.gz`` archive plus
  its manifest.

Functional requirements
- Per logical file: optional redaction, serialization, manifest registration and
  archive buffering, over the same bytes.
- Fixed add order: graph, diagnosis, environment metadata, summary, logs sorted by
  name, resources sorted by path, then the manifest (archive only).
- Any failure aborts the build before anything is written to the output directory.

Non-functional requirements
- Identical input and timestamp yield byte-identical archives.
- Emits ``structlog`` events for every added file and for the final write.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
import yaml

from fluid_diagnose_bundler.bundler.errors import (
    BundleError,
    BundlePathError,
    BundleRedactionError,
    BundleSerializationError,
)
from fluid_diagnose_bundler.bundler.layout import (
    DIAGNOSIS_FILE,
    ENVIRONMENT_FILE,
    GRAPH_FILE,
    MANIFEST_FILE,
    SUMMARY_FILE,
    dataset_name_from_graph,
    log_path,
    resource_path,
    root_dir_name,
)
from fluid_diagnose_bundler.bundler.manifest import ManifestBuilder, encode_manifest
from fluid_diagnose_bundler.bundler.writer import ArchiveWriter
from fluid_diagnose_bundler.constants import DEFAULT_COMPRESSION_LEVEL, MANIFEST_SCHEMA_VERSION
from fluid_diagnose_bundler.domain.models import (
    BundleInput,
    BundleResult,
    DiagnosticResult,
    JSONValue,
    format_timestamp,
    to_json_value,
    to_utc,
)
from fluid_diagnose_bundler.observability.logging import bundle_scope
from fluid_diagnose_bundler.security.redaction import RedactionError, Redactor
from fluid_diagnose_bundler.utils.hashing import sha256_file

SUMMARY_TITLE = "Fluid Diagnostic Bundle"


@dataclass(frozen=True, slots=True)
class BuildOptions:
    """
    Knobs for one build.

    ``timestamp=None`` means "now", which makes the archive non-reproducible.
    ``dataset_name`` is threaded into the root directory name; with
    ``infer_dataset_name`` set it is taken from a ``Dataset`` graph when absent.
    """

    redact: bool = False
    timestamp: datetime | None = None
    output_dir: str | Path = "."
    dataset_name: str | None = None
    infer_dataset_name: bool = False
    compression_level: int = DEFAULT_COMPRESSION_LEVEL

    def __post_init__(self) -> None:
        if isinstance(self.compression_level, bool) or not isinstance(self.compression_level, int):
            raise TypeError("compression_level must be an integer")
        if not 0 <= self.compression_level <= 9:
            raise ValueError("compression_level must be between 0 and 9")
        if self.timestamp is not None and not isinstance(self.timestamp, datetime):
            raise TypeError("timestamp must be a datetime or None")


class BundleBuilder:
    """Builds diagnostic bundles with one set of ``BuildOptions``."""

    def __init__(
        self,
        options: BuildOptions | None = None,
        *,
        redactor: Redactor | None = None,
        logger: Any | None = None,
    ) -> None:
        self._options = options if options is not None else BuildOptions()
        self._redactor = redactor if redactor is not None else Redactor()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def options(self) -> BuildOptions:
        return self._options

    def build(self, bundle_input: BundleInput) -> BundleResult:
        if not isinstance(bundle_input, BundleInput):
            raise TypeError(f"bundle_input must be BundleInput, got {type(bundle_input).__name__}")

        timestamp = self._resolve_timestamp()
        root_dir = root_dir_name(timestamp, self._resolve_dataset_name(bundle_input))

        with bundle_scope(bundle=root_dir):
            try:
                return self._build(bundle_input, timestamp, root_dir)
            except BundleError as exc:
                self._logger.error(
                    "bundle.failed",
                    bundle=root_dir,
                    logical_path=exc.logical_path,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise

    def _build(self, bundle_input: BundleInput, timestamp: datetime, root_dir: str) -> BundleResult:
        manifest_builder = ManifestBuilder(MANIFEST_SCHEMA_VERSION, generated_at=timestamp)
        writer = ArchiveWriter(
            root_dir,
            timestamp,
            compression_level=self._options.compression_level,
        )

        def add(path: str, content: bytes) -> None:
            entry = manifest_builder.add_file(path, len(content), content)
            writer.add_file(path, content)
            self._logger.debug(
                "bundle.file_added", path=path, size=entry.size, sha256=entry.sha256
            )

        add(GRAPH_FILE, self._encode_structured(GRAPH_FILE, bundle_input.graph, as_json=True))
        add(
            DIAGNOSIS_FILE,
            self._encode_structured(DIAGNOSIS_FILE, bundle_input.diagnosis, as_json=True),
        )
        add(
            ENVIRONMENT_FILE,
            self._encode_structured(ENVIRONMENT_FILE, bundle_input.metadata, as_json=True),
        )
        add(
            SUMMARY_FILE,
            self._encode_raw(SUMMARY_FILE, render_summary(bundle_input.diagnosis, timestamp)),
        )

        for name in _sorted_keys(bundle_input.logs, "logs"):
            path = log_path(name)
            add(path, self._encode_raw(path, bundle_input.logs[name]))

        for name in _sorted_keys(bundle_input.resources, "resources"):
            path = resource_path(name)
            value = bundle_input.resources[name]
            if isinstance(value, (str, bytes, bytearray)):
                content = self._encode_raw(path, value)
            else:
                content = self._encode_structured(path, value, as_json=path.endswith(".json"))
            add(path, content)

        manifest = manifest_builder.build()
        writer.add_file(MANIFEST_FILE, encode_manifest(manifest))

        archive_path, content_bytes = writer.write_to_disk(self._options.output_dir)
        result = BundleResult(
            archive_path=archive_path,
            file_count=manifest.total_files + 1,
            manifest=manifest,
            size_bytes=content_bytes,
        )
        self._logger.info(
            "bundle.written",
            archive_path=str(archive_path),
            archive_sha256=sha256_file(archive_path),
            file_count=result.file_count,
            size_bytes=result.size_bytes,
            content_hash=manifest.content_hash,
            redacted=self._options.redact,
        )
        return result

    def _resolve_timestamp(self) -> datetime:
        if self._options.timestamp is not None:
            return to_utc(self._options.timestamp)
        now = datetime.now(UTC).replace(microsecond=0)
        self._logger.warning(
            "bundle.nondeterministic_timestamp",
            timestamp=format_timestamp(now),
            hint="pass an explicit timestamp for reproducible archives",
        )
        return now

    def _resolve_dataset_name(self, bundle_input: BundleInput) -> str | None:
        if self._options.dataset_name is not None:
            return self._options.dataset_name
        if self._options.infer_dataset_name:
            return dataset_name_from_graph(bundle_input.graph)
        return None

    def _encode_structured(self, path: str, value: object, *, as_json: bool) -> bytes:
        normalized = self._normalize(path, value)
        try:
            if as_json:
                text = (
                    json.dumps(
                        normalized, sort_keys=True, indent=2, ensure_ascii=False, allow_nan=False
                    )
                    + "\n"
                )
            else:
                text = yaml.safe_dump(
                    normalized, sort_keys=True, default_flow_style=False, allow_unicode=True
                )
            return text.encode("utf-8")
        except (TypeError, ValueError, yaml.YAMLError) as exc:
            raise BundleSerializationError(f"serialization failed: {exc}", logical_path=path) from exc

    def _normalize(self, path: str, value: object) -> JSONValue:
        if self._options.redact:
            try:
                return self._redactor.scrub_structured(value)
            except RedactionError as exc:
                raise BundleRedactionError(str(exc), logical_path=path) from exc
        try:
            return to_json_value(value)
        except (TypeError, ValueError) as exc:
            raise BundleSerializationError(f"serialization failed: {exc}", logical_path=path) from exc

    def _encode_raw(self, path: str, value: object) -> bytes:
        if isinstance(value, str):
            text = self._redactor.redact_string(value) if self._options.redact else value
            try:
                return text.encode("utf-8")
            except UnicodeEncodeError as exc:
                raise BundleSerializationError(
                    f"text is not encodable as UTF-8: {exc}", logical_path=path
                ) from exc
        if isinstance(value, (bytes, bytearray)):
            return self._redactor.redact(bytes(value)) if self._options.redact else bytes(value)
        raise BundleSerializationError(
            f"expected text or bytes content, got {type(value).__name__}", logical_path=path
        )


def build_bundle(
    bundle_input: BundleInput,
    options: BuildOptions | None = None,
    *,
    logger: Any | None = None,
) -> BundleResult:
    """Build one archive from ``bundle_input`` and return where it landed."""

    return BundleBuilder(options, logger=logger).build(bundle_input)


def render_summary(diagnosis: DiagnosticResult, timestamp: datetime) -> str:
    """Human-readable overview written to ``summary.txt``."""

    lines = [
        SUMMARY_TITLE,
        f"Generated: {format_timestamp(timestamp)}",
        f"Issues: {len(diagnosis.issues)}",
        f"Score: {diagnosis.score}",
    ]
    lines.extend(f"- [{issue.level}] {issue.message}" for issue in diagnosis.issues)
    return "\n".join(lines) + "\n"


def _sorted_keys(entries: Mapping[str, object], label: str) -> list[str]:
    for key in entries:
        if not isinstance(key, str):
            raise BundlePathError(
                f"{label} keys must be strings, got {type(key).__name__}", logical_path=repr(key)
            )
        try:
            key.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise BundlePathError(
                f"{label} key is not encodable as UTF-8: {exc}", logical_path=repr(key)
            ) from exc
    return sorted(entries, key=lambda item: item.encode("utf-8"))


__all__ = ["SUMMARY_TITLE", "BuildOptions", "BundleBuilder", "build_bundle", "render_summary"]
