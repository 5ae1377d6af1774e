"""Bundle assembly: layout, manifest, deterministic archive writer, build pipeline, and verification."""

from fluid_diagnose_bundler.bundler.errors import (
    ArchiveWriteError,
    BundleError,
    BundlePathError,
    BundleRedactionError,
    BundleSerializationError,
)
from fluid_diagnose_bundler.bundler.layout import (
    ARCHIVE_SUFFIX,
    DIAGNOSIS_FILE,
    ENVIRONMENT_FILE,
    GRAPH_FILE,
    LOGS_DIR,
    MANIFEST_FILE,
    METADATA_DIR,
    RESOURCES_DIR,
    ROOT_PREFIX,
    SUMMARY_FILE,
    dataset_name_from_graph,
    join_archive_path,
    root_dir_name,
)
from fluid_diagnose_bundler.bundler.manifest import ManifestBuilder, aggregate_digest, encode_manifest
from fluid_diagnose_bundler.bundler.pipeline import (
    BuildOptions,
    BundleBuilder,
    build_bundle,
    render_summary,
)
from fluid_diagnose_bundler.bundler.verify import BundleVerification, read_bundle, verify_bundle
from fluid_diagnose_bundler.bundler.writer import ArchiveWriter

__all__ = [
    "ARCHIVE_SUFFIX",
    "DIAGNOSIS_FILE",
    "ENVIRONMENT_FILE",
    "GRAPH_FILE",
    "LOGS_DIR",
    "MANIFEST_FILE",
    "METADATA_DIR",
    "RESOURCES_DIR",
    "ROOT_PREFIX",
    "SUMMARY_FILE",
    "ArchiveWriteError",
    "ArchiveWriter",
    "BuildOptions",
    "BundleBuilder",
    "BundleError",
    "BundlePathError",
    "BundleRedactionError",
    "BundleSerializationError",
    "BundleVerification",
    "ManifestBuilder",
    "aggregate_digest",
    "build_bundle",
    "dataset_name_from_graph",
    "encode_manifest",
    "join_archive_path",
    "read_bundle",
    "render_summary",
    "root_dir_name",
    "verify_bundle",
]
