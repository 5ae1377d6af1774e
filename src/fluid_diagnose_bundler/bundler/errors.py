"""Error taxonomy for bundle builds. Every error is terminal for the build that raised it."""

from __future__ import annotations


class BundleError(RuntimeError):
    """Base class for build failures; ``logical_path`` names the offending archive entry."""

    def __init__(self, message: str, *, logical_path: str | None = None) -> None:
        super().__init__(message)
        self.logical_path = logical_path

    def __str__(self) -> str:
        message = super().__str__()
        if self.logical_path is None:
            return message
        return f"{self.logical_path}: {message}"


class BundleRedactionError(BundleError):
    """A structured value could not be normalized for scrubbing."""


class BundleSerializationError(BundleError):
    """A value could not be encoded to its target format."""


class BundlePathError(BundleError, ValueError):
    """A logical path is empty, escapes the bundle root, or is already taken."""


class ArchiveWriteError(BundleError):
    """The archive could not be written to the output directory."""


__all__ = [
    "ArchiveWriteError",
    "BundleError",
    "BundlePathError",
    "BundleRedactionError",
    "BundleSerializationError",
]
