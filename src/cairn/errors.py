"""Cairn exception hierarchy.

Per-item ingest errors (IngestError subclasses) are captured into batch
results by the scheduler; everything else propagates to the caller.
"""

from __future__ import annotations


class CairnError(Exception):
    """Base class for all Cairn errors."""


# ---------------------------------------------------------------------------
# Ingest (fatal to one item only)
# ---------------------------------------------------------------------------


class IngestError(CairnError):
    """An ingest request could not be turned into content."""


class SizeLimitExceeded(IngestError):
    """File is larger than the configured hard ceiling."""

    def __init__(self, path: str, size: int, limit: int) -> None:
        self.path = path
        self.size = size
        self.limit = limit
        super().__init__(
            f"File '{path}' exceeds the size limit "
            f"({size / (1024 * 1024):.1f} MB > {limit / (1024 * 1024):.0f} MB)"
        )


class ExtractionFailed(IngestError):
    """A parser raised, or the file yielded no content."""


class UnsupportedMediaType(IngestError):
    """Declared media type has no extraction strategy."""


class NotFound(IngestError):
    """Source file is missing at ingest time."""


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class NotACodebase(CairnError):
    """Directory has no manifest and no version-control metadata."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"No codebase detected at '{path}'")


class ManifestParseFailed(CairnError):
    """Manifest exists but could not be parsed. Never escapes the analyzer."""


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class PersistenceFailed(CairnError):
    """The vector store rejected a write; the whole call was rolled back."""
