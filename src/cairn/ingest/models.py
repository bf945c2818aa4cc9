"""Request/result types of the ingest pipeline. Never persisted as-is."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class IngestRequest:
    """One file to ingest.

    Attributes:
        file_path: Path of the source file (also the document key).
        content: Inline text; when set the file is not read from disk.
        media_type: Declared media type; detected from the extension when None.
        metadata: Caller metadata copied onto every stored chunk.
    """

    file_path: str
    content: str | None = None
    media_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def file_name(self) -> str:
        return Path(self.file_path).name


@dataclass
class IngestResult:
    id: str
    file_name: str
    file_path: str
    media_type: str
    success: bool
    message: str

    @classmethod
    def failure(cls, request: IngestRequest, media_type: str, message: str) -> IngestResult:
        return cls(
            id="",
            file_name=request.file_name,
            file_path=request.file_path,
            media_type=media_type,
            success=False,
            message=message,
        )


@dataclass
class BatchResult:
    """Outcome of a batch ingest; ``results[i]`` answers ``requests[i]``."""

    success: int
    failed: int
    results: list[IngestResult]
    elapsed_ms: int


@dataclass
class OperationResult:
    success: bool
    message: str
