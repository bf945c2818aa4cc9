"""Domain models for the Cairn database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Chunk:
    """One stored row of the document index (a whole small file or one window)."""

    content: str
    file_path: str
    file_name: str = ""
    media_type: str = "text"
    chunk_index: int = 0
    metadata: str = field(default_factory=lambda: "{}")
    thumbnail_path: str | None = None
    id: str | None = None  # set on insert
    rowid: int | None = None  # set on insert; also the vec table key
    created_at: str | None = None

    @property
    def metadata_dict(self) -> dict[str, Any]:
        return json.loads(self.metadata)


@dataclass
class Document:
    """A logical file: every chunk row sharing one file path.

    ``id`` is the id of the first chunk and is the canonical document id.
    """

    id: str
    file_name: str
    file_path: str
    media_type: str
    chunk_ids: list[str]
    thumbnail_path: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None


@dataclass
class Project:
    id: str
    name: str
    path: str
    description: str = ""
    tech_stack: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    manifest: dict[str, Any] = field(default_factory=dict)
    file_count: int = 0
    created_at: str | None = None
    rowid: int | None = None


@dataclass
class CodeSkeleton:
    """Structural extract of one source file, owned by a Project."""

    project_id: str
    file_path: str
    content: str
    language: str
    id: str | None = None
    rowid: int | None = None
    created_at: str | None = None
