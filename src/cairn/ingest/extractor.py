"""Content extraction: one strategy per media type.

The single-file and batch ingest paths both go through ContentExtractor, so
the size ceiling, extraction and enrichment rules live in one place:

  text   → inline content, or a reader chosen by extension, then word windows
  audio  → Transcriber, one chunk tagged as an audio transcript
  image  → Captioner, one chunk carrying the prefixed caption
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from cairn.config import MAX_FILE_BYTES
from cairn.db.models import Chunk
from cairn.errors import (
    CairnError,
    ExtractionFailed,
    NotFound,
    SizeLimitExceeded,
    UnsupportedMediaType,
)
from cairn.ingest.base import BaseChunker
from cairn.ingest.media import (
    AUDIO,
    AUDIO_DOC_TYPE,
    IMAGE,
    TEXT,
    detect_media_type,
    doc_type_for,
    enrichment_prefix,
    image_prefix,
)
from cairn.ingest.models import IngestRequest
from cairn.ingest.office import (
    describe_legacy,
    describe_presentation,
    extract_docx,
    extract_spreadsheet,
)
from cairn.ingest.pdf import extract_pdf_text
from cairn.ingest.plaintext import PlainTextChunker

logger = logging.getLogger(__name__)


class SupportsTranscribe(Protocol):
    def transcribe(self, path: str) -> str: ...


class SupportsCaption(Protocol):
    def caption(self, path: str) -> str: ...


def _read_utf8(path: str) -> str:
    return Path(path).read_text(encoding="utf-8", errors="replace")


_TEXT_READERS: dict[str, Callable[[str], str]] = {
    ".pdf": extract_pdf_text,
    ".docx": extract_docx,
    ".xlsx": extract_spreadsheet,
    ".xls": extract_spreadsheet,
    ".pptx": describe_presentation,
    ".doc": describe_legacy,
    ".ppt": describe_legacy,
    ".rtf": describe_legacy,
}


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class MediaStrategy(ABC):
    """How one media type becomes content and then chunks."""

    media_type: str

    @abstractmethod
    def extract(self, request: IngestRequest) -> str:
        """Return raw content for *request* (inline content wins)."""

    @abstractmethod
    def to_chunks(self, request: IngestRequest, content: str) -> list[Chunk]:
        """Turn extracted content into enriched, unsaved chunks."""


class TextStrategy(MediaStrategy):
    media_type = TEXT

    def __init__(self, chunker: BaseChunker | None = None) -> None:
        self.chunker = chunker or PlainTextChunker()

    def extract(self, request: IngestRequest) -> str:
        if request.content is not None:
            return request.content
        ext = Path(request.file_path).suffix.lower()
        reader = _TEXT_READERS.get(ext, _read_utf8)
        return reader(request.file_path)

    def to_chunks(self, request: IngestRequest, content: str) -> list[Chunk]:
        return self.chunker.chunk(
            request.file_path,
            content,
            doc_type=doc_type_for(request.file_path),
            metadata=request.metadata,
        )


class AudioStrategy(MediaStrategy):
    media_type = AUDIO

    def __init__(self, transcriber: SupportsTranscribe) -> None:
        self.transcriber = transcriber

    def extract(self, request: IngestRequest) -> str:
        if request.content is not None:
            return request.content
        return self.transcriber.transcribe(request.file_path)

    def to_chunks(self, request: IngestRequest, content: str) -> list[Chunk]:
        return [
            _single_chunk(
                request,
                enrichment_prefix(request.file_path, AUDIO_DOC_TYPE) + content,
                AUDIO,
            )
        ]


class ImageStrategy(MediaStrategy):
    media_type = IMAGE

    def __init__(self, captioner: SupportsCaption) -> None:
        self.captioner = captioner

    def extract(self, request: IngestRequest) -> str:
        if request.content is not None:
            return request.content
        return self.captioner.caption(request.file_path)

    def to_chunks(self, request: IngestRequest, content: str) -> list[Chunk]:
        chunk = _single_chunk(request, image_prefix(request.file_path) + content, IMAGE)
        chunk.thumbnail_path = request.file_path
        return [chunk]


def _single_chunk(request: IngestRequest, content: str, media_type: str) -> Chunk:
    return Chunk(
        content=content,
        file_path=request.file_path,
        file_name=request.file_name,
        media_type=media_type,
        metadata=json.dumps(request.metadata),
    )


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


@dataclass
class Prepared:
    """Chunks ready for the vector store, plus the resolved media type."""

    media_type: str
    chunks: list[Chunk]


class ContentExtractor:
    """Dispatch table from media type to strategy, with the shared size ceiling.

    Args:
        strategies: Strategy per media type.
        max_file_bytes: Hard ceiling checked before any extraction attempt.
    """

    def __init__(
        self,
        strategies: dict[str, MediaStrategy],
        max_file_bytes: int = MAX_FILE_BYTES,
    ) -> None:
        self.strategies = strategies
        self.max_file_bytes = max_file_bytes

    @classmethod
    def default(
        cls,
        transcriber: SupportsTranscribe,
        captioner: SupportsCaption,
        max_file_bytes: int = MAX_FILE_BYTES,
    ) -> ContentExtractor:
        return cls(
            {
                TEXT: TextStrategy(),
                AUDIO: AudioStrategy(transcriber),
                IMAGE: ImageStrategy(captioner),
            },
            max_file_bytes=max_file_bytes,
        )

    def media_type_for(self, request: IngestRequest) -> str:
        """Declared media type, else detected from the extension.

        Raises:
            UnsupportedMediaType: If no strategy handles the media type.
        """
        media_type = request.media_type or detect_media_type(request.file_path)
        if media_type not in self.strategies:
            raise UnsupportedMediaType(f"Unsupported media type '{media_type}'")
        return media_type

    def check_file(self, request: IngestRequest) -> None:
        """Raise NotFound / SizeLimitExceeded before any extraction work."""
        path = request.file_path
        if not os.path.isfile(path):
            if request.content is None:
                raise NotFound(f"File not found: '{path}'")
            return
        size = os.path.getsize(path)
        if size > self.max_file_bytes:
            raise SizeLimitExceeded(path, size, self.max_file_bytes)

    def extract(self, request: IngestRequest) -> str:
        """Return the raw content for *request*.

        Raises:
            IngestError: NotFound, SizeLimitExceeded, UnsupportedMediaType or
                ExtractionFailed (including whitespace-only content).
        """
        strategy = self.strategies[self.media_type_for(request)]
        self.check_file(request)
        try:
            content = strategy.extract(request)
        except CairnError:
            raise
        except Exception as exc:
            raise ExtractionFailed(
                f"Failed to extract '{request.file_path}': {exc}"
            ) from exc
        if not content or not content.strip():
            raise ExtractionFailed("No content found")
        return content

    def prepare(self, request: IngestRequest) -> Prepared:
        """Extract, enrich and chunk *request*."""
        media_type = self.media_type_for(request)
        content = self.extract(request)
        chunks = self.strategies[media_type].to_chunks(request, content)
        if not chunks:
            raise ExtractionFailed("No content to index")
        logger.debug(
            "Prepared %s (%s): %d chunk(s)", request.file_path, media_type, len(chunks)
        )
        return Prepared(media_type=media_type, chunks=chunks)
