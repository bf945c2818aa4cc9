"""Plain text chunker: enriched word windows."""

from __future__ import annotations

from typing import Any

from cairn.db.models import Chunk
from cairn.ingest.base import BaseChunker
from cairn.ingest.media import enrichment_prefix


class PlainTextChunker(BaseChunker):
    """Split extracted text into 280-word windows with a 50-word overlap.

    Content shorter than ``min_chars`` (800) stays a single chunk. Every chunk
    is prefixed with the enrichment tag independently, so each one carries
    its own provenance.
    """

    def chunk(
        self,
        file_path: str,
        content: str,
        doc_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> list[Chunk]:
        if not content.strip():
            return []
        prefix = enrichment_prefix(file_path, doc_type)
        if len(content) < self.min_chars:
            segments = [content]
        else:
            segments = self._split_word_window(content)
        return self._make_chunks(file_path, [prefix + s for s in segments], metadata)
