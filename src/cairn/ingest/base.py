"""Base chunker interface: overlapping word windows."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from cairn.db.models import Chunk

CHUNK_WORDS = 280
OVERLAP_WORDS = 50
MIN_CHARS_FOR_CHUNKING = 800


class BaseChunker(ABC):
    """Abstract base for chunkers.

    Subclasses implement ``chunk()`` and may use ``_split_word_window()`` and
    ``_make_chunks()``. Windows hold ``chunk_words`` words and consecutive
    windows share ``overlap_words`` words.
    """

    def __init__(
        self,
        chunk_words: int = CHUNK_WORDS,
        overlap_words: int = OVERLAP_WORDS,
        min_chars: int = MIN_CHARS_FOR_CHUNKING,
    ) -> None:
        if chunk_words < 1:
            raise ValueError("chunk_words must be >= 1")
        if not 0 <= overlap_words < chunk_words:
            raise ValueError("overlap_words must be in [0, chunk_words)")
        if min_chars < 0:
            raise ValueError("min_chars must be >= 0")
        self.chunk_words = chunk_words
        self.overlap_words = overlap_words
        self.min_chars = min_chars

    @abstractmethod
    def chunk(
        self,
        file_path: str,
        content: str,
        doc_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> list[Chunk]:
        """Split *content* of *file_path* into enriched, unsaved Chunks."""

    def _split_word_window(self, text: str) -> list[str]:
        """Split *text* on whitespace into windows of ``chunk_words`` words.

        The window start advances by ``chunk_words - overlap_words``; the last
        window may be shorter. Text of at most one window is returned as-is.
        """
        words = text.split()
        if not words:
            return []
        if len(words) <= self.chunk_words:
            return [text]

        step = self.chunk_words - self.overlap_words
        windows: list[str] = []
        start = 0
        while True:
            end = min(start + self.chunk_words, len(words))
            windows.append(" ".join(words[start:end]))
            if end >= len(words):
                break
            start += step
        return windows

    @staticmethod
    def _make_chunks(
        file_path: str,
        texts: list[str],
        metadata: dict[str, Any] | None = None,
        media_type: str = "text",
    ) -> list[Chunk]:
        """Convert texts into sequentially indexed Chunks.

        ``chunkIndex``/``totalChunks`` are only added when there is more than
        one chunk.
        """
        total = len(texts)
        chunks: list[Chunk] = []
        for i, text in enumerate(texts):
            meta = dict(metadata or {})
            if total > 1:
                meta["chunkIndex"] = i
                meta["totalChunks"] = total
            chunks.append(
                Chunk(
                    content=text,
                    file_path=file_path,
                    file_name=Path(file_path).name,
                    media_type=media_type,
                    chunk_index=i,
                    metadata=json.dumps(meta),
                )
            )
        return chunks
