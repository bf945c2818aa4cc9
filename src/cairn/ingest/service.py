"""Ingest service: the operations exposed to the CLI and other front ends."""

from __future__ import annotations

import logging

from cairn.db.models import Document
from cairn.db.store import VectorStore
from cairn.ingest.extractor import ContentExtractor
from cairn.ingest.media import TEXT
from cairn.ingest.models import BatchResult, IngestRequest, IngestResult, OperationResult
from cairn.ingest.scheduler import BatchScheduler

logger = logging.getLogger(__name__)


class IngestService:
    """Single and batch ingest plus document lifecycle operations.

    Args:
        store: Vector store that owns all persisted documents.
        extractor: Per-media-type dispatch table shared with the scheduler.
        scheduler: Batch scheduler; built from *extractor* and *store* if omitted.
        default_concurrency: Used when batch_ingest() gets no concurrency.
    """

    def __init__(
        self,
        store: VectorStore,
        extractor: ContentExtractor,
        scheduler: BatchScheduler | None = None,
        default_concurrency: int | None = None,
    ) -> None:
        self._store = store
        self._extractor = extractor
        self._scheduler = scheduler or BatchScheduler(extractor, store)
        self._default_concurrency = default_concurrency

    def ingest(self, request: IngestRequest) -> IngestResult:
        """Ingest one file.

        Raises:
            IngestError: NotFound, SizeLimitExceeded, UnsupportedMediaType or
                ExtractionFailed.
            PersistenceFailed: If the store rejects the write.
        """
        prepared = self._extractor.prepare(request)
        if prepared.media_type == TEXT:
            ids = self._store.add_text_documents_batch(prepared.chunks)
        else:
            chunk = prepared.chunks[0]
            ids = [
                self._store.add_text_document(
                    chunk.content,
                    chunk.file_path,
                    chunk.metadata_dict,
                    media_type=prepared.media_type,
                    thumbnail_path=chunk.thumbnail_path,
                )
            ]
        logger.info("Ingested %s as %d chunk(s)", request.file_path, len(ids))
        return IngestResult(
            id=ids[0],
            file_name=request.file_name,
            file_path=request.file_path,
            media_type=prepared.media_type,
            success=True,
            message=f'{prepared.media_type.capitalize()} "{request.file_name}" ingested successfully',
        )

    def batch_ingest(
        self,
        requests: list[IngestRequest],
        concurrency: int | None = None,
        timeout: float | None = None,
    ) -> BatchResult:
        """Ingest many files; per-item failures are reported, never raised."""
        return self._scheduler.run_batch(
            requests,
            concurrency=self._default_concurrency if concurrency is None else concurrency,
            timeout=timeout,
        )

    def delete_document(self, document_id: str) -> OperationResult:
        deleted = self._store.delete_document(document_id)
        if not deleted:
            return OperationResult(success=False, message=f'Document "{document_id}" not found')
        logger.info("Deleted document %s (%d chunk(s))", document_id, deleted)
        return OperationResult(
            success=True, message=f'Document "{document_id}" deleted successfully'
        )

    def delete_all_documents(self) -> OperationResult:
        deleted = self._store.delete_all_documents()
        logger.info("Deleted all documents (%d chunk(s))", deleted)
        return OperationResult(success=True, message="All documents deleted successfully")

    def list_documents(self) -> list[Document]:
        return self._store.get_unique_documents()

    def get_document_count(self) -> int:
        return self._store.get_document_count()
