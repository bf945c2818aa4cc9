"""Batch scheduler: bounded worker pools per media type.

The batch is partitioned into text / audio / image and the partitions run
concurrently. Each partition is a fixed-size pool of workers that pull the
next unclaimed request index and write their result into a pre-sized array,
so results come back in request order whatever the completion order.
When a path appears more than once, only its last request is ingested.

Text chunks from the whole partition are persisted in one batched store call;
audio and image items are persisted one at a time as they complete.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor

from cairn.config import DEFAULT_CONCURRENCY, MAX_CONCURRENCY
from cairn.db.models import Chunk
from cairn.db.store import VectorStore
from cairn.errors import CairnError, PersistenceFailed
from cairn.ingest.extractor import ContentExtractor
from cairn.ingest.media import AUDIO, IMAGE, TEXT
from cairn.ingest.models import BatchResult, IngestRequest, IngestResult

logger = logging.getLogger(__name__)

DEADLINE_MESSAGE = "Batch deadline exceeded"
SUPERSEDED_MESSAGE = "Superseded by a later request for the same file"


def partition_concurrency(concurrency: int | None = None) -> dict[str, int]:
    """Worker counts per partition.

    Text gets the requested concurrency (default 10, clamped to [1, 50]);
    audio and image each get half of it, but at least one worker.
    """
    requested = DEFAULT_CONCURRENCY if concurrency is None else concurrency
    text = min(max(requested, 1), MAX_CONCURRENCY)
    heavy = max(1, text // 2)
    return {TEXT: text, AUDIO: heavy, IMAGE: heavy}


class BatchScheduler:
    """Run a list of ingest requests with bounded, per-media-type concurrency.

    Args:
        extractor: Shared ContentExtractor (the per-media-type dispatch table).
        store: Vector store; its calls are atomic per call.
        clock: Monotonic clock, injectable for deadline tests.
    """

    def __init__(
        self,
        extractor: ContentExtractor,
        store: VectorStore,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._extractor = extractor
        self._store = store
        self._clock = clock

    def run_batch(
        self,
        requests: list[IngestRequest],
        concurrency: int | None = None,
        timeout: float | None = None,
    ) -> BatchResult:
        """Ingest *requests*; never raises for per-item failures.

        Args:
            requests: Items to ingest.
            concurrency: Requested text concurrency (see partition_concurrency()).
            timeout: Whole-batch deadline in seconds. Items not started before
                it expires are reported as failures.
        """
        start = self._clock()
        deadline = start + timeout if timeout is not None else None
        results: list[IngestResult | None] = [None] * len(requests)
        limits = partition_concurrency(concurrency)

        # Last request for a path wins; earlier ones are reported, not ingested.
        last_index = {request.file_path: i for i, request in enumerate(requests)}
        partitions: dict[str, list[int]] = {TEXT: [], AUDIO: [], IMAGE: []}
        for i, request in enumerate(requests):
            try:
                media_type = self._extractor.media_type_for(request)
            except CairnError as exc:
                results[i] = IngestResult.failure(request, request.media_type or "", str(exc))
                continue
            if last_index[request.file_path] != i:
                results[i] = IngestResult.failure(request, media_type, SUPERSEDED_MESSAGE)
                continue
            partitions.setdefault(media_type, []).append(i)

        logger.info(
            "Batch of %d: text=%d (x%d) audio=%d (x%d) image=%d (x%d)",
            len(requests),
            len(partitions[TEXT]),
            limits[TEXT],
            len(partitions[AUDIO]),
            limits[AUDIO],
            len(partitions[IMAGE]),
            limits[IMAGE],
        )

        with ThreadPoolExecutor(
            max_workers=len(partitions), thread_name_prefix="cairn-partition"
        ) as pool:
            futures = []
            for media_type, indices in partitions.items():
                if not indices:
                    continue
                workers = limits.get(media_type, limits[AUDIO])
                if media_type == TEXT:
                    futures.append(
                        pool.submit(
                            self._run_text, requests, indices, workers, results, deadline
                        )
                    )
                else:
                    futures.append(
                        pool.submit(
                            self._run_single,
                            requests,
                            indices,
                            media_type,
                            workers,
                            results,
                            deadline,
                        )
                    )
            for future in futures:
                future.result()

        elapsed_ms = int((self._clock() - start) * 1000)
        final = [
            r if r is not None else IngestResult.failure(requests[i], "", "Not processed")
            for i, r in enumerate(results)
        ]
        succeeded = sum(1 for r in final if r.success)
        if requests:
            logger.info(
                "Batch done: %d ok, %d failed in %d ms (avg %.0f ms/file)",
                succeeded,
                len(final) - succeeded,
                elapsed_ms,
                elapsed_ms / len(requests),
            )
        return BatchResult(
            success=succeeded,
            failed=len(final) - succeeded,
            results=final,
            elapsed_ms=elapsed_ms,
        )

    # ------------------------------------------------------------------
    # Partitions
    # ------------------------------------------------------------------

    def _run_text(
        self,
        requests: list[IngestRequest],
        indices: list[int],
        workers: int,
        results: list[IngestResult | None],
        deadline: float | None,
    ) -> None:
        """Extract + chunk in parallel, then persist every chunk in one call."""
        prepared: dict[int, list[Chunk]] = {}

        def work(i: int) -> None:
            prepared[i] = self._extractor.prepare(requests[i]).chunks

        self._drain(indices, workers, TEXT, requests, results, deadline, work)

        ready = [i for i in indices if i in prepared]
        if not ready:
            return
        chunks = [c for i in ready for c in prepared[i]]
        try:
            ids = self._store.add_text_documents_batch(chunks)
        except PersistenceFailed as exc:
            for i in ready:
                results[i] = IngestResult.failure(requests[i], TEXT, str(exc))
            return

        offset = 0
        for i in ready:
            count = len(prepared[i])
            request = requests[i]
            results[i] = IngestResult(
                id=ids[offset],
                file_name=request.file_name,
                file_path=request.file_path,
                media_type=TEXT,
                success=True,
                message=f"Indexed as {count} chunks" if count > 1 else "Ingested successfully",
            )
            offset += count

    def _run_single(
        self,
        requests: list[IngestRequest],
        indices: list[int],
        media_type: str,
        workers: int,
        results: list[IngestResult | None],
        deadline: float | None,
    ) -> None:
        """Audio / image: each item yields one record, persisted on completion."""

        def work(i: int) -> None:
            request = requests[i]
            chunk = self._extractor.prepare(request).chunks[0]
            doc_id = self._store.add_text_document(
                chunk.content,
                chunk.file_path,
                chunk.metadata_dict,
                media_type=media_type,
                thumbnail_path=chunk.thumbnail_path,
            )
            results[i] = IngestResult(
                id=doc_id,
                file_name=request.file_name,
                file_path=request.file_path,
                media_type=media_type,
                success=True,
                message="Ingested successfully",
            )

        self._drain(indices, workers, media_type, requests, results, deadline, work)

    # ------------------------------------------------------------------
    # Worker pool
    # ------------------------------------------------------------------

    def _drain(
        self,
        indices: list[int],
        workers: int,
        media_type: str,
        requests: list[IngestRequest],
        results: list[IngestResult | None],
        deadline: float | None,
        work: Callable[[int], None],
    ) -> None:
        """Run *work* over *indices* with a fixed pool of *workers*.

        Each worker claims the next unclaimed index until none are left.
        Per-item errors are written to *results* and never propagate.
        """
        pending: Iterator[int] = iter(indices)
        claim_lock = threading.Lock()

        def worker() -> None:
            while True:
                with claim_lock:
                    i = next(pending, None)
                if i is None:
                    return
                request = requests[i]
                if deadline is not None and self._clock() >= deadline:
                    results[i] = IngestResult.failure(request, media_type, DEADLINE_MESSAGE)
                    continue
                try:
                    work(i)
                except CairnError as exc:
                    logger.warning("Failed to ingest %s: %s", request.file_path, exc)
                    results[i] = IngestResult.failure(request, media_type, str(exc))
                except Exception as exc:
                    logger.exception("Unexpected error ingesting %s", request.file_path)
                    results[i] = IngestResult.failure(request, media_type, str(exc))

        size = min(workers, len(indices))
        with ThreadPoolExecutor(
            max_workers=size, thread_name_prefix=f"cairn-{media_type}"
        ) as pool:
            for future in [pool.submit(worker) for _ in range(size)]:
                future.result()
