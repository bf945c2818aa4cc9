"""Cairn ingest pipeline: extraction, chunking, batch scheduling."""

from cairn.ingest.base import BaseChunker
from cairn.ingest.extractor import ContentExtractor
from cairn.ingest.models import BatchResult, IngestRequest, IngestResult, OperationResult
from cairn.ingest.plaintext import PlainTextChunker
from cairn.ingest.scheduler import BatchScheduler, partition_concurrency
from cairn.ingest.service import IngestService

__all__ = [
    "BaseChunker",
    "BatchResult",
    "BatchScheduler",
    "ContentExtractor",
    "IngestRequest",
    "IngestResult",
    "IngestService",
    "OperationResult",
    "PlainTextChunker",
    "partition_concurrency",
]
