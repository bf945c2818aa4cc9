"""Shared CLI wiring: config, logging, and the objects commands operate on."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from cairn.cli.errors import err_config, err_no_api_key
from cairn.config import CairnConfig, ConfigError, load_config
from cairn.db.connection import Database
from cairn.db.schema import initialize
from cairn.db.store import VectorStore
from cairn.db.vectors import model_to_slug
from cairn.ingest.audio import Transcriber
from cairn.ingest.extractor import ContentExtractor
from cairn.ingest.image import Captioner
from cairn.ingest.service import IngestService
from cairn.projects.indexer import ProjectIndexer
from cairn.rag.llm_client import Embedder, LLMClient, provider_of, validate_api_key

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Route the ``cairn`` logger through rich; DEBUG with --verbose, else WARNING."""
    logger = logging.getLogger("cairn")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.propagate = False


def get_config(db: Path | None = None) -> CairnConfig:
    """Load config, applying ``--db``; print the error and exit on bad config."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    if db is not None:
        cfg.database.path = str(db)
    return cfg


def require_api_key(model: str) -> None:
    try:
        validate_api_key(model)
    except EnvironmentError as exc:
        console.print(err_no_api_key(provider_of(model)))
        raise typer.Exit(1) from exc


@contextmanager
def store_session(cfg: CairnConfig) -> Iterator[VectorStore]:
    """Open the database, run migrations, and yield a VectorStore."""
    conn = Database(Path(cfg.database.path).expanduser()).connect()
    try:
        initialize(conn)
        yield VectorStore(
            conn,
            Embedder(cfg.embedding.model, batch_size=cfg.embedding.batch_size),
            model_to_slug(cfg.embedding.model),
            cfg.embedding.dimensions,
        )
    finally:
        conn.close()


def build_ingest_service(store: VectorStore, cfg: CairnConfig) -> IngestService:
    extractor = ContentExtractor.default(
        transcriber=Transcriber(cfg.transcription.model),
        captioner=Captioner(
            cfg.captioning.model,
            retries=cfg.captioning.retries,
            retry_delay=cfg.captioning.retry_delay,
        ),
        max_file_bytes=cfg.ingest.max_file_bytes,
    )
    return IngestService(store, extractor, default_concurrency=cfg.ingest.concurrency)


def build_indexer(store: VectorStore, cfg: CairnConfig, with_llm: bool = False) -> ProjectIndexer:
    llm = LLMClient(cfg.generation.model) if with_llm else None
    return ProjectIndexer(store, llm=llm, config=cfg.projects, generation=cfg.generation)
