"""Thread-safe vector store over the Cairn SQLite database.

This is the only shared mutable resource of the ingest pipeline. Every public
write runs under one lock and one SQLite transaction: a batch insert either
lands completely or is rolled back and raises PersistenceFailed. Embeddings are
computed before the lock is taken so slow provider calls never block readers.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol

from cairn.db.models import Chunk, CodeSkeleton, Document, Project
from cairn.db.repository import Repository
from cairn.db.vectors import ensure_vec_tables
from cairn.errors import PersistenceFailed

logger = logging.getLogger(__name__)

# Chunk-only keys stripped from a Document's metadata.
_CHUNK_META_KEYS = ("chunkIndex", "totalChunks")


class SupportsEmbed(Protocol):
    def embed(self, texts: list[str]) -> list[list[float]]: ...


class VectorStore:
    """Document, project and skeleton indexes backed by sqlite-vec + FTS5.

    Args:
        conn: Open connection with schema initialised. Must be opened with
            ``check_same_thread=False`` when used from worker threads
            (cairn.db.connection.Database does this).
        embedder: Object with ``embed(texts) -> vectors``.
        model_slug: Slug of the embedding model (see model_to_slug()).
        dimensions: Embedding dimensions for the vec tables.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        embedder: SupportsEmbed,
        model_slug: str,
        dimensions: int,
    ) -> None:
        self._conn = conn
        self._repo = Repository(conn)
        self._embedder = embedder
        self._lock = threading.RLock()
        self._tables = ensure_vec_tables(conn, model_slug, dimensions)

    # ------------------------------------------------------------------
    # Transaction + embedding helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[Repository]:
        with self._lock:
            try:
                with self._conn:
                    yield self._repo
            except sqlite3.Error as exc:
                logger.error("Vector store write rolled back: %s", exc)
                raise PersistenceFailed(f"Vector store rejected write: {exc}") from exc

    @contextmanager
    def _reading(self) -> Iterator[Repository]:
        with self._lock:
            yield self._repo

    def _embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            vectors = self._embedder.embed(texts)
        except Exception as exc:
            raise PersistenceFailed(f"Embedding failed: {exc}") from exc
        if len(vectors) != len(texts):
            raise PersistenceFailed(
                f"Embedding returned {len(vectors)} vectors for {len(texts)} inputs"
            )
        return vectors

    def embed_query(self, query: str) -> list[float]:
        return self._embed([query])[0]

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def add_text_document(
        self,
        content: str,
        file_path: str,
        metadata: dict[str, Any] | None = None,
        vector: list[float] | None = None,
        *,
        media_type: str = "text",
        thumbnail_path: str | None = None,
    ) -> str:
        """Store one single-chunk document, replacing any document at *file_path*.

        Returns:
            The new chunk id (also the document id).
        """
        embedding = vector if vector is not None else self._embed([content])[0]
        chunk = _new_chunk(
            Chunk(
                content=content,
                file_path=file_path,
                media_type=media_type,
                thumbnail_path=thumbnail_path,
                metadata=json.dumps(metadata or {}),
            )
        )
        with self._transaction() as repo:
            replaced = repo.delete_chunks_by_path(file_path, self._tables["documents"])
            rowid = repo.add_chunk(chunk)
            repo.add_embedding(self._tables["documents"], rowid, embedding)
        if replaced:
            logger.debug("Replaced %d chunk(s) for %s", replaced, file_path)
        return chunk.id

    def add_text_documents_batch(self, items: list[Chunk]) -> list[str]:
        """Embed and store *items* in one transaction; ids are index-aligned.

        Existing chunks for every file path in the batch are deleted first,
        so re-ingesting a file supersedes its previous chunks.
        """
        if not items:
            return []
        vectors = self._embed([item.content for item in items])
        chunks = [_new_chunk(item) for item in items]
        paths = list(dict.fromkeys(item.file_path for item in items))

        with self._transaction() as repo:
            for path in paths:
                repo.delete_chunks_by_path(path, self._tables["documents"])
            for chunk, vector in zip(chunks, vectors):
                rowid = repo.add_chunk(chunk)
                repo.add_embedding(self._tables["documents"], rowid, vector)

        logger.debug("Stored %d chunk(s) across %d file(s)", len(chunks), len(paths))
        return [c.id for c in chunks]

    def delete_document(self, document_id: str) -> int:
        """Delete the document owning chunk *document_id* (all of its chunks).

        Returns:
            Number of chunk rows deleted (0 if the id is unknown).
        """
        with self._transaction() as repo:
            chunk = repo.get_chunk(document_id)
            if chunk is None:
                return 0
            return repo.delete_chunks_by_path(chunk.file_path, self._tables["documents"])

    def delete_documents_by_path(self, file_path: str) -> int:
        with self._transaction() as repo:
            return repo.delete_chunks_by_path(file_path, self._tables["documents"])

    def delete_all_documents(self) -> int:
        with self._transaction() as repo:
            return repo.delete_all_chunks(self._tables["documents"])

    def get_unique_documents(self) -> list[Document]:
        """Group chunk rows by file path into Documents, oldest first."""
        with self._reading() as repo:
            chunks = repo.list_chunks()

        documents: dict[str, Document] = {}
        for chunk in chunks:
            doc = documents.get(chunk.file_path)
            if doc is None:
                meta = {
                    k: v for k, v in chunk.metadata_dict.items() if k not in _CHUNK_META_KEYS
                }
                documents[chunk.file_path] = Document(
                    id=chunk.id,
                    file_name=chunk.file_name,
                    file_path=chunk.file_path,
                    media_type=chunk.media_type,
                    chunk_ids=[chunk.id],
                    thumbnail_path=chunk.thumbnail_path,
                    metadata=meta,
                    created_at=chunk.created_at,
                )
            else:
                doc.chunk_ids.append(chunk.id)
        return list(documents.values())

    def get_document_count(self) -> int:
        with self._reading() as repo:
            return repo.count_documents()

    def get_chunk_count(self) -> int:
        with self._reading() as repo:
            return repo.count_chunks()

    def get_chunk_by_rowid(self, rowid: int) -> Chunk | None:
        with self._reading() as repo:
            return repo.get_chunk_by_rowid(rowid)

    def document_scope(self, document_ids: list[str]) -> list[int]:
        """Resolve document ids to the rowids of all their chunks."""
        with self._reading() as repo:
            return repo.chunk_rowids_for_documents(document_ids)

    def search_document_vectors(
        self, embedding: list[float], limit: int, rowids: list[int] | None = None
    ) -> list[tuple[Chunk, float]]:
        """Dense search over chunks. Returns (chunk, distance), nearest first."""
        with self._reading() as repo:
            hits = repo.search_vec(self._tables["documents"], embedding, limit, rowids)
            return _resolve(hits, repo.get_chunk_by_rowid)

    def search_documents(
        self, query: str, limit: int = 10, rowids: list[int] | None = None
    ) -> list[tuple[Chunk, float]]:
        """Dense search by query text. Returns (chunk, distance), nearest first."""
        return self.search_document_vectors(self.embed_query(query), limit, rowids)

    def search_document_text(
        self, query: str, limit: int, rowids: list[int] | None = None
    ) -> list[tuple[Chunk, float]]:
        """BM25 search over chunks. Returns (chunk, bm25 score), best first."""
        with self._reading() as repo:
            hits = repo.search_fts(query, limit, rowids)
            return _resolve(hits, repo.get_chunk_by_rowid)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def add_project(
        self,
        name: str,
        path: str,
        description: str = "",
        tech_stack: list[str] | None = None,
        tags: list[str] | None = None,
        manifest: dict[str, Any] | None = None,
        file_count: int = 0,
    ) -> str:
        """Store a project; the embedded text is name + stack + tags + description.

        Raises:
            PersistenceFailed: If a project already exists at *path* (callers
                delete first; there is no upsert).
        """
        project = Project(
            id=str(uuid.uuid4()),
            name=name,
            path=path,
            description=description,
            tech_stack=list(tech_stack or []),
            tags=list(tags or []),
            manifest=dict(manifest or {}),
            file_count=file_count,
        )
        embedding = self._embed([_project_search_text(project)])[0]
        with self._transaction() as repo:
            rowid = repo.add_project(project)
            repo.add_embedding(self._tables["projects"], rowid, embedding)
        return project.id

    def get_project(self, project_id: str) -> Project | None:
        with self._reading() as repo:
            return repo.get_project(project_id)

    def get_project_by_path(self, path: str) -> Project | None:
        with self._reading() as repo:
            return repo.get_project_by_path(path)

    def list_projects(self) -> list[Project]:
        with self._reading() as repo:
            return repo.list_projects()

    def delete_project(self, project_id: str) -> bool:
        """Delete a project and cascade to its skeletons and their embeddings."""
        with self._transaction() as repo:
            return repo.delete_project(
                project_id, self._tables["projects"], self._tables["skeletons"]
            )

    def search_projects(self, query: str, limit: int = 5) -> list[tuple[Project, float]]:
        embedding = self.embed_query(query)
        with self._reading() as repo:
            hits = repo.search_vec(self._tables["projects"], embedding, limit)
            return _resolve(hits, repo.get_project_by_rowid)

    # ------------------------------------------------------------------
    # Code skeletons
    # ------------------------------------------------------------------

    def add_code_skeletons_batch(self, skeletons: list[CodeSkeleton]) -> list[str]:
        """Embed and store skeletons in one transaction; returns their ids."""
        if not skeletons:
            return []
        vectors = self._embed([s.content for s in skeletons])
        with self._transaction() as repo:
            for skeleton, vector in zip(skeletons, vectors):
                skeleton.id = skeleton.id or str(uuid.uuid4())
                rowid = repo.add_skeleton(skeleton)
                skeleton.rowid = rowid
                repo.add_embedding(self._tables["skeletons"], rowid, vector)
        return [s.id for s in skeletons]

    def get_skeletons_by_project(self, project_id: str) -> list[CodeSkeleton]:
        with self._reading() as repo:
            return repo.skeletons_by_project(project_id)

    def count_skeletons(self, project_id: str | None = None) -> int:
        with self._reading() as repo:
            return repo.count_skeletons(project_id)

    def search_skeletons(
        self, query: str, limit: int = 10, project_id: str | None = None
    ) -> list[tuple[CodeSkeleton, float]]:
        embedding = self.embed_query(query)
        with self._reading() as repo:
            scope = repo.skeleton_rowids_by_project(project_id) if project_id else None
            hits = repo.search_vec(self._tables["skeletons"], embedding, limit, scope)
            return _resolve(hits, repo.get_skeleton_by_rowid)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _new_chunk(item: Chunk) -> Chunk:
    """Copy an unsaved chunk with a fresh id and a file name derived from its path."""
    return Chunk(
        id=str(uuid.uuid4()),
        content=item.content,
        file_path=item.file_path,
        file_name=item.file_name or Path(item.file_path).name,
        media_type=item.media_type,
        chunk_index=item.chunk_index,
        thumbnail_path=item.thumbnail_path,
        metadata=item.metadata,
    )


def _resolve(hits: list[tuple[int, float]], lookup) -> list:
    results = []
    for rowid, score in hits:
        obj = lookup(rowid)
        if obj is not None:
            results.append((obj, score))
    return results


def _project_search_text(project: Project) -> str:
    parts = [project.name]
    if project.tech_stack:
        parts.append("Tech stack: " + ", ".join(project.tech_stack))
    if project.tags:
        parts.append("Tags: " + ", ".join(project.tags))
    if project.description:
        parts.append(project.description)
    return "\n".join(parts)
