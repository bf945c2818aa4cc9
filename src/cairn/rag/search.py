"""Unified search across documents, projects and code skeletons.

The three lookups are independent and run concurrently. A failing lookup is
logged and reported in ``UnifiedResults.errors``; the others still return.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from cairn.db.store import VectorStore
from cairn.rag.retriever import retrieve_documents

logger = logging.getLogger(__name__)

DOCUMENTS = "documents"
PROJECTS = "projects"
SKELETONS = "skeletons"


@dataclass
class SearchOptions:
    """Limits and scope for one unified search.

    ``document_scope`` restricts the search to those document ids and skips
    projects and skeletons. ``project_id`` skips project search and filters
    skeletons to that project. A limit of 0 skips that lookup.
    """

    project_limit: int = 5
    code_limit: int = 10
    document_limit: int = 10
    document_scope: list[str] | None = None
    project_id: str | None = None


@dataclass
class DocumentHit:
    id: str
    file_name: str
    file_path: str
    media_type: str
    content: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProjectHit:
    id: str
    name: str
    path: str
    description: str
    tech_stack: list[str]
    tags: list[str]
    score: float


@dataclass
class SkeletonHit:
    id: str
    project_id: str
    project_name: str
    file_path: str
    language: str
    content: str
    score: float


@dataclass
class UnifiedResults:
    documents: list[DocumentHit] = field(default_factory=list)
    projects: list[ProjectHit] = field(default_factory=list)
    skeletons: list[SkeletonHit] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.documents) + len(self.projects) + len(self.skeletons)


def _similarity(distance: float) -> float:
    """Map an L2 distance to a (0, 1] score; higher is better."""
    return 1.0 / (1.0 + distance)


class UnifiedSearch:
    def __init__(self, store: VectorStore) -> None:
        self._store = store

    def search(self, query: str, options: SearchOptions | None = None) -> UnifiedResults:
        opts = options or SearchOptions()
        lookups: dict[str, Callable[[], list]] = {}
        if opts.document_limit > 0:
            lookups[DOCUMENTS] = lambda: self._documents(query, opts)
        if opts.document_scope is None:
            if opts.code_limit > 0:
                lookups[SKELETONS] = lambda: self._skeletons(query, opts)
            if opts.project_id is None and opts.project_limit > 0:
                lookups[PROJECTS] = lambda: self._projects(query, opts)

        results = UnifiedResults()
        if not lookups:
            return results
        with ThreadPoolExecutor(
            max_workers=len(lookups), thread_name_prefix="cairn-search"
        ) as pool:
            futures = {kind: pool.submit(fn) for kind, fn in lookups.items()}
            for kind, future in futures.items():
                try:
                    setattr(results, kind, future.result())
                except Exception as exc:
                    logger.warning("%s search failed: %s", kind.capitalize(), exc)
                    results.errors[kind] = str(exc)

        logger.debug(
            "Search %r: %d document(s), %d project(s), %d skeleton(s)",
            query,
            len(results.documents),
            len(results.projects),
            len(results.skeletons),
        )
        return results

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _documents(self, query: str, opts: SearchOptions) -> list[DocumentHit]:
        """Best chunk per file path, ranked by RRF score."""
        scored = retrieve_documents(
            self._store, query, top_k=opts.document_limit, document_ids=opts.document_scope
        )
        best: dict[str, DocumentHit] = {}
        for item in scored:
            chunk = item.chunk
            if chunk.file_path in best:
                continue
            best[chunk.file_path] = DocumentHit(
                id=chunk.id or "",
                file_name=chunk.file_name,
                file_path=chunk.file_path,
                media_type=chunk.media_type,
                content=chunk.content,
                score=item.rrf_score,
                metadata=chunk.metadata_dict,
            )
        return sorted(best.values(), key=lambda h: h.score, reverse=True)

    def _projects(self, query: str, opts: SearchOptions) -> list[ProjectHit]:
        hits = [
            ProjectHit(
                id=p.id,
                name=p.name,
                path=p.path,
                description=p.description,
                tech_stack=p.tech_stack,
                tags=p.tags,
                score=_similarity(distance),
            )
            for p, distance in self._store.search_projects(query, opts.project_limit)
        ]
        return sorted(hits, key=lambda h: h.score, reverse=True)

    def _skeletons(self, query: str, opts: SearchOptions) -> list[SkeletonHit]:
        names: dict[str, str] = {}
        hits: dict[str, SkeletonHit] = {}
        for skeleton, distance in self._store.search_skeletons(
            query, opts.code_limit, project_id=opts.project_id
        ):
            key = skeleton.id or ""
            if key in hits:
                continue
            if skeleton.project_id not in names:
                project = self._store.get_project(skeleton.project_id)
                names[skeleton.project_id] = project.name if project else ""
            hits[key] = SkeletonHit(
                id=key,
                project_id=skeleton.project_id,
                project_name=names[skeleton.project_id],
                file_path=skeleton.file_path,
                language=skeleton.language,
                content=skeleton.content,
                score=_similarity(distance),
            )
        return sorted(hits.values(), key=lambda h: h.score, reverse=True)
