"""Hybrid document retriever: BM25 (FTS5) + dense (sqlite-vec), fused via RRF.

Reciprocal Rank Fusion:
  score(d) = 1 / (k + rank_dense) + 1 / (k + rank_bm25)   k = 60

A chunk missing from one channel is ranked just past the end of that channel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from cairn.db.models import Chunk
from cairn.db.store import VectorStore

logger = logging.getLogger(__name__)

_RRF_K = 60

MODES = ("hybrid", "dense", "bm25")


@dataclass
class ScoredChunk:
    """A retrieved chunk together with its RRF fusion score and per-channel ranks.

    Attributes:
        chunk: The Chunk instance from the database.
        rrf_score: Reciprocal Rank Fusion score (higher = more relevant).
        dense_rank: 1-based rank in the dense channel (None if not retrieved).
        bm25_rank: 1-based rank in the BM25 channel (None if not retrieved).
    """

    chunk: Chunk
    rrf_score: float
    dense_rank: int | None = None
    bm25_rank: int | None = None


def retrieve_documents(
    store: VectorStore,
    query: str,
    top_k: int = 10,
    document_ids: list[str] | None = None,
    mode: str = "hybrid",
) -> list[ScoredChunk]:
    """Return document chunks for *query*, best first.

    Args:
        store: Vector store to search.
        query: Free-text query; embedded for the dense channel, raw for BM25.
        top_k: Maximum chunks to return after fusion.
        document_ids: Restrict the search to the chunks of these documents.
        mode: ``hybrid``, ``dense`` or ``bm25``.
    """
    if mode not in MODES:
        raise ValueError(f"Unknown retrieval mode '{mode}' (expected one of {MODES})")

    rowids = None
    if document_ids is not None:
        rowids = store.document_scope(document_ids)
        if not rowids:
            return []

    if mode == "bm25":
        return _rank_bm25_only(store.search_document_text(query, top_k, rowids))

    embedding = store.embed_query(query)
    dense_results = store.search_document_vectors(embedding, top_k, rowids)
    if mode == "dense":
        return _rank_dense_only(dense_results)

    bm25_results = store.search_document_text(query, top_k, rowids)
    logger.debug(
        "Retrieved %d dense / %d bm25 candidate(s)", len(dense_results), len(bm25_results)
    )
    return _rrf_fuse(dense_results, bm25_results, top_k=top_k)


# ------------------------------------------------------------------
# RRF fusion
# ------------------------------------------------------------------


def _rrf_fuse(
    dense_results: list[tuple[Chunk, float]],
    bm25_results: list[tuple[Chunk, float]],
    top_k: int,
) -> list[ScoredChunk]:
    """Combine dense and BM25 ranked lists via Reciprocal Rank Fusion."""
    dense_rank: dict[int, int] = {}
    bm25_rank: dict[int, int] = {}
    chunk_map: dict[int, Chunk] = {}

    for i, (chunk, _) in enumerate(dense_results):
        if chunk.rowid is not None:
            dense_rank[chunk.rowid] = i + 1
            chunk_map[chunk.rowid] = chunk
    for i, (chunk, _) in enumerate(bm25_results):
        if chunk.rowid is not None:
            bm25_rank[chunk.rowid] = i + 1
            chunk_map.setdefault(chunk.rowid, chunk)

    n_dense = len(dense_results)
    n_bm25 = len(bm25_results)
    scored: list[ScoredChunk] = []
    for rowid, chunk in chunk_map.items():
        dr = dense_rank.get(rowid, n_dense + 1)
        br = bm25_rank.get(rowid, n_bm25 + 1)
        scored.append(
            ScoredChunk(
                chunk=chunk,
                rrf_score=1.0 / (_RRF_K + dr) + 1.0 / (_RRF_K + br),
                dense_rank=dense_rank.get(rowid),
                bm25_rank=bm25_rank.get(rowid),
            )
        )

    scored.sort(key=lambda s: s.rrf_score, reverse=True)
    return scored[:top_k]


def _rank_dense_only(dense_results: list[tuple[Chunk, float]]) -> list[ScoredChunk]:
    return [
        ScoredChunk(chunk=chunk, rrf_score=1.0 / (_RRF_K + i + 1), dense_rank=i + 1)
        for i, (chunk, _) in enumerate(dense_results)
    ]


def _rank_bm25_only(bm25_results: list[tuple[Chunk, float]]) -> list[ScoredChunk]:
    return [
        ScoredChunk(chunk=chunk, rrf_score=1.0 / (_RRF_K + i + 1), bm25_rank=i + 1)
        for i, (chunk, _) in enumerate(bm25_results)
    ]
