"""Tests for hybrid document retrieval (dense + BM25 fused with RRF)."""

from __future__ import annotations

import pytest

from cairn.db.models import Chunk
from cairn.rag.retriever import _RRF_K, _rrf_fuse, retrieve_documents


def _chunk(rowid: int, path: str = "/a.txt") -> Chunk:
    return Chunk(content=f"c{rowid}", file_path=path, rowid=rowid, id=f"id{rowid}")


def _add(store, path: str, texts: list[str]) -> list[str]:
    return store.add_text_documents_batch(
        [Chunk(content=t, file_path=path, chunk_index=i) for i, t in enumerate(texts)]
    )


# ------------------------------------------------------------------
# _rrf_fuse
# ------------------------------------------------------------------


def test_rrf_fuse_rewards_agreement():
    a, b, c = _chunk(1), _chunk(2), _chunk(3)
    fused = _rrf_fuse([(a, 0.1), (b, 0.2)], [(a, -5.0), (c, -1.0)], top_k=10)
    assert fused[0].chunk is a
    assert fused[0].dense_rank == 1 and fused[0].bm25_rank == 1
    assert fused[0].rrf_score == pytest.approx(2 / (_RRF_K + 1))


def test_rrf_fuse_missing_channel_ranks_past_end():
    a, b = _chunk(1), _chunk(2)
    fused = _rrf_fuse([(a, 0.1)], [(b, -1.0)], top_k=10)
    by_rowid = {s.chunk.rowid: s for s in fused}
    assert by_rowid[1].bm25_rank is None
    assert by_rowid[1].rrf_score == pytest.approx(1 / (_RRF_K + 1) + 1 / (_RRF_K + 2))


def test_rrf_fuse_truncates_to_top_k():
    dense = [(_chunk(i), 0.0) for i in range(1, 6)]
    assert len(_rrf_fuse(dense, [], top_k=2)) == 2


# ------------------------------------------------------------------
# retrieve_documents
# ------------------------------------------------------------------


def test_retrieve_hybrid_finds_matching_chunk(store):
    _add(store, "/cooking.txt", ["banana bread recipe with walnuts"])
    _add(store, "/db.txt", ["sqlite stores vectors in virtual tables"])
    results = retrieve_documents(store, "banana bread", top_k=5)
    assert results[0].chunk.file_path == "/cooking.txt"
    assert results[0].bm25_rank == 1


def test_retrieve_bm25_mode_skips_embedding(store, embedder):
    _add(store, "/a.txt", ["alpha beta"])
    calls_before = len(embedder.calls)
    results = retrieve_documents(store, "alpha", mode="bm25")
    assert len(embedder.calls) == calls_before
    assert [r.chunk.file_path for r in results] == ["/a.txt"]


def test_retrieve_dense_mode(store):
    _add(store, "/a.txt", ["alpha beta"])
    results = retrieve_documents(store, "alpha beta", mode="dense")
    assert results[0].dense_rank == 1
    assert results[0].bm25_rank is None


def test_retrieve_restricted_to_document_ids(store):
    a = _add(store, "/a.txt", ["shared topic one", "shared topic two"])
    _add(store, "/b.txt", ["shared topic three"])
    results = retrieve_documents(store, "shared topic", document_ids=[a[0]])
    assert {r.chunk.file_path for r in results} == {"/a.txt"}
    assert len(results) == 2


def test_retrieve_unknown_document_ids_returns_empty(store):
    _add(store, "/a.txt", ["text"])
    assert retrieve_documents(store, "text", document_ids=["nope"]) == []


def test_retrieve_unknown_mode_raises(store):
    with pytest.raises(ValueError, match="Unknown retrieval mode"):
        retrieve_documents(store, "x", mode="sparse")
