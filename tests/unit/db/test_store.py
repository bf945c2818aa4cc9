"""Tests for VectorStore: transactions, supersede-on-reingest and search."""

from __future__ import annotations

import threading

import pytest

from cairn.db.models import Chunk, CodeSkeleton
from cairn.errors import PersistenceFailed


def _chunks(path: str, texts: list[str]) -> list[Chunk]:
    return [
        Chunk(content=t, file_path=path, chunk_index=i, metadata='{"chunkIndex": %d}' % i)
        for i, t in enumerate(texts)
    ]


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def test_batch_ids_are_index_aligned(store):
    ids = store.add_text_documents_batch(_chunks("/a.txt", ["one", "two", "three"]))
    assert len(ids) == len(set(ids)) == 3
    docs = store.get_unique_documents()
    assert len(docs) == 1
    assert docs[0].id == ids[0]
    assert docs[0].chunk_ids == ids
    assert docs[0].file_name == "a.txt"
    assert "chunkIndex" not in docs[0].metadata


def test_empty_batch_is_noop(store, embedder):
    assert store.add_text_documents_batch([]) == []
    assert embedder.calls == []


def test_reingest_supersedes_previous_chunks(store):
    store.add_text_documents_batch(_chunks("/a.txt", ["old one", "old two", "old three"]))
    store.add_text_documents_batch(_chunks("/a.txt", ["new"]))
    assert store.get_chunk_count() == 1
    assert store.get_document_count() == 1
    assert store.get_unique_documents()[0].chunk_ids


def test_add_text_document_replaces_same_path(store):
    first = store.add_text_document("caption one", "/img.png", {"mediaType": "image"},
                                    media_type="image")
    second = store.add_text_document("caption two", "/img.png", media_type="image")
    assert first != second
    assert store.get_chunk_count() == 1
    assert store.get_unique_documents()[0].media_type == "image"


def test_delete_document_removes_all_chunks(store):
    ids = store.add_text_documents_batch(_chunks("/a.txt", ["x", "y"]))
    store.add_text_documents_batch(_chunks("/b.txt", ["z"]))
    assert store.delete_document(ids[1]) == 2
    assert store.get_document_count() == 1


def test_delete_unknown_document(store):
    assert store.delete_document("missing") == 0


def test_delete_all_on_empty_store(store):
    assert store.delete_all_documents() == 0
    assert store.get_document_count() == 0


def test_embedding_failure_raises_persistence_failed(store, embedder, monkeypatch):
    def boom(texts):
        raise RuntimeError("provider down")

    monkeypatch.setattr(embedder, "embed", boom)
    with pytest.raises(PersistenceFailed, match="provider down"):
        store.add_text_documents_batch(_chunks("/a.txt", ["x"]))
    assert store.get_chunk_count() == 0


def test_vector_count_mismatch_raises(store, embedder, monkeypatch):
    monkeypatch.setattr(embedder, "embed", lambda texts: [])
    with pytest.raises(PersistenceFailed, match="0 vectors for 1 inputs"):
        store.add_text_document("x", "/a.txt")


def test_failed_write_rolls_back_whole_batch(store, embedder, monkeypatch):
    store.add_text_documents_batch(_chunks("/a.txt", ["keep me"]))
    # Wrong dimensions make the second vec insert fail after the first row landed.
    vectors = iter([[0.1] * 8, [0.1] * 3])
    monkeypatch.setattr(embedder, "embed", lambda texts: [next(vectors) for _ in texts])

    with pytest.raises(PersistenceFailed):
        store.add_text_documents_batch(_chunks("/a.txt", ["new one", "new two"]))

    docs = store.get_unique_documents()
    assert store.get_chunk_count() == 1
    assert docs[0].file_path == "/a.txt"


def test_concurrent_batches_all_land(store):
    def worker(n):
        store.add_text_documents_batch(_chunks(f"/f{n}.txt", [f"text {n} a", f"text {n} b"]))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert store.get_document_count() == 8
    assert store.get_chunk_count() == 16


def test_search_document_text_and_vectors(store):
    store.add_text_documents_batch(_chunks("/a.txt", ["sqlite vector search"]))
    store.add_text_documents_batch(_chunks("/b.txt", ["banana bread recipe"]))
    bm25 = store.search_document_text("banana", 5)
    assert [c.file_path for c, _ in bm25] == ["/b.txt"]
    dense = store.search_documents("banana bread recipe", 1)
    assert dense[0][0].file_path == "/b.txt"
    assert dense[0][1] == pytest.approx(0.0, abs=1e-5)


def test_document_scope_limits_search(store):
    a = store.add_text_documents_batch(_chunks("/a.txt", ["shared words"]))
    store.add_text_documents_batch(_chunks("/b.txt", ["shared words"]))
    scope = store.document_scope([a[0]])
    hits = store.search_document_text("shared", 5, rowids=scope)
    assert [c.file_path for c, _ in hits] == ["/a.txt"]


# ---------------------------------------------------------------------------
# Projects + skeletons
# ---------------------------------------------------------------------------


def test_add_project_and_search(store):
    pid = store.add_project("webapp", "/w", "A web app", ["React"], ["frontend"], {}, 12)
    store.add_project("crate", "/c", "A rust crate", ["Rust"], ["cli"], {}, 3)
    project = store.get_project(pid)
    assert project.file_count == 12
    assert store.get_project_by_path("/w").id == pid
    hits = store.search_projects("webapp", limit=2)
    assert len(hits) == 2


def test_duplicate_project_path_raises(store):
    store.add_project("a", "/same")
    with pytest.raises(PersistenceFailed):
        store.add_project("b", "/same")
    assert len(store.list_projects()) == 1


def test_delete_project_cascades(store):
    pid = store.add_project("a", "/a")
    store.add_code_skeletons_batch(
        [CodeSkeleton(project_id=pid, file_path="x.py", content="def x", language="python")]
    )
    assert store.count_skeletons(pid) == 1
    assert store.delete_project(pid) is True
    assert store.count_skeletons() == 0
    assert store.search_skeletons("def x", 5) == []


def test_search_skeletons_filtered_by_project(store):
    p1 = store.add_project("a", "/a")
    p2 = store.add_project("b", "/b")
    store.add_code_skeletons_batch([
        CodeSkeleton(project_id=p1, file_path="a.py", content="def handler", language="python"),
        CodeSkeleton(project_id=p2, file_path="b.py", content="def handler", language="python"),
    ])
    hits = store.search_skeletons("def handler", 10, project_id=p2)
    assert [s.project_id for s, _ in hits] == [p2]
