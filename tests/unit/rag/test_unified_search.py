"""Tests for UnifiedSearch across documents, projects and skeletons."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from cairn.db.models import Chunk, CodeSkeleton
from cairn.rag.search import SearchOptions, UnifiedSearch


@pytest.fixture
def populated(store):
    store.add_text_documents_batch([
        Chunk(content="deploy the api server with docker", file_path="/notes/deploy.md",
              chunk_index=0),
        Chunk(content="docker compose file for the api", file_path="/notes/deploy.md",
              chunk_index=1),
        Chunk(content="grocery list bananas", file_path="/notes/food.md"),
    ])
    pid = store.add_project("api", "/code/api", "REST api server", ["Python"], ["api"])
    store.add_code_skeletons_batch([
        CodeSkeleton(project_id=pid, file_path="server.py", content="def start_server",
                     language="python"),
    ])
    return store, pid


def test_search_returns_all_three_kinds(populated):
    store, pid = populated
    results = UnifiedSearch(store).search("api server docker")
    assert results.errors == {}
    assert results.documents and results.projects and results.skeletons
    assert results.total == len(results.documents) + len(results.projects) + len(
        results.skeletons
    )
    assert results.skeletons[0].project_name == "api"


def test_documents_deduplicated_by_file_path(populated):
    store, _ = populated
    results = UnifiedSearch(store).search("docker api")
    paths = [d.file_path for d in results.documents]
    assert len(paths) == len(set(paths))
    assert all(0 < d.score for d in results.documents)


def test_scores_sorted_descending(populated):
    store, _ = populated
    results = UnifiedSearch(store).search("api")
    for hits in (results.documents, results.projects, results.skeletons):
        scores = [h.score for h in hits]
        assert scores == sorted(scores, reverse=True)
    assert all(0 < p.score <= 1 for p in results.projects)


def test_limits_respected(populated):
    store, _ = populated
    opts = SearchOptions(project_limit=0, code_limit=1, document_limit=1)
    results = UnifiedSearch(store).search("api", opts)
    assert results.projects == []
    assert len(results.documents) <= 1
    assert len(results.skeletons) <= 1


def test_document_scope_skips_projects_and_skeletons(populated):
    store, _ = populated
    doc_id = store.get_unique_documents()[1].id
    results = UnifiedSearch(store).search("bananas", SearchOptions(document_scope=[doc_id]))
    assert results.projects == [] and results.skeletons == []
    assert [d.file_path for d in results.documents] == ["/notes/food.md"]


def test_project_id_skips_project_search(populated):
    store, pid = populated
    with patch.object(store, "search_projects") as search_projects:
        results = UnifiedSearch(store).search("server", SearchOptions(project_id=pid))
    search_projects.assert_not_called()
    assert all(s.project_id == pid for s in results.skeletons)


def test_partial_failure_keeps_other_results(populated):
    store, _ = populated
    with patch.object(store, "search_projects", side_effect=RuntimeError("vec down")):
        results = UnifiedSearch(store).search("api")
    assert results.errors == {"projects": "vec down"}
    assert results.documents
    assert results.skeletons


def test_missing_project_gives_empty_name(populated):
    store, _ = populated
    with patch.object(store, "get_project", return_value=None):
        results = UnifiedSearch(store).search("start server")
    assert results.skeletons
    assert results.skeletons[0].project_name == ""


def test_empty_store_returns_nothing(store):
    results = UnifiedSearch(store).search("anything")
    assert results.total == 0
    assert results.errors == {}
