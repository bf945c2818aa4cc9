"""Tests for the cairn config loader."""

from __future__ import annotations

import stat
import warnings
from pathlib import Path

import pytest
import yaml

from cairn.config import MAX_FILE_BYTES, ConfigError, ensure_global_config, load_config


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    for var in ("CAIRN_EMBEDDING_MODEL", "CAIRN_GENERATION_MODEL", "CAIRN_DB"):
        monkeypatch.delenv(var, raising=False)


# ---------------------------------------------------------------------------
# Defaults: no config files present
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    cfg = load_config(tmp_path, global_config_path=tmp_path / "missing" / "config.yaml")

    assert cfg.embedding.model == "openai/text-embedding-3-small"
    assert cfg.embedding.dimensions == 1536
    assert cfg.ingest.concurrency == 10
    assert cfg.ingest.max_file_bytes == MAX_FILE_BYTES
    assert cfg.captioning.retries == 2
    assert cfg.captioning.retry_delay == 2.0
    assert cfg.projects.max_depth == 4
    assert cfg.projects.max_files == 5000
    assert cfg.search.project_limit == 5
    assert cfg.search.code_limit == 10
    assert cfg.search.document_limit == 10


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_local_overrides_global(tmp_path: Path) -> None:
    global_path = tmp_path / "home" / "config.yaml"
    _write_yaml(global_path, {"embedding": {"model": "openai/a", "dimensions": 256}})
    _write_yaml(tmp_path / "cairn.yaml", {"embedding": {"model": "ollama/b"}})

    cfg = load_config(tmp_path, global_config_path=global_path)

    assert cfg.embedding.model == "ollama/b"
    assert cfg.embedding.dimensions == 256


def test_env_overrides_files(tmp_path: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "cairn.yaml", {"database": {"path": "/from/yaml.db"}})
    monkeypatch.setenv("CAIRN_DB", "/from/env.db")
    monkeypatch.setenv("CAIRN_GENERATION_MODEL", "anthropic/claude-x")

    cfg = load_config(tmp_path, global_config_path=tmp_path / "none.yaml")

    assert cfg.database.path == "/from/env.db"
    assert cfg.generation.model == "anthropic/claude-x"


def test_projects_and_search_sections(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "cairn.yaml",
        {"projects": {"max_files": 50, "skeleton_max_files": 7}, "search": {"code_limit": 3}},
    )
    cfg = load_config(tmp_path, global_config_path=tmp_path / "none.yaml")
    assert cfg.projects.max_files == 50
    assert cfg.projects.skeleton_max_files == 7
    assert cfg.projects.max_depth == 4
    assert cfg.search.code_limit == 3


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("key", ["api_key", "openai_api_key", "token", "password"])
def test_global_config_rejects_api_keys(tmp_path: Path, key: str) -> None:
    global_path = tmp_path / "config.yaml"
    _write_yaml(global_path, {"embedding": {key: "sk-123"}})
    with pytest.raises(ConfigError, match="forbidden key"):
        load_config(tmp_path / "proj", global_config_path=global_path)


def test_batch_size_is_not_mistaken_for_secret(tmp_path: Path) -> None:
    global_path = tmp_path / "config.yaml"
    _write_yaml(global_path, {"embedding": {"batch_size": 16}})
    cfg = load_config(tmp_path / "proj", global_config_path=global_path)
    assert cfg.embedding.batch_size == 16


def test_unknown_section_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "cairn.yaml", {"retrieval": {"top_k": 3}})
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        load_config(tmp_path, global_config_path=tmp_path / "none.yaml")
    assert any("retrieval" in str(w.message) for w in caught)


@pytest.mark.parametrize("concurrency", [0, 51])
def test_concurrency_out_of_range(tmp_path: Path, concurrency: int) -> None:
    _write_yaml(tmp_path / "cairn.yaml", {"ingest": {"concurrency": concurrency}})
    with pytest.raises(ConfigError, match="concurrency"):
        load_config(tmp_path, global_config_path=tmp_path / "none.yaml")


def test_max_file_bytes_capped(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "cairn.yaml", {"ingest": {"max_file_bytes": MAX_FILE_BYTES + 1}})
    with pytest.raises(ConfigError, match="1 GiB"):
        load_config(tmp_path, global_config_path=tmp_path / "none.yaml")


def test_empty_yaml_file_is_defaults(tmp_path: Path) -> None:
    (tmp_path / "cairn.yaml").write_text("", encoding="utf-8")
    cfg = load_config(tmp_path, global_config_path=tmp_path / "none.yaml")
    assert cfg.search.document_limit == 10


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_private_file(tmp_path: Path) -> None:
    target = tmp_path / ".cairn" / "config.yaml"
    path = ensure_global_config(target)

    assert path == target
    assert stat.S_IMODE(target.stat().st_mode) == 0o600
    data = yaml.safe_load(target.read_text())
    assert data["embedding"]["model"] == "openai/text-embedding-3-small"
    load_config(tmp_path, global_config_path=target)


def test_ensure_global_config_keeps_existing(tmp_path: Path) -> None:
    target = tmp_path / "config.yaml"
    target.write_text("embedding:\n  model: mine\n", encoding="utf-8")
    ensure_global_config(target)
    assert "mine" in target.read_text()
