"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
import json
import logging
from unittest.mock import patch

import pytest

from cairn.config import CairnConfig
from cairn.db.connection import Database
from cairn.db.schema import initialize
from cairn.db.store import VectorStore

FAKE_DIMENSIONS = 8


class FakeEmbedder:
    """Deterministic bag-of-words embedder: each word bumps one of 8 buckets."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [_vector(t) for t in texts]


def _vector(text: str) -> list[float]:
    vec = [0.0] * FAKE_DIMENSIONS
    for word in text.lower().split():
        bucket = hashlib.md5(word.encode()).digest()[0] % FAKE_DIMENSIONS
        vec[bucket] += 1.0
    norm = sum(v * v for v in vec) ** 0.5 or 1.0
    return [v / norm for v in vec]


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "cairn.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def store(tmp_db, embedder):
    """VectorStore over a fresh database with the fake embedder."""
    return VectorStore(tmp_db, embedder, "fake", FAKE_DIMENSIONS)


@pytest.fixture
def node_project(tmp_path):
    """A small TypeScript/React codebase on disk."""
    root = tmp_path / "webapp"
    (root / "src" / "components").mkdir(parents=True)
    (root / "src" / "api").mkdir(parents=True)
    (root / "node_modules" / "react").mkdir(parents=True)
    (root / "package.json").write_text(
        json.dumps(
            {
                "name": "webapp",
                "version": "1.2.0",
                "description": "Demo web app",
                "dependencies": {"react": "^18.0.0", "express": "^4.0.0"},
                "devDependencies": {"typescript": "^5.0.0"},
                "scripts": {"build": "tsc"},
            }
        )
    )
    (root / "tsconfig.json").write_text("{}")
    (root / "README.md").write_text("# Webapp\n\nA demo web app.\n")
    (root / "src" / "index.ts").write_text(
        "import { App } from './components/App';\n"
        "export function main(): void {\n  App();\n}\n"
    )
    (root / "src" / "components" / "App.tsx").write_text(
        "export const App = () => {\n  return null;\n};\n"
        "export interface AppProps {\n  title: string;\n}\n"
    )
    (root / "src" / "api" / "routes.ts").write_text(
        "export async function listUsers(req, res) {\n  res.send([]);\n}\n"
    )
    (root / "src" / "api" / "routes.test.ts").write_text(
        "export function testListUsers() {}\n"
    )
    (root / "node_modules" / "react" / "index.js").write_text("export function x() {}\n")
    return root


@pytest.fixture
def rust_project(tmp_path):
    """A Cargo-only codebase."""
    root = tmp_path / "crate"
    (root / "src").mkdir(parents=True)
    (root / "Cargo.toml").write_text(
        '[package]\nname = "crate"\nversion = "0.1.0"\n\n[dependencies]\nserde = "1"\n'
    )
    (root / "src" / "main.rs").write_text(
        "pub struct Config {\n    name: String,\n}\n\nfn main() {\n}\n"
    )
    return root


@pytest.fixture(autouse=True)
def _reset_cairn_logger():
    """CLI tests attach a rich handler and stop propagation; undo that."""
    yield
    logger = logging.getLogger("cairn")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def cli_config(tmp_path):
    """Config seen by CLI commands: local model names, fake embedder, db in tmp_path."""
    cfg = CairnConfig()
    cfg.database.path = str(tmp_path / "cli.db")
    cfg.embedding.model = "ollama/nomic-embed-text"
    cfg.embedding.dimensions = FAKE_DIMENSIONS
    cfg.generation.model = "ollama/llama3"
    with (
        patch("cairn.cli.common.load_config", return_value=cfg),
        patch("cairn.cli.common.Embedder", side_effect=lambda *a, **kw: FakeEmbedder()),
    ):
        yield cfg
