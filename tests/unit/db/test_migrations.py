"""Tests for the forward-only migration runner and schema initialization."""

from __future__ import annotations

import sqlite3

import pytest

import cairn.db.migrations as migrations_module
from cairn.db.connection import Database
from cairn.db.migrations import MIGRATIONS, run_migrations
from cairn.db.schema import CURRENT_VERSION, initialize


def _fresh_conn(tmp_path):
    """Open a new connection without running migrations."""
    return Database(tmp_path / "test.db").connect()


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,)
    ).fetchone() is not None


def _table_columns(conn, table: str) -> set[str]:
    return {row["name"] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}


# --- Bootstrap ---

def test_run_migrations_records_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    version = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
    assert version == MIGRATIONS[-1][0] == CURRENT_VERSION
    conn.close()


def test_run_migrations_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    run_migrations(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)
    conn.close()


# --- Tables created ---

def test_creates_relational_tables(tmp_db):
    for table in ("documents", "documents_fts", "projects", "code_skeletons"):
        assert _table_exists(tmp_db, table), table


def test_documents_columns(tmp_db):
    assert _table_columns(tmp_db, "documents") == {
        "id", "file_path", "file_name", "media_type", "content", "chunk_index",
        "thumbnail_path", "metadata", "created_at",
    }


def test_projects_path_is_unique(tmp_db):
    tmp_db.execute("INSERT INTO projects (id, name, path) VALUES ('a', 'x', '/p')")
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute("INSERT INTO projects (id, name, path) VALUES ('b', 'y', '/p')")


def test_migrations_do_not_create_vec_tables(tmp_db):
    rows = tmp_db.execute("SELECT name FROM sqlite_master WHERE name LIKE 'vec_%'").fetchall()
    assert rows == []


# --- Incremental application ---

def test_run_migrations_applies_only_pending(tmp_path, monkeypatch):
    conn = _fresh_conn(tmp_path)
    conn.execute(
        "CREATE TABLE schema_version (version INTEGER NOT NULL, "
        "applied_at DATETIME NOT NULL DEFAULT (datetime('now')))"
    )
    conn.execute("INSERT INTO schema_version (version) VALUES (1)")
    conn.commit()

    monkeypatch.setattr(
        migrations_module,
        "MIGRATIONS",
        [(1, "CREATE TABLE v1_marker (x INTEGER);"), (2, "CREATE TABLE v2_marker (x INTEGER);")],
    )
    run_migrations(conn)

    assert _table_exists(conn, "v2_marker")
    assert not _table_exists(conn, "v1_marker")
    versions = [r[0] for r in conn.execute("SELECT version FROM schema_version ORDER BY version")]
    assert versions == [1, 2]
    conn.close()


def test_initialize_delegates_to_run_migrations(tmp_path):
    conn = _fresh_conn(tmp_path)
    initialize(conn)
    assert _table_exists(conn, "documents")
    conn.close()
