"""Cairn database layer."""

from cairn.db.connection import Database
from cairn.db.migrations import MIGRATIONS, run_migrations
from cairn.db.schema import initialize
from cairn.db.store import VectorStore
from cairn.db.vectors import ensure_vec_table, ensure_vec_tables, model_to_slug, vec_table_name

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "VectorStore",
    "ensure_vec_table",
    "ensure_vec_tables",
    "model_to_slug",
    "vec_table_name",
]
