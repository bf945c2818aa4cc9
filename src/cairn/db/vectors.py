"""Per-model sqlite-vec virtual table management.

Each index kind (documents, projects, skeletons) gets its own vec table per
embedding model, keyed by the rowid of the matching relational row.
"""

from __future__ import annotations

import re
import sqlite3

VEC_KINDS: tuple[str, ...] = ("documents", "projects", "skeletons")


def model_to_slug(model: str) -> str:
    """Convert a provider/model string to a valid table name suffix.

    Examples:
        "openai/text-embedding-3-small" -> "openai_text_embedding_3_small"
        "ollama/nomic-embed-text" -> "ollama_nomic_embed_text"
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(kind: str, model_slug: str) -> str:
    """Return the vec table name for an index *kind* and model slug."""
    if kind not in VEC_KINDS:
        raise ValueError(f"Unknown vec table kind '{kind}'. Expected one of {VEC_KINDS}")
    return f"vec_{kind}_{model_slug}"


def ensure_vec_table(
    conn: sqlite3.Connection, kind: str, model_slug: str, dimensions: int
) -> str:
    """Create vec_{kind}_{model_slug} if it doesn't already exist.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        kind: One of VEC_KINDS.
        model_slug: Sanitized model identifier (use model_to_slug()).
        dimensions: Embedding vector dimensions.

    Returns:
        The table name.
    """
    if not re.fullmatch(r"[a-z0-9_]+", model_slug):
        raise ValueError(
            f"Invalid model_slug '{model_slug}', use model_to_slug() to sanitize."
        )
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(kind, model_slug)
    existing = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()

    if existing is None:
        conn.execute(
            f"CREATE VIRTUAL TABLE {table} USING vec0(embedding float[{dimensions}])"
        )
        conn.commit()

    return table


def ensure_vec_tables(
    conn: sqlite3.Connection, model_slug: str, dimensions: int
) -> dict[str, str]:
    """Create all three vec tables for *model_slug*; return {kind: table}."""
    return {
        kind: ensure_vec_table(conn, kind, model_slug, dimensions) for kind in VEC_KINDS
    }
