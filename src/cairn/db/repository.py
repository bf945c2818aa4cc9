"""Repository pattern for all Cairn database operations.

Single interface for: document chunks, FTS5 search, vec embeddings, projects
and code skeletons. Methods never commit: transaction boundaries belong to the
caller (see VectorStore), so one logical write lands or rolls back as a unit.
"""

from __future__ import annotations

import json
import re
import sqlite3

from cairn.db.models import Chunk, CodeSkeleton, Project

_CHUNK_COLUMNS = (
    "rowid, id, file_path, file_name, media_type, content, chunk_index, "
    "thumbnail_path, metadata, created_at"
)
_PROJECT_COLUMNS = (
    "rowid, id, name, path, description, tech_stack, tags, manifest, file_count, created_at"
)
_SKELETON_COLUMNS = "rowid, id, project_id, file_path, content, language, created_at"


class Repository:
    """Data access layer for all Cairn database entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see cairn.db.schema.initialize).
        """
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Document chunks
    # ------------------------------------------------------------------

    def add_chunk(self, chunk: Chunk) -> int:
        """Insert chunk + sync FTS5 index. Returns the new rowid."""
        cur = self._conn.execute(
            """
            INSERT INTO documents
                (id, file_path, file_name, media_type, content, chunk_index,
                 thumbnail_path, metadata)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                chunk.id,
                chunk.file_path,
                chunk.file_name,
                chunk.media_type,
                chunk.content,
                chunk.chunk_index,
                chunk.thumbnail_path,
                chunk.metadata,
            ),
        )
        rowid = cur.lastrowid
        self._conn.execute(
            "INSERT INTO documents_fts(rowid, content) VALUES (?, ?)",
            (rowid, chunk.content),
        )
        return rowid

    def get_chunk(self, chunk_id: str) -> Chunk | None:
        row = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM documents WHERE id = ?", (chunk_id,)
        ).fetchone()
        return _row_to_chunk(row) if row else None

    def get_chunk_by_rowid(self, rowid: int) -> Chunk | None:
        row = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM documents WHERE rowid = ?", (rowid,)
        ).fetchone()
        return _row_to_chunk(row) if row else None

    def list_chunks(self) -> list[Chunk]:
        """Return every chunk in insertion order."""
        rows = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM documents ORDER BY rowid"
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def chunk_rowids_by_path(self, file_path: str) -> list[int]:
        return [
            r[0]
            for r in self._conn.execute(
                "SELECT rowid FROM documents WHERE file_path = ? ORDER BY rowid",
                (file_path,),
            ).fetchall()
        ]

    def chunk_rowids_for_documents(self, chunk_ids: list[str]) -> list[int]:
        """Return rowids of every chunk belonging to the same files as *chunk_ids*."""
        if not chunk_ids:
            return []
        placeholders = ",".join("?" * len(chunk_ids))
        rows = self._conn.execute(
            f"""
            SELECT rowid FROM documents WHERE file_path IN (
                SELECT file_path FROM documents WHERE id IN ({placeholders})
            ) ORDER BY rowid
            """,
            chunk_ids,
        ).fetchall()
        return [r[0] for r in rows]

    def count_chunks(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]

    def count_documents(self) -> int:
        """Number of distinct files in the document index."""
        return self._conn.execute(
            "SELECT COUNT(DISTINCT file_path) FROM documents"
        ).fetchone()[0]

    def delete_chunks_by_path(self, file_path: str, vec_table: str) -> int:
        """Delete chunks, FTS rows and embeddings for one file. Returns rows deleted."""
        rowids = self.chunk_rowids_by_path(file_path)
        if not rowids:
            return 0
        self._delete_chunk_rowids(rowids, vec_table)
        return len(rowids)

    def delete_all_chunks(self, vec_table: str) -> int:
        count = self.count_chunks()
        self._conn.execute(f"DELETE FROM {vec_table}")
        self._conn.execute("DELETE FROM documents_fts")
        self._conn.execute("DELETE FROM documents")
        return count

    def _delete_chunk_rowids(self, rowids: list[int], vec_table: str) -> None:
        placeholders = ",".join("?" * len(rowids))
        self._conn.execute(
            f"DELETE FROM {vec_table} WHERE rowid IN ({placeholders})", rowids
        )
        self._conn.execute(
            f"DELETE FROM documents_fts WHERE rowid IN ({placeholders})", rowids
        )
        self._conn.execute(
            f"DELETE FROM documents WHERE rowid IN ({placeholders})", rowids
        )

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def add_project(self, project: Project) -> int:
        cur = self._conn.execute(
            """
            INSERT INTO projects
                (id, name, path, description, tech_stack, tags, manifest, file_count)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                project.id,
                project.name,
                project.path,
                project.description,
                json.dumps(project.tech_stack),
                json.dumps(project.tags),
                json.dumps(project.manifest),
                project.file_count,
            ),
        )
        return cur.lastrowid

    def get_project(self, project_id: str) -> Project | None:
        row = self._conn.execute(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE id = ?", (project_id,)
        ).fetchone()
        return _row_to_project(row) if row else None

    def get_project_by_path(self, path: str) -> Project | None:
        row = self._conn.execute(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE path = ?", (path,)
        ).fetchone()
        return _row_to_project(row) if row else None

    def get_project_by_rowid(self, rowid: int) -> Project | None:
        row = self._conn.execute(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE rowid = ?", (rowid,)
        ).fetchone()
        return _row_to_project(row) if row else None

    def list_projects(self) -> list[Project]:
        rows = self._conn.execute(
            f"SELECT {_PROJECT_COLUMNS} FROM projects ORDER BY created_at, rowid"
        ).fetchall()
        return [_row_to_project(r) for r in rows]

    def delete_project(
        self, project_id: str, project_vec_table: str, skeleton_vec_table: str
    ) -> bool:
        """Delete a project, its skeletons and every related embedding.

        The skeleton rows themselves go via ON DELETE CASCADE; vec rows have no
        foreign keys and are removed explicitly first.
        """
        project = self.get_project(project_id)
        if project is None:
            return False

        skeleton_rowids = self.skeleton_rowids_by_project(project_id)
        if skeleton_rowids:
            placeholders = ",".join("?" * len(skeleton_rowids))
            self._conn.execute(
                f"DELETE FROM {skeleton_vec_table} WHERE rowid IN ({placeholders})",
                skeleton_rowids,
            )
        self._conn.execute(
            f"DELETE FROM {project_vec_table} WHERE rowid = ?", (project.rowid,)
        )
        self._conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        return True

    # ------------------------------------------------------------------
    # Code skeletons
    # ------------------------------------------------------------------

    def add_skeleton(self, skeleton: CodeSkeleton) -> int:
        cur = self._conn.execute(
            """
            INSERT INTO code_skeletons (id, project_id, file_path, content, language)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                skeleton.id,
                skeleton.project_id,
                skeleton.file_path,
                skeleton.content,
                skeleton.language,
            ),
        )
        return cur.lastrowid

    def get_skeleton_by_rowid(self, rowid: int) -> CodeSkeleton | None:
        row = self._conn.execute(
            f"SELECT {_SKELETON_COLUMNS} FROM code_skeletons WHERE rowid = ?", (rowid,)
        ).fetchone()
        return _row_to_skeleton(row) if row else None

    def skeletons_by_project(self, project_id: str) -> list[CodeSkeleton]:
        rows = self._conn.execute(
            f"SELECT {_SKELETON_COLUMNS} FROM code_skeletons WHERE project_id = ? ORDER BY rowid",
            (project_id,),
        ).fetchall()
        return [_row_to_skeleton(r) for r in rows]

    def skeleton_rowids_by_project(self, project_id: str) -> list[int]:
        return [
            r[0]
            for r in self._conn.execute(
                "SELECT rowid FROM code_skeletons WHERE project_id = ?", (project_id,)
            ).fetchall()
        ]

    def count_skeletons(self, project_id: str | None = None) -> int:
        if project_id is None:
            return self._conn.execute("SELECT COUNT(*) FROM code_skeletons").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM code_skeletons WHERE project_id = ?", (project_id,)
        ).fetchone()[0]

    # ------------------------------------------------------------------
    # Vec embeddings
    # ------------------------------------------------------------------

    def add_embedding(self, table: str, rowid: int, embedding: list[float]) -> None:
        """Insert an embedding into a vec table with explicit rowid."""
        self._conn.execute(
            f"INSERT INTO {table}(rowid, embedding) VALUES (?, ?)",
            (rowid, json.dumps(embedding)),
        )

    def search_vec(
        self,
        table: str,
        embedding: list[float],
        limit: int = 10,
        rowids: list[int] | None = None,
    ) -> list[tuple[int, float]]:
        """Nearest-neighbour search. Returns (rowid, distance) sorted by distance.

        With *rowids*, distances are computed only over that subset.
        """
        if limit <= 0:
            return []
        payload = json.dumps(embedding)
        if rowids is None:
            # k = ? rather than LIMIT: LIMIT pushdown into vec0 needs SQLite 3.41+.
            rows = self._conn.execute(
                f"SELECT rowid, distance FROM {table} WHERE embedding MATCH ? AND k = ? ORDER BY distance",
                (payload, limit),
            ).fetchall()
        else:
            if not rowids:
                return []
            placeholders = ",".join("?" * len(rowids))
            rows = self._conn.execute(
                f"""
                SELECT rowid, vec_distance_l2(embedding, ?) AS distance
                FROM {table} WHERE rowid IN ({placeholders})
                ORDER BY distance LIMIT ?
                """,
                [payload, *rowids, limit],
            ).fetchall()
        return [(r["rowid"], r["distance"]) for r in rows]

    # ------------------------------------------------------------------
    # FTS5 / BM25 search
    # ------------------------------------------------------------------

    def search_fts(
        self, query: str, limit: int = 10, rowids: list[int] | None = None
    ) -> list[tuple[int, float]]:
        """BM25 full-text search over document chunks. Returns (rowid, score) best-first.

        bm25() returns negative values; lower (more negative) = better match.
        """
        # FTS5 MATCH rejects punctuation; keep word characters only and OR the terms.
        terms = re.sub(r"[^\w\s]", " ", query).split()
        if not terms:
            return []
        fts_query = " OR ".join(f'"{t}"' for t in terms)

        sql = "SELECT rowid, bm25(documents_fts) AS score FROM documents_fts WHERE documents_fts MATCH ?"
        params: list[object] = [fts_query]
        if rowids is not None:
            if not rowids:
                return []
            sql += f" AND rowid IN ({','.join('?' * len(rowids))})"
            params.extend(rowids)
        sql += " ORDER BY score LIMIT ?"
        params.append(limit)

        rows = self._conn.execute(sql, params).fetchall()
        return [(r["rowid"], r["score"]) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        rowid=row["rowid"],
        id=row["id"],
        file_path=row["file_path"],
        file_name=row["file_name"],
        media_type=row["media_type"],
        content=row["content"],
        chunk_index=row["chunk_index"],
        thumbnail_path=row["thumbnail_path"],
        metadata=row["metadata"],
        created_at=row["created_at"],
    )


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        rowid=row["rowid"],
        id=row["id"],
        name=row["name"],
        path=row["path"],
        description=row["description"],
        tech_stack=json.loads(row["tech_stack"]),
        tags=json.loads(row["tags"]),
        manifest=json.loads(row["manifest"]),
        file_count=row["file_count"],
        created_at=row["created_at"],
    )


def _row_to_skeleton(row: sqlite3.Row) -> CodeSkeleton:
    return CodeSkeleton(
        rowid=row["rowid"],
        id=row["id"],
        project_id=row["project_id"],
        file_path=row["file_path"],
        content=row["content"],
        language=row["language"],
        created_at=row["created_at"],
    )
