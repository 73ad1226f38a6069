"""SQLite-backed chunk store with vector and lexical search.

Embeddings are stored as float32 blobs next to the chunk text. When no
embedding backend is available the store runs in fallback mode and answers
searches by term matching instead.
"""

from __future__ import annotations

import logging
import math
import re
import sqlite3
from pathlib import Path
from typing import Any

import numpy as np

from contextos.config import EmbeddingConfig
from contextos.embedding.embedder import Embedder, load_embedder
from contextos.embedding.models import ChunkKind, ChunkPage, CodeChunk, SimilarityResult
from contextos.exceptions import StoreNotInitializedError

logger = logging.getLogger("contextos.store")

VECTOR_PAGE_SIZE = 1000
MAX_QUERY_LENGTH = 1000


def cosine_similarity(a: np.ndarray | list[float], b: np.ndarray | list[float]) -> float:
    """Cosine similarity, or 0.0 for mismatched lengths or zero vectors."""
    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    if va.shape != vb.shape:
        return 0.0
    denom = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


class SimilarityStore:
    """Chunk storage and similarity search over one SQLite file.

    Args:
        db_path: Location of the SQLite database.
        embedder: Backend to use. When omitted, ``initialize()`` loads one
            from ``config``; if that fails the store runs in fallback mode.
        config: Embedding configuration used to load the backend.
    """

    def __init__(
        self,
        db_path: str | Path,
        embedder: Embedder | None = None,
        config: EmbeddingConfig | None = None,
    ) -> None:
        self.db_path = Path(db_path)
        self.embedder = embedder
        self.config = config or EmbeddingConfig()
        self._conn: sqlite3.Connection | None = None

    @property
    def fallback_mode(self) -> bool:
        return self.embedder is None

    def initialize(self) -> None:
        """Open the database and load the embedder. Safe to call twice."""
        if self._conn is not None:
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS chunks (
                id TEXT PRIMARY KEY,
                file_path TEXT NOT NULL,
                content TEXT NOT NULL,
                start_line INTEGER NOT NULL,
                end_line INTEGER NOT NULL,
                content_hash TEXT NOT NULL,
                kind TEXT NOT NULL,
                embedding BLOB,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_chunks_file_path ON chunks(file_path);
            CREATE INDEX IF NOT EXISTS idx_chunks_hash ON chunks(content_hash);
        """)
        self._conn.commit()

        if self.embedder is None:
            self.embedder = load_embedder(self.config)
        if self.embedder is None:
            logger.warning(
                "No embedding backend available (provider=%s); "
                "search will use lexical matching",
                self.config.provider,
            )

    def _get_conn(self, operation: str) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreNotInitializedError(operation)
        return self._conn

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------

    def embed(self, text: str) -> np.ndarray | None:
        """Embed `text`, or None in fallback mode or on backend failure."""
        if self.embedder is None:
            return None
        try:
            return np.asarray(self.embedder.embed(text), dtype=np.float32)
        except Exception as e:
            logger.warning("Embedding failed, continuing without a vector: %s", e)
            return None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_chunk(self, chunk: CodeChunk) -> bool:
        """Store `chunk` unless the same id and hash are already stored.

        A stored row without an embedding is rewritten once an embedder is
        available. Returns True when the chunk was written.
        """
        conn = self._get_conn("add_chunk")
        existing = conn.execute(
            "SELECT 1 FROM chunks WHERE id = ? AND content_hash = ?"
            " AND (embedding IS NOT NULL OR ?)",
            (chunk.id, chunk.content_hash, self.embedder is None),
        ).fetchone()
        if existing:
            return False

        vector = self.embed(chunk.content)
        blob = vector.tobytes() if vector is not None else None
        conn.execute(
            """INSERT INTO chunks
            (id, file_path, content, start_line, end_line, content_hash, kind, embedding)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                file_path = excluded.file_path,
                content = excluded.content,
                start_line = excluded.start_line,
                end_line = excluded.end_line,
                content_hash = excluded.content_hash,
                kind = excluded.kind,
                embedding = excluded.embedding,
                updated_at = CURRENT_TIMESTAMP""",
            (
                chunk.id,
                chunk.file_path,
                chunk.content,
                chunk.start_line,
                chunk.end_line,
                chunk.content_hash,
                chunk.kind.value,
                blob,
            ),
        )
        conn.commit()
        return True

    def add_chunks(self, chunks: list[CodeChunk]) -> int:
        """Store several chunks; returns how many were written."""
        return sum(1 for chunk in chunks if self.add_chunk(chunk))

    def sync_file(self, file_path: str, chunks: list[CodeChunk]) -> int:
        """Make the stored chunks of `file_path` match `chunks` exactly."""
        conn = self._get_conn("sync_file")
        written = self.add_chunks(chunks)
        keep = [chunk.id for chunk in chunks]
        if keep:
            placeholders = ",".join("?" * len(keep))
            conn.execute(
                f"DELETE FROM chunks WHERE file_path = ? AND id NOT IN ({placeholders})",  # noqa: S608
                [file_path, *keep],
            )
        else:
            conn.execute("DELETE FROM chunks WHERE file_path = ?", (file_path,))
        conn.commit()
        return written

    def remove_file(self, file_path: str) -> None:
        conn = self._get_conn("remove_file")
        conn.execute("DELETE FROM chunks WHERE file_path = ?", (file_path,))
        conn.commit()

    def clear(self) -> None:
        conn = self._get_conn("clear")
        conn.execute("DELETE FROM chunks")
        conn.commit()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query: str, limit: int = 10) -> list[SimilarityResult]:
        """Return the `limit` chunks most similar to `query`, best first."""
        self._get_conn("search")
        query_vector = self.embed(query)
        if query_vector is not None:
            return self._vector_search(query_vector, limit)
        return self._lexical_search(query, limit)

    def _iter_pages(self, sql: str):
        conn = self._get_conn("search")
        offset = 0
        while True:
            rows = conn.execute(sql, (VECTOR_PAGE_SIZE, offset)).fetchall()
            if not rows:
                return
            yield rows
            if len(rows) < VECTOR_PAGE_SIZE:
                return
            offset += VECTOR_PAGE_SIZE

    def _vector_search(self, query_vector: np.ndarray, limit: int) -> list[SimilarityResult]:
        results: list[SimilarityResult] = []
        for rows in self._iter_pages(
            """SELECT id, file_path, content, start_line, end_line, embedding
               FROM chunks WHERE embedding IS NOT NULL
               ORDER BY rowid LIMIT ? OFFSET ?"""
        ):
            for row in rows:
                vector = np.frombuffer(row["embedding"], dtype=np.float32)
                results.append(_to_result(row, cosine_similarity(query_vector, vector)))
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    def _lexical_search(self, query: str, limit: int) -> list[SimilarityResult]:
        terms = query[:MAX_QUERY_LENGTH].lower().split()
        if not terms:
            return []
        patterns = [re.compile(re.escape(term)) for term in terms]

        results: list[SimilarityResult] = []
        for rows in self._iter_pages(
            """SELECT id, file_path, content, start_line, end_line
               FROM chunks ORDER BY rowid LIMIT ? OFFSET ?"""
        ):
            for row in rows:
                content = row["content"].lower()
                matches = sum(len(p.findall(content)) for p in patterns)
                score = min(1.0, matches / (len(terms) * 2))
                if score > 0:
                    results.append(_to_result(row, score))
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_file_chunks(self, file_path: str) -> list[CodeChunk]:
        conn = self._get_conn("get_file_chunks")
        rows = conn.execute(
            """SELECT id, file_path, content, start_line, end_line, content_hash, kind
               FROM chunks WHERE file_path = ? ORDER BY start_line""",
            (file_path,),
        ).fetchall()
        return [_to_chunk(row) for row in rows]

    def get_chunks_paginated(self, page: int = 0, page_size: int = 100) -> ChunkPage:
        """One page of stored chunks ordered by file and line."""
        conn = self._get_conn("get_chunks_paginated")
        if page < 0 or page_size <= 0:
            raise ValueError("page must be >= 0 and page_size > 0")
        total = conn.execute("SELECT COUNT(*) AS cnt FROM chunks").fetchone()["cnt"]
        rows = conn.execute(
            """SELECT id, file_path, content, start_line, end_line, content_hash, kind
               FROM chunks ORDER BY file_path, start_line LIMIT ? OFFSET ?""",
            (page_size, page * page_size),
        ).fetchall()
        chunks = [_to_chunk(row) for row in rows]
        return ChunkPage(
            chunks=chunks,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size),
            has_more=page * page_size + len(chunks) < total,
        )

    def get_indexed_files(self) -> list[str]:
        conn = self._get_conn("get_indexed_files")
        rows = conn.execute("SELECT DISTINCT file_path FROM chunks ORDER BY file_path").fetchall()
        return [row["file_path"] for row in rows]

    def get_stats(self) -> dict[str, Any]:
        conn = self._get_conn("get_stats")
        row = conn.execute(
            """SELECT COUNT(*) AS chunk_count,
                      COUNT(DISTINCT file_path) AS file_count,
                      SUM(CASE WHEN embedding IS NOT NULL THEN 1 ELSE 0 END) AS embedded_count
               FROM chunks"""
        ).fetchone()
        return {
            "chunk_count": row["chunk_count"],
            "file_count": row["file_count"],
            "embedded_count": row["embedded_count"] or 0,
            "embedder": self.embedder.name if self.embedder else None,
        }

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None


def _to_result(row: sqlite3.Row, score: float) -> SimilarityResult:
    return SimilarityResult(
        chunk_id=row["id"],
        file_path=row["file_path"],
        content=row["content"],
        score=score,
        lines=(row["start_line"], row["end_line"]),
    )


def _to_chunk(row: sqlite3.Row) -> CodeChunk:
    return CodeChunk(
        id=row["id"],
        file_path=row["file_path"],
        content=row["content"],
        start_line=row["start_line"],
        end_line=row["end_line"],
        content_hash=row["content_hash"],
        kind=ChunkKind(row["kind"]),
    )
