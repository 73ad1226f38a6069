"""Persistent storage for the dependency graph using SQLite.

File paths are interned once in ``path_map``; nodes and edges reference
them by integer id. Import targets that are not indexed files are stored
in ``path_map`` only, so they come back as bare edge endpoints.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

from contextos.exceptions import GraphError
from contextos.graph.dependency import DependencyGraph
from contextos.graph.models import GraphNode


class GraphStore:
    """Persists and loads a :class:`DependencyGraph`."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._create_tables()
        return self._conn

    def _create_tables(self) -> None:
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS path_map (
                pid INTEGER PRIMARY KEY,
                path TEXT UNIQUE NOT NULL
            );

            -- One row per indexed file
            CREATE TABLE IF NOT EXISTS nodes (
                path_id INTEGER PRIMARY KEY REFERENCES path_map(pid),
                content_hash TEXT NOT NULL,
                language TEXT,
                imports TEXT,                    -- JSON list, declaration order
                exports TEXT                     -- JSON list
            );

            CREATE TABLE IF NOT EXISTS edges (
                source_pid INTEGER NOT NULL REFERENCES path_map(pid),
                target_pid INTEGER NOT NULL REFERENCES path_map(pid),
                kind TEXT NOT NULL,
                PRIMARY KEY (source_pid, target_pid)
            );

            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_edges_target ON edges(target_pid);
        """)
        conn.commit()

    # ------------------------------------------------------------------
    # Save / Load
    # ------------------------------------------------------------------

    def save(self, graph: DependencyGraph, metadata: dict[str, Any] | None = None) -> None:
        """Replace the stored graph with `graph`."""
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM edges")
            conn.execute("DELETE FROM nodes")
            conn.execute("DELETE FROM path_map")

            path_cache: dict[str, int] = {}

            def intern_path(fp: str) -> int:
                if fp in path_cache:
                    return path_cache[fp]
                conn.execute("INSERT OR IGNORE INTO path_map (path) VALUES (?)", (fp,))
                row = conn.execute("SELECT pid FROM path_map WHERE path = ?", (fp,)).fetchone()
                path_cache[fp] = row["pid"]
                return row["pid"]

            for node in graph.get_all_nodes():
                conn.execute(
                    """INSERT INTO nodes (path_id, content_hash, language, imports, exports)
                    VALUES (?, ?, ?, ?, ?)""",
                    (
                        intern_path(node.path),
                        node.content_hash,
                        node.language,
                        json.dumps(node.imports),
                        json.dumps(node.exports),
                    ),
                )

            for edge in graph.get_edges():
                conn.execute(
                    "INSERT OR REPLACE INTO edges (source_pid, target_pid, kind) VALUES (?, ?, ?)",
                    (intern_path(edge.source), intern_path(edge.target), edge.kind),
                )

            conn.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                ("last_updated", json.dumps(graph.last_updated)),
            )
            for key, value in (metadata or {}).items():
                conn.execute(
                    "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                    (key, json.dumps(value)),
                )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise GraphError(f"Failed to save graph to {self.db_path}: {e}") from e

    def load(self) -> DependencyGraph | None:
        """Rebuild the graph from SQLite, or None when nothing was saved yet.

        Raises:
            GraphError: If the database cannot be read.
        """
        try:
            return self._load()
        except sqlite3.Error as e:
            raise GraphError(f"Failed to load graph from {self.db_path}: {e}") from e

    def _load(self) -> DependencyGraph | None:
        conn = self._get_conn()
        row = conn.execute("SELECT COUNT(*) AS cnt FROM nodes").fetchone()
        if row is None or row["cnt"] == 0:
            return None

        pid_to_path = {
            r["pid"]: r["path"] for r in conn.execute("SELECT pid, path FROM path_map").fetchall()
        }

        dep_graph = DependencyGraph()
        for r in conn.execute("SELECT * FROM nodes").fetchall():
            path = pid_to_path[r["path_id"]]
            node = GraphNode(
                path=path,
                imports=json.loads(r["imports"] or "[]"),
                exports=json.loads(r["exports"] or "[]"),
                content_hash=r["content_hash"],
                language=r["language"] or "",
            )
            dep_graph.graph.add_node(path, node=node)

        for r in conn.execute("SELECT * FROM edges").fetchall():
            src = pid_to_path.get(r["source_pid"])
            tgt = pid_to_path.get(r["target_pid"])
            if src and tgt:
                dep_graph.graph.add_edge(src, tgt, kind=r["kind"])

        last_updated = self.get_metadata("last_updated")
        if last_updated:
            dep_graph.last_updated = last_updated
        return dep_graph

    def get_metadata(self, key: str) -> Any:
        """Get a metadata value."""
        conn = self._get_conn()
        row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
        if row:
            return json.loads(row["value"])
        return None

    def set_metadata(self, key: str, value: Any) -> None:
        """Set a single metadata value without a full save."""
        conn = self._get_conn()
        conn.execute(
            "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
            (key, json.dumps(value)),
        )
        conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
