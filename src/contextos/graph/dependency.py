"""File-level import graph with structural proximity queries.

Nodes are indexed files; edges point from an importing file to the path (or
raw specifier) it imports. Import targets that are not themselves indexed
live in the graph only as bare endpoints and disappear once no edge
references them.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import Any

import networkx as nx

from contextos.graph.models import GraphEdge, GraphNode

# Hop count at which graph proximity bottoms out
MAX_SCORED_DISTANCE = 5
UNREACHABLE_SCORE = 0.1


def content_hash(content: str) -> str:
    """Digest used to detect file revisions."""
    return hashlib.sha256(content.encode("utf-8", errors="replace")).hexdigest()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DependencyGraph:
    """In-memory import graph keyed by file path.

    Every operation is total: unknown paths yield empty lists, a distance
    of -1 or the unreachable score, never an exception.
    """

    def __init__(self) -> None:
        self.graph = nx.DiGraph()
        self.last_updated = _now()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_node(
        self,
        path: str,
        imports: list[str],
        exports: list[str],
        language: str,
        content: str,
        force: bool = False,
    ) -> bool:
        """Add or replace the node for `path`.

        Returns False (and changes nothing) when the content is unchanged,
        unless `force` is set. Only edges leaving `path` are regenerated;
        edges from its importers are left alone.
        """
        digest = content_hash(content)
        existing = self.get_node(path)
        if not force and existing is not None and existing.content_hash == digest:
            return False

        old_targets = list(self.graph.successors(path)) if path in self.graph else []
        if old_targets:
            self.graph.remove_edges_from([(path, t) for t in old_targets])

        node = GraphNode(
            path=path,
            imports=list(imports),
            exports=list(exports),
            content_hash=digest,
            language=language,
        )
        self.graph.add_node(path, node=node)
        for imp in imports:
            self.graph.add_edge(path, imp, kind="import")

        self._prune(old_targets)
        self.last_updated = _now()
        return True

    def remove_node(self, path: str) -> None:
        """Delete a file and every edge touching it."""
        if path not in self.graph:
            return
        neighbors = list(self.graph.successors(path)) + list(self.graph.predecessors(path))
        self.graph.remove_node(path)
        self._prune(neighbors)
        self.last_updated = _now()

    def clear(self) -> None:
        self.graph.clear()
        self.last_updated = _now()

    def _prune(self, candidates: list[str]) -> None:
        """Drop bare import targets that no edge references any more."""
        for target in candidates:
            if (
                target in self.graph
                and "node" not in self.graph.nodes[target]
                and self.graph.degree(target) == 0
            ):
                self.graph.remove_node(target)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_node(self, path: str) -> GraphNode | None:
        if path not in self.graph:
            return None
        return self.graph.nodes[path].get("node")

    def get_all_nodes(self) -> list[GraphNode]:
        return [data["node"] for _, data in self.graph.nodes(data=True) if "node" in data]

    def get_edges(self) -> list[GraphEdge]:
        return [
            GraphEdge(source=u, target=v, kind=data.get("kind", "import"))
            for u, v, data in self.graph.edges(data=True)
        ]

    def get_direct_imports(self, path: str) -> list[str]:
        """Paths that `path` imports."""
        if path not in self.graph:
            return []
        return list(self.graph.successors(path))

    def get_direct_dependents(self, path: str) -> list[str]:
        """Paths that import `path`."""
        if path not in self.graph:
            return []
        return list(self.graph.predecessors(path))

    def get_dependencies(self, path: str, max_depth: int = 2) -> list[str]:
        """All imports reachable from `path` within `max_depth` hops.

        Depth-first over import edges only, in discovery order.
        """
        visited = {path}
        result: list[str] = []

        def visit(current: str, depth: int) -> None:
            if depth >= max_depth:
                return
            for imp in self.get_direct_imports(current):
                if imp in visited:
                    continue
                visited.add(imp)
                result.append(imp)
                visit(imp, depth + 1)

        visit(path, 0)
        return result

    def has_changed(self, path: str, content: str) -> bool:
        """Whether `content` differs from the indexed revision of `path`."""
        node = self.get_node(path)
        return node is None or node.content_hash != content_hash(content)

    # ------------------------------------------------------------------
    # Structural proximity
    # ------------------------------------------------------------------

    def calculate_distance(self, source: str, target: str) -> int:
        """Undirected hop count between two paths, or -1 if unconnected."""
        if source == target:
            return 0
        if source not in self.graph or target not in self.graph:
            return -1
        undirected = self.graph.to_undirected(as_view=True)
        try:
            return nx.shortest_path_length(undirected, source, target)
        except nx.NetworkXNoPath:
            return -1

    def get_distance_scores(self, target: str) -> dict[str, float]:
        """Proximity score in [0.1, 1] for every indexed file relative to `target`."""
        distances: dict[str, int] = {}
        if target in self.graph:
            undirected = self.graph.to_undirected(as_view=True)
            distances = nx.single_source_shortest_path_length(undirected, target)

        scores: dict[str, float] = {}
        for node in self.get_all_nodes():
            distance = distances.get(node.path, -1)
            if distance == -1:
                scores[node.path] = UNREACHABLE_SCORE
            elif distance == 0:
                scores[node.path] = 1.0
            else:
                scores[node.path] = max(
                    UNREACHABLE_SCORE, 1 - distance / MAX_SCORED_DISTANCE
                )
        return scores

    # ------------------------------------------------------------------
    # Introspection and serialization
    # ------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        node_count = len(self.get_all_nodes())
        edge_count = self.graph.number_of_edges()
        avg_imports = edge_count / node_count if node_count else 0.0
        return {
            "node_count": node_count,
            "edge_count": edge_count,
            "avg_imports": round(avg_imports, 2),
            "last_updated": self.last_updated,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.model_dump() for node in self.get_all_nodes()],
            "edges": [edge.model_dump() for edge in self.get_edges()],
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DependencyGraph:
        dep_graph = cls()
        for raw in data.get("nodes", []):
            node = GraphNode(**raw)
            dep_graph.graph.add_node(node.path, node=node)
        for raw in data.get("edges", []):
            edge = GraphEdge(**raw)
            dep_graph.graph.add_edge(edge.source, edge.target, kind=edge.kind)
        dep_graph.last_updated = data.get("last_updated") or dep_graph.last_updated
        return dep_graph
