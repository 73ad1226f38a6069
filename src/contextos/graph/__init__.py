"""File dependency graph and its persistence."""

from contextos.graph.dependency import DependencyGraph
from contextos.graph.models import GraphEdge, GraphNode
from contextos.graph.store import GraphStore

__all__ = ["DependencyGraph", "GraphEdge", "GraphNode", "GraphStore"]
