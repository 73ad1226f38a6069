"""Data models for the file dependency graph."""

from __future__ import annotations

from pydantic import BaseModel, Field


class GraphNode(BaseModel):
    """One indexed file. Replaced, never mutated, when its content changes."""

    id: str = ""  # same as path
    path: str
    imports: list[str] = Field(default_factory=list)
    exports: list[str] = Field(default_factory=list)
    content_hash: str
    language: str = ""

    def model_post_init(self, __context: object) -> None:
        if not self.id:
            self.id = self.path


class GraphEdge(BaseModel):
    """A directed import edge, derived from the source node's imports."""

    source: str
    target: str
    kind: str = "import"
