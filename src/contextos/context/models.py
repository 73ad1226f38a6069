"""Data models for ranking, budgeting and built context."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from contextos.config import Constraint
from contextos.embedding.models import SimilarityResult


class RelevanceScore(BaseModel):
    """The three relevance signals and their fused value, each in [0, 1]."""

    vector: float = 0.0
    graph: float = 0.0
    manual: float = 0.0
    final: float = 0.0


class RankedFile(BaseModel):
    """A file selected by the ranker. Recomputed per request, never persisted."""

    path: str
    score: RelevanceScore
    chunks: list[SimilarityResult] = Field(default_factory=list)
    reason: str = ""

    @property
    def content(self) -> str:
        """The file's matching chunks joined as one text block."""
        return "\n\n".join(chunk.content for chunk in self.chunks)


class Segment(str, Enum):
    """Budget segments a packed file can belong to."""

    IMMUTABLE_CORE = "immutable_core"
    ACTIVE_FOCUS = "active_focus"
    STRATEGIC_CONTEXT = "strategic_context"
    BUFFER = "buffer"


class BudgetAllocation(BaseModel):
    """Fractions of the token budget per segment. The four values sum to 1."""

    immutable_core: float
    active_focus: float
    strategic_context: float
    buffer: float  # headroom for the model's response, never filled


class PackedFile(BaseModel):
    """One entry of the packed payload."""

    path: str
    content: str
    tokens: int
    segment: Segment


class Savings(BaseModel):
    original: int = 0
    optimized: int = 0
    percentage: int = 0


class TokenBudgetResult(BaseModel):
    """Result of packing ranked content into a token budget."""

    total_tokens: int = 0
    allocation: BudgetAllocation
    files: list[PackedFile] = Field(default_factory=list)
    truncated: bool = False
    savings: Savings = Field(default_factory=Savings)


class BuildMeta(BaseModel):
    build_time_ms: float = 0.0
    files_analyzed: int = 0
    files_included: int = 0


class BuiltContext(BaseModel):
    """The outcome of a context build for one goal."""

    goal: str
    files: list[RankedFile] = Field(default_factory=list)
    rules: list[Constraint] = Field(default_factory=list)
    packed: list[PackedFile] = Field(default_factory=list)
    token_count: int = 0
    savings: Savings = Field(default_factory=Savings)
    meta: BuildMeta = Field(default_factory=BuildMeta)


class IndexResult(BaseModel):
    """Summary of an indexing run."""

    files_indexed: int = 0
    chunks_created: int = 0
    files_removed: int = 0
    files_failed: int = 0
    time_ms: float = 0.0
