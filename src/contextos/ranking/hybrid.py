"""Hybrid ranking of files for a goal.

Three signals are fused per file: semantic similarity of its best chunk,
structural proximity to the target file in the dependency graph, and a
boost from project rules whose topics appear in the goal. When the graph
says a file is close but similarity says it is unrelated, the graph wins.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from pydantic import BaseModel

from contextos.config import Constraint
from contextos.context.models import RankedFile, RelevanceScore
from contextos.embedding.models import SimilarityResult
from contextos.embedding.store import SimilarityStore
from contextos.graph.dependency import UNREACHABLE_SCORE, DependencyGraph

logger = logging.getLogger("contextos.ranking")

RULE_BOOST = 0.3
# Graph-only files must be at least this close to the target to be included
GRAPH_ONLY_THRESHOLD = 0.5
GRAPH_ONLY_VECTOR_FLOOR = 0.1

CONFLICT_GRAPH_MIN = 0.7
CONFLICT_VECTOR_MAX = 0.3
CONFLICT_WEIGHTS = (0.6, 0.2, 0.2)  # graph, vector, manual

REASON_GRAPH_PRIORITY = "structural dependency (graph priority)"
REASON_STRUCTURAL = "structural connection"
REASON_RULE = "rule-based boost"
REASON_SEMANTIC = "semantic match"

RankingStage = Callable[[list[RankedFile]], list[RankedFile]]


class RankingWeights(BaseModel):
    """Fusion weights. Kept normalized to sum to 1 by the ranker."""

    vector: float = 0.4
    graph: float = 0.4
    manual: float = 0.2


class HybridRanker:
    """Ranks files against a goal using the store and the graph.

    Args:
        store: Similarity store to draw candidate chunks from.
        graph: Dependency graph for structural proximity.
        constraints: Project rules, matched against the goal by topic.
        weights: Initial fusion weights.
        stages: Extra ranking stages, applied in order to the fused list
            before the final sort. Each takes and returns a list of files.
    """

    def __init__(
        self,
        store: SimilarityStore,
        graph: DependencyGraph,
        constraints: Sequence[Constraint] | None = None,
        weights: RankingWeights | None = None,
        stages: Sequence[RankingStage] | None = None,
    ) -> None:
        self.store = store
        self.graph = graph
        self.constraints: list[Constraint] = list(constraints or [])
        self.weights = weights or RankingWeights()
        self.stages: list[RankingStage] = list(stages or [])

    def rank(
        self, goal: str, target_file: str | None = None, limit: int = 20
    ) -> list[RankedFile]:
        """Return up to `limit` files ordered by fused relevance."""
        results = self.store.search(goal, limit * 2)
        graph_scores = self.graph.get_distance_scores(target_file) if target_file else {}
        boosts = self._rule_boosts(goal)
        manual = max(boosts.values(), default=0.0)

        grouped = self._group_by_file(results, graph_scores)
        ranked: list[RankedFile] = []
        for path, (vector, graph, chunks) in grouped.items():
            score, reason = self.fuse(vector, graph, manual)
            ranked.append(RankedFile(path=path, score=score, chunks=chunks, reason=reason))

        for stage in self.stages:
            ranked = stage(ranked)

        ranked.sort(key=lambda f: f.score.final, reverse=True)
        logger.debug(
            "Ranked %d candidate files for goal %r (target=%s)",
            len(ranked), goal, target_file,
        )
        return ranked[:limit]

    def fuse(self, vector: float, graph: float, manual: float) -> tuple[RelevanceScore, str]:
        """Fuse the three signals for one file and explain the result."""
        final = (
            vector * self.weights.vector
            + graph * self.weights.graph
            + manual * self.weights.manual
        )

        conflict = graph > CONFLICT_GRAPH_MIN and vector < CONFLICT_VECTOR_MAX
        if conflict:
            w_graph, w_vector, w_manual = CONFLICT_WEIGHTS
            final = graph * w_graph + vector * w_vector + manual * w_manual
            reason = REASON_GRAPH_PRIORITY
        elif graph > vector:
            reason = REASON_STRUCTURAL
        elif manual > 0:
            reason = REASON_RULE
        else:
            reason = REASON_SEMANTIC

        score = RelevanceScore(vector=vector, graph=graph, manual=manual, final=final)
        return score, reason

    def _rule_boosts(self, goal: str) -> dict[str, float]:
        goal_lower = goal.lower()
        boosts: dict[str, float] = {}
        for constraint in self.constraints:
            for topic in constraint.related:
                if topic and topic.lower() in goal_lower:
                    boosts[constraint.rule] = RULE_BOOST
        return boosts

    @staticmethod
    def _group_by_file(
        results: list[SimilarityResult], graph_scores: dict[str, float]
    ) -> dict[str, tuple[float, float, list[SimilarityResult]]]:
        grouped: dict[str, tuple[float, float, list[SimilarityResult]]] = {}
        for result in results:
            if result.file_path in grouped:
                vector, graph, chunks = grouped[result.file_path]
                chunks.append(result)
                grouped[result.file_path] = (max(vector, result.score), graph, chunks)
            else:
                graph = graph_scores.get(result.file_path, UNREACHABLE_SCORE)
                grouped[result.file_path] = (result.score, graph, [result])

        for path, graph in graph_scores.items():
            if path not in grouped and graph > GRAPH_ONLY_THRESHOLD:
                grouped[path] = (GRAPH_ONLY_VECTOR_FLOOR, graph, [])
        return grouped

    def set_weights(
        self,
        vector: float | None = None,
        graph: float | None = None,
        manual: float | None = None,
    ) -> RankingWeights:
        """Override some weights, then renormalize all three to sum to 1.

        Raises:
            ValueError: If a weight is negative or the total is not positive.
        """
        merged = self.weights.model_copy(
            update={
                k: v
                for k, v in (("vector", vector), ("graph", graph), ("manual", manual))
                if v is not None
            }
        )
        if min(merged.vector, merged.graph, merged.manual) < 0:
            raise ValueError("Ranking weights must be non-negative")
        total = merged.vector + merged.graph + merged.manual
        if total <= 0:
            raise ValueError("Ranking weights must sum to a positive value")
        self.weights = RankingWeights(
            vector=merged.vector / total,
            graph=merged.graph / total,
            manual=merged.manual / total,
        )
        return self.weights

    def set_constraints(self, constraints: Sequence[Constraint]) -> None:
        self.constraints = list(constraints)

    def add_stage(self, stage: RankingStage) -> None:
        """Append a ranking stage to run after fusion."""
        self.stages.append(stage)
