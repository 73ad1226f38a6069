"""Hybrid relevance ranking."""

from contextos.ranking.hybrid import HybridRanker, RankingStage, RankingWeights

__all__ = ["HybridRanker", "RankingStage", "RankingWeights"]
