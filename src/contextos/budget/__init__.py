"""Token estimation and context packing."""

from contextos.budget.packer import MODEL_LIMITS, TokenBudget, TokenEstimator, get_allocation

__all__ = ["MODEL_LIMITS", "TokenBudget", "TokenEstimator", "get_allocation"]
