"""Context assembly data models and the merged multi-file format.

The orchestrator lives in :mod:`contextos.context.builder`:

    from contextos.context.builder import ContextBuilder
"""

from contextos.context.merge import (
    get_context_file,
    list_context_files,
    merge_files_to_context,
    split_context_to_files,
)
from contextos.context.models import (
    BudgetAllocation,
    BuiltContext,
    IndexResult,
    PackedFile,
    RankedFile,
    RelevanceScore,
    Segment,
    TokenBudgetResult,
)

__all__ = [
    "BudgetAllocation",
    "BuiltContext",
    "IndexResult",
    "PackedFile",
    "RankedFile",
    "RelevanceScore",
    "Segment",
    "TokenBudgetResult",
    "get_context_file",
    "list_context_files",
    "merge_files_to_context",
    "split_context_to_files",
]
