"""Token budgeting: estimation, segment allocation and context packing.

The budget is split into four segments. The immutable core holds the
project summary, active focus holds ranked file content, strategic context
holds the coding rules, and the buffer is left free for the model's reply.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from contextos.config import CONTEXTOS_DIR, Constraint, Severity
from contextos.context.models import (
    BudgetAllocation,
    PackedFile,
    RankedFile,
    Savings,
    Segment,
    TokenBudgetResult,
)

logger = logging.getLogger("contextos.budget")

MODEL_LIMITS: dict[str, int] = {
    "gpt-4": 8192,
    "gpt-4-turbo": 128000,
    "gpt-4o": 128000,
    "gpt-4o-mini": 8000,
    "gpt-3.5-turbo": 16385,
    "claude-3-opus": 200000,
    "claude-3-sonnet": 200000,
    "claude-3-haiku": 200000,
    "gemini-pro": 32768,
    "gemini-1.5-pro": 1000000,
}
DEFAULT_MODEL_LIMIT = 32000

SMALL_BUDGET = 8000
MEDIUM_BUDGET = 32000

# A partial file is only packed when at least this many tokens remain
MIN_PARTIAL_TOKENS = 200
# Truncation prefers a newline found past this fraction of the cut
NEWLINE_BOUNDARY = 0.8

CORE_PATH = f"{CONTEXTOS_DIR}/context.json"
RULES_PATH = f"{CONTEXTOS_DIR}/rules"
TRUNCATION_MARKER = "\n... [truncated]"

SEVERITY_ICONS = {
    Severity.ERROR: "🚫",
    Severity.WARNING: "⚠️",
    Severity.INFO: "ℹ️",
}


class TokenEstimator:
    """Deterministic character-based token estimate."""

    CHARS_PER_TOKEN_CODE = 4
    CHARS_PER_TOKEN_TEXT = 3

    def __init__(self, chars_per_token: float = CHARS_PER_TOKEN_CODE) -> None:
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")
        self.chars_per_token = chars_per_token

    def count(self, text: str) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / self.chars_per_token)

    def truncate(self, text: str, max_tokens: int) -> str:
        """Cut `text` to roughly `max_tokens`, at a line end when one is near."""
        max_chars = int(max_tokens * self.chars_per_token)
        if len(text) <= max_chars:
            return text
        truncated = text[:max_chars]
        last_newline = truncated.rfind("\n")
        if last_newline >= 0 and last_newline >= max_chars * NEWLINE_BOUNDARY:
            return truncated[:last_newline]
        return truncated


def get_allocation(budget: int) -> BudgetAllocation:
    """Segment fractions for a budget of `budget` tokens."""
    if budget <= SMALL_BUDGET:
        return BudgetAllocation(
            immutable_core=0.15, active_focus=0.45, strategic_context=0.15, buffer=0.25
        )
    if budget <= MEDIUM_BUDGET:
        return BudgetAllocation(
            immutable_core=0.10, active_focus=0.50, strategic_context=0.20, buffer=0.20
        )
    return BudgetAllocation(
        immutable_core=0.05, active_focus=0.55, strategic_context=0.25, buffer=0.15
    )


def format_file_content(path: str, content: str) -> str:
    return f"// File: {path}\n{content}"


def format_rules(rules: Sequence[Constraint]) -> str:
    """Render rules as a markdown section, or "" when there are none."""
    if not rules:
        return ""
    lines = ["## Coding Rules", ""]
    for rule in rules:
        lines.append(f"{SEVERITY_ICONS.get(rule.severity, 'ℹ️')} **{rule.rule}**")
        if rule.suggestion:
            lines.append(f"   Suggestion: {rule.suggestion}")
        lines.append("")
    return "\n".join(lines) + "\n"


class TokenBudget:
    """Packs ranked content into a model's context window.

    Args:
        model_name: Model whose window size sets the default budget.
        max_tokens: Explicit budget, overriding the model's limit.
        estimator: Token estimator; defaults to the code estimate.
    """

    def __init__(
        self,
        model_name: str = "gpt-4-turbo",
        max_tokens: int | None = None,
        estimator: TokenEstimator | None = None,
    ) -> None:
        self.model_name = model_name
        self.max_tokens = max_tokens or MODEL_LIMITS.get(model_name, DEFAULT_MODEL_LIMIT)
        self.estimator = estimator or TokenEstimator()

    def count(self, text: str) -> int:
        return self.estimator.count(text)

    def get_model_limit(self) -> int:
        return self.max_tokens

    def set_model(self, model_name: str) -> None:
        self.model_name = model_name
        self.max_tokens = MODEL_LIMITS.get(model_name, DEFAULT_MODEL_LIMIT)

    def get_allocation(self, budget: int | None = None) -> BudgetAllocation:
        return get_allocation(budget or self.max_tokens)

    def pack_context(
        self,
        ranked_files: Sequence[RankedFile],
        core_content: str,
        rules: Sequence[Constraint],
        budget: int | None = None,
    ) -> TokenBudgetResult:
        """Fill the core, focus and strategic segments in that order.

        Ranked files are taken in order while they fit. The first file that
        does not fit is truncated into the remaining space when enough room
        is left, and packing of files stops there.
        """
        total_budget = budget or self.max_tokens
        allocation = get_allocation(total_budget)
        core_cap = math.floor(total_budget * allocation.immutable_core)
        focus_cap = math.floor(total_budget * allocation.active_focus)
        strategic_cap = math.floor(total_budget * allocation.strategic_context)

        packed: list[PackedFile] = []
        original = 0
        optimized = 0

        # Immutable core
        core_tokens = self.count(core_content)
        original += core_tokens
        if core_tokens > core_cap:
            core_content = self.estimator.truncate(core_content, core_cap)
            core_tokens = self.count(core_content)
        if core_content:
            packed.append(
                PackedFile(
                    path=CORE_PATH,
                    content=core_content,
                    tokens=core_tokens,
                    segment=Segment.IMMUTABLE_CORE,
                )
            )
            optimized += core_tokens

        # Active focus
        focus_used = 0
        filling = True
        for ranked in ranked_files:
            if not ranked.chunks:
                continue
            content = ranked.content
            tokens = self.count(content)
            original += tokens
            if not filling:
                continue

            if focus_used + tokens <= focus_cap:
                packed.append(
                    PackedFile(
                        path=ranked.path,
                        content=format_file_content(ranked.path, content),
                        tokens=tokens,
                        segment=Segment.ACTIVE_FOCUS,
                    )
                )
                focus_used += tokens
                optimized += tokens
                continue

            remaining = focus_cap - focus_used
            if remaining >= MIN_PARTIAL_TOKENS:
                partial = self.estimator.truncate(content, remaining)
                partial_tokens = self.count(partial)
                packed.append(
                    PackedFile(
                        path=ranked.path,
                        content=format_file_content(ranked.path, partial + TRUNCATION_MARKER),
                        tokens=partial_tokens,
                        segment=Segment.ACTIVE_FOCUS,
                    )
                )
                focus_used += partial_tokens
                optimized += partial_tokens
            filling = False

        # Strategic context
        rules_content = format_rules(rules)
        rules_tokens = self.count(rules_content)
        original += rules_tokens
        if rules_content and rules_tokens <= strategic_cap:
            packed.append(
                PackedFile(
                    path=RULES_PATH,
                    content=rules_content,
                    tokens=rules_tokens,
                    segment=Segment.STRATEGIC_CONTEXT,
                )
            )
            optimized += rules_tokens

        savings = Savings(
            original=original,
            optimized=optimized,
            percentage=round((1 - optimized / max(original, 1)) * 100),
        )
        logger.debug(
            "Packed %d entries into %d/%d tokens (original %d)",
            len(packed), optimized, total_budget, original,
        )
        return TokenBudgetResult(
            total_tokens=optimized,
            allocation=allocation,
            files=packed,
            truncated=optimized < original,
            savings=savings,
        )
