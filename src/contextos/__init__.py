"""ContextOS - ranked, token-budgeted codebase context for language models."""

__version__ = "0.1.0"
