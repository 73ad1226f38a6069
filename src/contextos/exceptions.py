"""Custom exceptions for ContextOS."""


class ContextOSError(Exception):
    """Base exception for all ContextOS errors."""


class ConfigError(ContextOSError):
    """Configuration-related errors."""


class GraphError(ContextOSError):
    """Dependency graph errors."""


class StoreError(ContextOSError):
    """Similarity store errors."""


class StoreNotInitializedError(StoreError):
    """Raised when the similarity store is used before initialize()."""

    def __init__(self, operation: str = ""):
        detail = f" (called {operation})" if operation else ""
        super().__init__(f"SimilarityStore not initialized{detail}")


class EmbeddingError(ContextOSError):
    """Embedding backend errors."""


class EmbedderNotAvailableError(EmbeddingError):
    """Raised when an embedding backend's package is not installed."""

    def __init__(self, provider: str, package: str):
        super().__init__(
            f"Embedding provider '{provider}' requires the '{package}' package. "
            f"Install it with: pip install contextos[embeddings]"
        )


class IndexingError(ContextOSError):
    """Indexing errors."""
