"""Embedding backends.

The similarity store treats the embedder as optional: ``load_embedder``
returns None when the configured backend is unavailable and the store then
falls back to lexical search.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from hashlib import blake2b

import numpy as np

from contextos.config import EmbeddingConfig
from contextos.exceptions import EmbedderNotAvailableError, EmbeddingError

logger = logging.getLogger("contextos.embedding")

_TOKEN_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class Embedder(ABC):
    """Abstract base for embedding backends."""

    name: str = ""

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Embed one text into a fixed-length vector."""
        ...

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]


class HashEmbedder(Embedder):
    """Deterministic feature-hashing embedder with no model weights.

    Each identifier-like token is hashed into one of ``dim`` buckets with a
    sign bit; the result is L2 normalized. Only keyword overlap is captured.
    """

    name = "hash"

    def __init__(self, dim: int = 256) -> None:
        if dim <= 0:
            raise ValueError(f"Embedding dimension must be positive, got {dim}")
        self.dim = dim

    def embed(self, text: str) -> list[float]:
        vec = np.zeros(self.dim, dtype=np.float32)
        for token in _TOKEN_RE.findall(text.lower()):
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "big") % self.dim
            vec[idx] += 1.0 if (digest[4] & 1) == 0 else -1.0
        norm = float(np.linalg.norm(vec))
        if norm > 0:
            vec /= norm
        return vec.tolist()


class SentenceTransformerEmbedder(Embedder):
    """Embedder backed by a sentence-transformers model, loaded lazily."""

    name = "sentence-transformers"

    def __init__(self, model: str = "all-MiniLM-L6-v2") -> None:
        self.model_name = model
        self._model = None

    def _get_model(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                raise EmbedderNotAvailableError(self.name, "sentence-transformers")

            logger.info("Loading embedding model '%s'", self.model_name)
            try:
                self._model = SentenceTransformer(self.model_name)
            except Exception as e:
                raise EmbeddingError(
                    f"Failed to load embedding model '{self.model_name}': {e}"
                ) from e
        return self._model

    def embed(self, text: str) -> list[float]:
        vector = self._get_model().encode(text, normalize_embeddings=True)
        return np.asarray(vector, dtype=np.float32).tolist()

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        vectors = self._get_model().encode(texts, normalize_embeddings=True)
        return np.asarray(vectors, dtype=np.float32).tolist()


def create_embedder(config: EmbeddingConfig) -> Embedder:
    """Create an embedder from configuration.

    Raises:
        ValueError: If the provider is unknown or is ``none``.
        EmbedderNotAvailableError: If the provider's package is not installed.
    """
    provider = config.provider.lower()

    if provider == "hash":
        return HashEmbedder(dim=config.dim)
    elif provider in ("sentence-transformers", "auto"):
        embedder = SentenceTransformerEmbedder(model=config.model)
        embedder._get_model()
        return embedder
    else:
        raise ValueError(
            f"Unknown embedding provider: '{provider}'. "
            f"Supported providers: auto, sentence-transformers, hash, none"
        )


def load_embedder(config: EmbeddingConfig) -> Embedder | None:
    """Like :func:`create_embedder` but returns None when no backend loads."""
    if config.provider.lower() == "none":
        return None
    try:
        return create_embedder(config)
    except (EmbeddingError, ValueError) as e:
        logger.debug("Embedding backend '%s' unavailable: %s", config.provider, e)
        return None
