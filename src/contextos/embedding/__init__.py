"""Chunking, embedding and similarity search."""

from contextos.embedding.chunker import chunk_code, detect_chunk_type, merge_small_chunks
from contextos.embedding.embedder import (
    Embedder,
    HashEmbedder,
    SentenceTransformerEmbedder,
    create_embedder,
    load_embedder,
)
from contextos.embedding.models import ChunkKind, ChunkPage, CodeChunk, SimilarityResult
from contextos.embedding.store import SimilarityStore, cosine_similarity

__all__ = [
    "ChunkKind",
    "ChunkPage",
    "CodeChunk",
    "Embedder",
    "HashEmbedder",
    "SentenceTransformerEmbedder",
    "SimilarityResult",
    "SimilarityStore",
    "chunk_code",
    "cosine_similarity",
    "create_embedder",
    "detect_chunk_type",
    "load_embedder",
    "merge_small_chunks",
]
