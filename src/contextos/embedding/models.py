"""Data models for code chunks and similarity results."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ChunkKind(str, Enum):
    """Coarse structural classification of a chunk."""

    FUNCTION = "function"
    CLASS = "class"
    MODULE = "module"
    BLOCK = "block"


class CodeChunk(BaseModel):
    """A contiguous span of one file revision's text.

    ``id`` is only stable within one chunking pass; use
    ``(file_path, content_hash)`` to detect changes.
    """

    id: str  # "<file_path>#<index>"
    file_path: str
    content: str
    start_line: int
    end_line: int
    content_hash: str  # first 8 hex chars of the content digest
    kind: ChunkKind = ChunkKind.BLOCK


class SimilarityResult(BaseModel):
    """A stored chunk matched by a search, in either search mode."""

    chunk_id: str
    file_path: str
    content: str
    score: float
    lines: tuple[int, int]


class ChunkPage(BaseModel):
    """One page of stored chunks."""

    chunks: list[CodeChunk]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_more: bool
