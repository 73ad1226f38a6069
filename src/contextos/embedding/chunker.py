"""Line-based code chunker.

Splits a file into overlapping chunks of roughly ``chunk_size`` characters,
preferring to cut at blank lines or closing braces.
"""

from __future__ import annotations

import hashlib
import re

from contextos.embedding.models import ChunkKind, CodeChunk

# How many trailing buffer lines to search for a natural break
BREAK_SEARCH_LINES = 10
BREAK_LINES = ("", "}", "};")

_CLASS_PATTERNS = [
    re.compile(r"^\s*(export\s+)?(abstract\s+)?class\s+"),
    re.compile(r"^\s*class\s+\w+"),
]
_FUNCTION_PATTERNS = [
    re.compile(r"^\s*(export\s+)?(async\s+)?function\s+"),
    re.compile(r"^\s*const\s+\w+\s*=\s*(async\s+)?\("),
    re.compile(r"^\s*(async\s+)?def\s+\w+\s*\("),
]
_MODULE_PATTERNS = [
    re.compile(r"^\s*import\s+"),
    re.compile(r"^\s*from\s+"),
    re.compile(r"^\s*require\s*\("),
]


def chunk_hash(content: str) -> str:
    """Short content digest used for chunk change detection."""
    return hashlib.sha256(content.encode("utf-8", errors="replace")).hexdigest()[:8]


def detect_chunk_type(content: str) -> ChunkKind:
    """Classify a chunk by its first non-blank line."""
    first_line = content.strip().split("\n", 1)[0]
    if any(p.match(first_line) for p in _CLASS_PATTERNS):
        return ChunkKind.CLASS
    if any(p.match(first_line) for p in _FUNCTION_PATTERNS):
        return ChunkKind.FUNCTION
    if any(p.match(first_line) for p in _MODULE_PATTERNS):
        return ChunkKind.MODULE
    return ChunkKind.BLOCK


def chunk_code(
    file_path: str,
    content: str,
    chunk_size: int = 512,
    overlap: int = 50,
    min_chunk_size: int = 100,
) -> list[CodeChunk]:
    """Split `content` into chunks.

    Lines accumulate until their length (each counted with its newline)
    reaches ``chunk_size``. The buffer is then cut at the last blank or
    closing-brace line among its final ten lines, and ``overlap // 10``
    lines before the cut are carried into the next buffer. Fragments
    shorter than ``min_chunk_size`` are discarded, including the last one.
    """
    lines = content.split("\n")
    chunks: list[CodeChunk] = []
    overlap_lines = overlap // 10

    current: list[str] = []
    start_line = 1
    length = 0

    def flush(end_line: int) -> None:
        nonlocal current, start_line
        if current:
            text = "\n".join(current)
            if len(text) >= min_chunk_size:
                chunks.append(
                    CodeChunk(
                        id=f"{file_path}#{len(chunks)}",
                        file_path=file_path,
                        content=text,
                        start_line=start_line,
                        end_line=end_line,
                        content_hash=chunk_hash(text),
                        kind=detect_chunk_type(text),
                    )
                )
        current = []
        start_line = end_line + 1

    for i, line in enumerate(lines):
        current.append(line)
        length += len(line) + 1
        if length < chunk_size:
            continue

        break_point = len(current) - 1
        lowest = max(0, len(current) - BREAK_SEARCH_LINES)
        for j in range(len(current) - 1, lowest - 1, -1):
            if current[j].strip() in BREAK_LINES:
                break_point = j
                break

        to_flush = current[: break_point + 1]
        remaining = current[max(0, break_point + 1 - overlap_lines):]

        current = to_flush
        flush(start_line + len(to_flush) - 1)
        current = remaining
        start_line = i - len(remaining) + 2
        length = sum(len(rest) + 1 for rest in remaining)

    if current:
        flush(len(lines))

    return chunks


def merge_small_chunks(chunks: list[CodeChunk], min_size: int = 200) -> list[CodeChunk]:
    """Coalesce undersized chunks with their successors.

    A merged chunk never reaches ``3 * min_size`` characters unless one of
    its inputs already did.
    """
    merged: list[CodeChunk] = []
    pending: CodeChunk | None = None

    for chunk in chunks:
        if pending is None:
            if len(chunk.content) < min_size:
                pending = chunk
            else:
                merged.append(chunk)
            continue

        if len(pending.content) + len(chunk.content) < min_size * 3:
            text = f"{pending.content}\n{chunk.content}"
            pending = pending.model_copy(
                update={
                    "content": text,
                    "end_line": chunk.end_line,
                    "content_hash": chunk_hash(text),
                }
            )
        else:
            merged.append(pending)
            pending = chunk

    if pending is not None:
        merged.append(pending)
    return merged
