"""Merged multi-file context format.

Files are concatenated as ``=== FILE: <path> ===`` marker lines followed by
the file content, with blocks separated by one blank line.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

MAX_PATH_LENGTH = 1000
BLOCK_SEPARATOR = "\n\n"

_MARKER_RE = re.compile(r"^={3,}\s*FILE:\s*(.+?)\s*={3,}$", re.MULTILINE)


def merge_files_to_context(files: Iterable[tuple[str, str]]) -> str:
    """Join ``(path, content)`` pairs into one merged context string."""
    return BLOCK_SEPARATOR.join(f"=== FILE: {path} ===\n{content}" for path, content in files)


def split_context_to_files(context: str) -> list[tuple[str, str]]:
    """Inverse of :func:`merge_files_to_context`.

    Each file's content runs from the line after its marker to the next
    marker (minus the block separator) or to the end of the string.
    """
    markers = list(_MARKER_RE.finditer(context))
    files: list[tuple[str, str]] = []
    for i, marker in enumerate(markers):
        start = marker.end() + 1
        if i + 1 < len(markers):
            content = context[start : markers[i + 1].start()]
            if content.endswith(BLOCK_SEPARATOR):
                content = content[: -len(BLOCK_SEPARATOR)]
        else:
            content = context[start:]
        files.append((marker.group(1), content))
    return files


def list_context_files(context: str) -> list[str]:
    return [m.group(1) for m in _MARKER_RE.finditer(context)]


def get_context_file(context: str, path: str) -> str | None:
    """Content of `path` in a merged context, or None if absent."""
    if not path or len(path) > MAX_PATH_LENGTH:
        return None
    for file_path, content in split_context_to_files(context):
        if file_path == path:
            return content
    return None
