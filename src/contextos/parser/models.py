"""Data models for extracted imports and exports."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class FileImports(BaseModel):
    """Imports and exports extracted from a single file."""

    file_path: str
    language: str
    imports: list[str] = Field(default_factory=list)  # raw specifiers, declaration order
    exports: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


# Language detection by file extension
EXTENSION_LANGUAGE_MAP: dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
}


def detect_language(file_path: str) -> str | None:
    """Detect programming language from file extension."""
    ext = Path(file_path).suffix.lower()
    return EXTENSION_LANGUAGE_MAP.get(ext)
