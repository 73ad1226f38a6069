"""Regex-based import extraction for languages without an AST parser here.

Also used for Python source that does not parse.
"""

from __future__ import annotations

import re

from contextos.parser.models import FileImports

_IMPORT_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "typescript": [
        re.compile(r"import\s+(?:type\s+)?(?:\{[^}]+\}|\*\s+as\s+\w+|\w+)\s+from\s+['\"]([^'\"]+)['\"]"),
        re.compile(r"import\s+['\"]([^'\"]+)['\"]"),
        re.compile(r"require\s*\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    ],
    "javascript": [
        re.compile(r"import\s+(?:\{[^}]+\}|\*\s+as\s+\w+|\w+)\s+from\s+['\"]([^'\"]+)['\"]"),
        re.compile(r"import\s+['\"]([^'\"]+)['\"]"),
        re.compile(r"require\s*\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    ],
    "python": [
        re.compile(r"^import\s+([\w.]+)", re.MULTILINE),
        re.compile(r"^from\s+([\w.]+)\s+import", re.MULTILINE),
    ],
    "go": [
        re.compile(r"import\s+\"([^\"]+)\""),
        re.compile(r"import\s+\w+\s+\"([^\"]+)\""),
        re.compile(r"import\s+\(\s*([^)]+)\s*\)", re.DOTALL),
    ],
    "rust": [
        re.compile(r"use\s+([\w:]+)(?:::\{[^}]+\})?;"),
        re.compile(r"extern\s+crate\s+(\w+)"),
        re.compile(r"mod\s+(\w+);"),
    ],
    "java": [
        re.compile(r"import\s+(?:static\s+)?([\w.]+(?:\.\*)?);"),
    ],
}

_EXPORT_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "typescript": [
        re.compile(r"export\s+(?:default\s+)?(?:abstract\s+)?(?:class|function|const|let|var|interface|type|enum)\s+(\w+)"),
        re.compile(r"export\s+\{([^}]+)\}"),
    ],
    "javascript": [
        re.compile(r"export\s+(?:default\s+)?(?:class|function|const|let|var)\s+(\w+)"),
        re.compile(r"export\s+\{([^}]+)\}"),
        re.compile(r"module\.exports\s*=\s*(\w+)"),
    ],
    "python": [
        re.compile(r"__all__\s*=\s*[\[(]([^\])]+)[\])]"),
    ],
    "rust": [
        re.compile(r"pub\s+(?:fn|struct|enum|trait|type|mod)\s+(\w+)"),
    ],
}

_GO_BLOCK_ITEM = re.compile(r"\"([^\"]+)\"")
_NAME_ITEM = re.compile(r"[\w$]+")


def supported_languages() -> list[str]:
    return sorted(_IMPORT_PATTERNS)


def parse_with_regex(file_path: str, source: str, language: str) -> FileImports:
    """Extract imports and exports with per-language patterns."""
    result = FileImports(file_path=file_path, language=language)

    for pattern in _IMPORT_PATTERNS.get(language, []):
        for match in pattern.finditer(source):
            spec = match.group(1).strip()
            if not spec:
                continue
            if language == "go" and "\n" in spec:
                for item in _GO_BLOCK_ITEM.findall(spec):
                    _append_unique(result.imports, item)
                continue
            _append_unique(result.imports, spec)

    for pattern in _EXPORT_PATTERNS.get(language, []):
        for match in pattern.finditer(source):
            body = match.group(1)
            if "," in body or "'" in body or '"' in body or " as " in body:
                # export { a, b as c } / __all__ = ["a", "b"]
                for item in body.split(","):
                    names = _NAME_ITEM.findall(item.split(" as ")[-1])
                    if names:
                        _append_unique(result.exports, names[0])
            else:
                _append_unique(result.exports, body.strip())

    return result


def _append_unique(items: list[str], value: str) -> None:
    if value and value not in items:
        items.append(value)
