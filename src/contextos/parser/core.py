"""Core parser orchestration: file discovery, import extraction, resolution."""

from __future__ import annotations

import fnmatch
import os
import posixpath
from collections.abc import Collection
from pathlib import Path

from contextos.config import IndexerConfig
from contextos.parser.models import FileImports, detect_language
from contextos.parser.python_parser import parse_python_file
from contextos.parser.regex_parser import parse_with_regex

_JS_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")

# Marker files used to guess a project's primary language, checked in order
_PROJECT_MARKERS: list[tuple[str, tuple[str, ...]]] = [
    ("typescript", ("tsconfig.json",)),
    ("python", ("pyproject.toml", "setup.py", "setup.cfg", "requirements.txt", "Pipfile")),
    ("go", ("go.mod",)),
    ("rust", ("Cargo.toml",)),
    ("java", ("pom.xml", "build.gradle", "build.gradle.kts")),
    ("javascript", ("package.json",)),
]


def parse_file(file_path: str, source: str) -> FileImports | None:
    """Extract imports and exports, auto-detecting the language.

    Returns None if the file's language is not supported.

    - Python: stdlib ast, with a regex fallback for source that won't parse
    - TS/JS, Go, Rust, Java: per-language regexes
    """
    language = detect_language(file_path)
    if not language:
        return None

    if language == "python":
        result = parse_python_file(file_path, source)
        if result.errors:
            fallback = parse_with_regex(file_path, source, language)
            fallback.errors = result.errors
            return fallback
        return result

    return parse_with_regex(file_path, source, language)


def resolve_import(
    spec: str, from_path: str, known_paths: Collection[str], language: str
) -> str:
    """Map an import specifier onto an indexed path when possible.

    Specifiers that resolve to nothing indexed (third-party packages,
    stdlib modules) are returned unchanged.
    """
    for candidate in _candidates(spec, from_path, language):
        if candidate in known_paths:
            return candidate

    suffixes = _suffix_candidates(spec, language)
    if suffixes:
        for path in sorted(known_paths):
            if any(path.endswith("/" + s) for s in suffixes):
                return path
    return spec


def _candidates(spec: str, from_path: str, language: str) -> list[str]:
    from_dir = posixpath.dirname(from_path)

    if language == "python":
        if spec.startswith("."):
            level = len(spec) - len(spec.lstrip("."))
            base = from_dir
            for _ in range(level - 1):
                base = posixpath.dirname(base)
            rest = spec[level:].replace(".", "/")
            module = posixpath.join(base, rest) if rest else base
        else:
            module = spec.replace(".", "/")
        if not module:
            return ["__init__.py"]
        return [f"{module}.py", f"{module}/__init__.py"]

    if language in ("typescript", "javascript"):
        if not spec.startswith("."):
            return []
        base = posixpath.normpath(posixpath.join(from_dir, spec))
        candidates = [base]
        if base.endswith((".js", ".jsx")):
            stem = base.rsplit(".", 1)[0]
            candidates += [stem + ".ts", stem + ".tsx"]
        candidates += [base + ext for ext in _JS_EXTENSIONS]
        candidates += [f"{base}/index{ext}" for ext in _JS_EXTENSIONS]
        return candidates

    if language == "rust" and "::" not in spec:
        # mod foo;
        return [posixpath.join(from_dir, f"{spec}.rs"), posixpath.join(from_dir, spec, "mod.rs")]

    if language == "java":
        return [spec.replace(".", "/") + ".java"]

    return []


def _suffix_candidates(spec: str, language: str) -> list[str]:
    """Paths an absolute import may end with under a source root like src/."""
    if language == "python" and not spec.startswith("."):
        module = spec.replace(".", "/")
        return [f"{module}.py", f"{module}/__init__.py"]
    if language == "java" and not spec.endswith("*"):
        return [spec.replace(".", "/") + ".java"]
    return []


def detect_project_language(root: str | Path) -> str:
    """Guess a project's primary language from its marker files."""
    root = Path(root)
    for language, markers in _PROJECT_MARKERS:
        if any((root / marker).exists() for marker in markers):
            return language
    return ""


def collect_files(root: str | Path, config: IndexerConfig | None = None) -> list[Path]:
    """Collect all parseable files in a directory, respecting exclusions."""
    root = Path(root).resolve()
    if config is None:
        config = IndexerConfig()

    files = []
    max_size = config.max_file_size_kb * 1024

    gitignore_patterns = _read_gitignore(root)
    all_exclude = config.exclude_patterns + gitignore_patterns

    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = os.path.relpath(dirpath, root)

        dirnames[:] = [
            d
            for d in dirnames
            if not _should_exclude(os.path.join(rel_dir, d) if rel_dir != "." else d, all_exclude)
        ]

        for filename in filenames:
            rel_path = os.path.join(rel_dir, filename) if rel_dir != "." else filename
            if _should_exclude(rel_path, all_exclude):
                continue

            lang = detect_language(filename)
            if lang is None:
                continue
            if config.languages and lang not in config.languages:
                continue

            full_path = Path(dirpath) / filename
            try:
                if full_path.stat().st_size > max_size:
                    continue
            except OSError:
                continue

            files.append(full_path)

    return sorted(files)


def _should_exclude(path: str, patterns: list[str]) -> bool:
    """Check if a path or any of its components matches an exclusion pattern."""
    path_parts = Path(path).parts
    for pattern in patterns:
        if fnmatch.fnmatch(path, pattern):
            return True
        for part in path_parts:
            if fnmatch.fnmatch(part, pattern):
                return True
    return False


def _read_gitignore(root: Path) -> list[str]:
    """Read .gitignore patterns from the project root."""
    gitignore = root / ".gitignore"
    if not gitignore.exists():
        return []

    patterns = []
    try:
        for line in gitignore.read_text().splitlines():
            line = line.strip()
            if line and not line.startswith("#") and not line.startswith("!"):
                patterns.append(line.rstrip("/").lstrip("/"))
    except OSError:
        pass
    return patterns
