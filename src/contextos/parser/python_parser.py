"""Python import extraction using the built-in ast module."""

from __future__ import annotations

import ast

from contextos.parser.models import FileImports


def parse_python_file(file_path: str, source: str) -> FileImports:
    """Extract module-level imports and public names from Python source.

    Relative imports keep their leading dots (``from .models import X``
    yields ``.models``). On a syntax error the error is recorded and the
    result is left empty so the caller can fall back to regexes.
    """
    result = FileImports(file_path=file_path, language="python")

    try:
        tree = ast.parse(source, filename=file_path)
    except SyntaxError as e:
        result.errors.append(f"SyntaxError: {e}")
        return result

    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                _append_unique(result.imports, alias.name)
        elif isinstance(node, ast.ImportFrom):
            prefix = "." * node.level
            if node.module:
                _append_unique(result.imports, prefix + node.module)
            else:
                # from . import a, b
                for alias in node.names:
                    _append_unique(result.imports, prefix + alias.name)

    result.exports = _extract_exports(tree)
    return result


def _extract_exports(tree: ast.Module) -> list[str]:
    """``__all__`` when it is a literal list, else top-level public names."""
    for node in tree.body:
        if isinstance(node, ast.Assign) and any(
            isinstance(t, ast.Name) and t.id == "__all__" for t in node.targets
        ):
            if isinstance(node.value, (ast.List, ast.Tuple)):
                return [
                    elt.value
                    for elt in node.value.elts
                    if isinstance(elt, ast.Constant) and isinstance(elt.value, str)
                ]

    exports: list[str] = []
    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            if not node.name.startswith("_"):
                exports.append(node.name)
    return exports


def _append_unique(items: list[str], value: str) -> None:
    if value not in items:
        items.append(value)
