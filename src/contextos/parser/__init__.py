"""Import and export extraction for supported languages."""

from contextos.parser.core import collect_files, detect_project_language, parse_file, resolve_import
from contextos.parser.models import FileImports, detect_language

__all__ = [
    "FileImports",
    "collect_files",
    "detect_language",
    "detect_project_language",
    "parse_file",
    "resolve_import",
]
