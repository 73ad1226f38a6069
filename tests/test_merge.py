"""Tests for the merged multi-file context format."""

from __future__ import annotations

from contextos.context.merge import (
    MAX_PATH_LENGTH,
    get_context_file,
    list_context_files,
    merge_files_to_context,
    split_context_to_files,
)

FILES = [
    ("src/app.py", "import os\n\nprint(os.name)\n"),
    ("empty.ts", ""),
    ("docs/notes.md", "# Title\nSee FILE: something inline"),
]


class TestMerge:
    def test_format(self):
        merged = merge_files_to_context([("a.py", "x = 1"), ("b.py", "y = 2")])
        assert merged == "=== FILE: a.py ===\nx = 1\n\n=== FILE: b.py ===\ny = 2"

    def test_empty(self):
        assert merge_files_to_context([]) == ""
        assert split_context_to_files("") == []

    def test_round_trip(self):
        merged = merge_files_to_context(FILES)
        assert split_context_to_files(merged) == FILES

    def test_paths_with_spaces(self):
        files = [("My Docs/read me.md", "hello")]
        assert split_context_to_files(merge_files_to_context(files)) == files


class TestLookup:
    def test_list_files(self):
        merged = merge_files_to_context(FILES)
        assert list_context_files(merged) == ["src/app.py", "empty.ts", "docs/notes.md"]

    def test_get_file(self):
        merged = merge_files_to_context(FILES)
        assert get_context_file(merged, "src/app.py") == "import os\n\nprint(os.name)\n"
        assert get_context_file(merged, "empty.ts") == ""

    def test_missing_file(self):
        merged = merge_files_to_context(FILES)
        assert get_context_file(merged, "nope.py") is None
        assert get_context_file(merged, "") is None

    def test_overlong_path_rejected(self):
        merged = merge_files_to_context([("a.py", "x")])
        assert get_context_file(merged, "a" * (MAX_PATH_LENGTH + 1)) is None

    def test_regex_characters_in_path(self):
        files = [("lib/(group)/[id].ts", "export {}"), ("a+b.py", "pass")]
        merged = merge_files_to_context(files)
        assert get_context_file(merged, "lib/(group)/[id].ts") == "export {}"
        assert get_context_file(merged, "a+b.py") == "pass"
