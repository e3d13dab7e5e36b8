"""Tests for the read_file / list_files / edit_file tools."""

import asyncio
import os
import sys

import pytest

# Ensure src is on path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from fileagent.messages import ToolError
from fileagent.tools import edit_file, list_files, read_file
from fileagent.tools.file_tools import DENYLISTED_PATHS, EditFileArgs


def run(coro):
    return asyncio.run(coro)


class TestReadFile:
    def test_reads_content(self, tmp_path):
        (tmp_path / "a.txt").write_text("hello\nworld\n", encoding="utf-8")
        result = run(read_file("a.txt", workspace=tmp_path))
        assert result == {"path": "a.txt", "content": "hello\nworld\n"}

    def test_missing_file_is_error_with_path(self, tmp_path):
        result = run(read_file("nope.txt", workspace=tmp_path))
        assert isinstance(result, ToolError)
        assert result.details == {"path": "nope.txt"}
        assert result.error

    def test_directory_is_error(self, tmp_path):
        (tmp_path / "pkg").mkdir()
        result = run(read_file("pkg", workspace=tmp_path))
        assert isinstance(result, ToolError)
        assert result.details["path"] == "pkg"

    def test_over_limit_is_refused(self, tmp_path):
        (tmp_path / "big.txt").write_text("x" * 101, encoding="utf-8")
        result = run(read_file("big.txt", workspace=tmp_path, max_bytes=100))
        assert isinstance(result, ToolError)
        assert "100 byte" in result.error

    def test_exactly_at_limit_is_read(self, tmp_path):
        (tmp_path / "edge.txt").write_text("x" * 100, encoding="utf-8")
        result = run(read_file("edge.txt", workspace=tmp_path, max_bytes=100))
        assert result["content"] == "x" * 100

    def test_invalid_utf8_is_replaced(self, tmp_path):
        (tmp_path / "bin.dat").write_bytes(b"ok\xff")
        result = run(read_file("bin.dat", workspace=tmp_path))
        assert result["content"].startswith("ok")
        assert "�" in result["content"]


class TestListFiles:
    def test_lists_entries_sorted_with_kinds(self, tmp_path):
        (tmp_path / "b.py").write_text("")
        (tmp_path / "a_dir").mkdir()
        result = run(list_files("", workspace=tmp_path))
        assert result["path"] == "."
        assert result["entries"] == [
            {"name": "a_dir", "kind": "directory"},
            {"name": "b.py", "kind": "file"},
        ]

    def test_defaults_to_working_directory(self, tmp_path):
        (tmp_path / "only.txt").write_text("")
        result = run(list_files(None, workspace=tmp_path))
        assert [e["name"] for e in result["entries"]] == ["only.txt"]

    @pytest.mark.parametrize("path", sorted(DENYLISTED_PATHS))
    def test_denylist_rejected_without_touching_filesystem(self, tmp_path, path):
        # The directory does not exist; a filesystem read would report "not found".
        result = run(list_files(path, workspace=tmp_path))
        assert isinstance(result, ToolError)
        assert result.details == {"path": path}
        assert "cannot read" in result.error

    def test_denylist_is_literal(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "node_modules").mkdir()
        result = run(list_files("sub", workspace=tmp_path))
        assert result["entries"] == [{"name": "node_modules", "kind": "directory"}]

    def test_missing_directory_is_error(self, tmp_path):
        result = run(list_files("missing", workspace=tmp_path))
        assert isinstance(result, ToolError)
        assert result.details == {}

    def test_file_path_is_error(self, tmp_path):
        (tmp_path / "f.txt").write_text("")
        result = run(list_files("f.txt", workspace=tmp_path))
        assert isinstance(result, ToolError)


class TestEditFile:
    def test_edit_round_trip_and_non_idempotence(self, tmp_path):
        target = tmp_path / "app.py"
        target.write_text("x = 1\ny = 2\n", encoding="utf-8")

        first = run(edit_file("app.py", "y = 2", "y = 3", workspace=tmp_path))
        assert first == {"success": True}
        assert run(read_file("app.py", workspace=tmp_path))["content"] == "x = 1\ny = 3\n"

        second = run(edit_file("app.py", "y = 2", "y = 3", workspace=tmp_path))
        assert isinstance(second, ToolError)
        assert "not found" in second.error

    def test_only_first_occurrence_replaced(self, tmp_path):
        target = tmp_path / "dup.txt"
        target.write_text("aa-aa", encoding="utf-8")
        run(edit_file("dup.txt", "aa", "b", workspace=tmp_path))
        assert target.read_text(encoding="utf-8") == "b-aa"

    def test_no_match_leaves_file_unchanged(self, tmp_path):
        target = tmp_path / "keep.txt"
        original = b"line one\r\nline two\r\n"
        target.write_bytes(original)
        result = run(edit_file("keep.txt", "absent", "present", workspace=tmp_path))
        assert isinstance(result, ToolError)
        assert result.error == 'String "absent" not found in file'
        assert target.read_bytes() == original

    def test_preserves_line_endings(self, tmp_path):
        target = tmp_path / "crlf.txt"
        target.write_bytes(b"a\r\nb\r\n")
        run(edit_file("crlf.txt", "b", "c", workspace=tmp_path))
        assert target.read_bytes() == b"a\r\nc\r\n"

    def test_creates_missing_file_with_empty_old_str(self, tmp_path):
        result = run(edit_file("new/module.py", "", "print('hi')\n", workspace=tmp_path))
        assert result == {"success": True}
        assert (tmp_path / "new" / "module.py").read_text(encoding="utf-8") == "print('hi')\n"

    def test_missing_file_with_nonempty_old_str_is_not_found(self, tmp_path):
        result = run(edit_file("ghost.py", "def f", "def g", workspace=tmp_path))
        assert isinstance(result, ToolError)
        assert not (tmp_path / "ghost.py").exists()

    def test_empty_old_str_prepends_to_existing_file(self, tmp_path):
        target = tmp_path / "head.txt"
        target.write_text("body", encoding="utf-8")
        run(edit_file("head.txt", "", "title\n", workspace=tmp_path))
        assert target.read_text(encoding="utf-8") == "title\nbody"

    def test_identical_strings_rejected_by_schema(self):
        with pytest.raises(ValueError):
            EditFileArgs(path="a.py", old_str="same", new_str="same")
