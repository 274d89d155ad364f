"""Tests for path normalization and classification helpers."""

from pathlib import Path

import pytest

from cesval.utils.paths import (
    get_depth_below_top_level,
    get_top_level_segment,
    is_likely_inline_global_instruction,
    normalize_path,
    resolve_package_path,
    split_relative_path,
    to_relative_path,
)


class TestNormalization:
    """Test separator normalization."""

    def test_backslashes(self):
        """Test Windows separators become forward slashes."""
        assert normalize_path("agents\\root\\instruction.txt") == "agents/root/instruction.txt"

    def test_empty(self):
        """Test empty input passes through."""
        assert normalize_path("") == ""

    def test_relative_path(self, tmp_path):
        """Test relative paths are POSIX-style."""
        assert to_relative_path(tmp_path, tmp_path / "agents" / "a" / "a.json") == "agents/a/a.json"

    def test_split_and_top_level(self):
        """Test segment helpers ignore empty segments."""
        assert split_relative_path("agents//a/") == ["agents", "a"]
        assert get_top_level_segment("toolsets/x/x.json") == "toolsets"
        assert get_top_level_segment("") is None


class TestDepth:
    """Test depth below the top-level folder."""

    @pytest.mark.parametrize("relative_path,expected", [
        ("app.yaml", 0),
        ("agents/a", 1),
        ("agents/a/instruction.txt", 2),
        ("toolsets/t/open_api_toolset/schema.yaml", 3),
        ("agents\\a\\deep\\file.txt", 3),
    ])
    def test_depth(self, relative_path, expected):
        """Test the top-level folder itself is not counted."""
        assert get_depth_below_top_level(relative_path) == expected


class TestResolvePackagePath:
    """Test manifest path resolution."""

    def test_relative(self, tmp_path):
        """Test relative paths join the root and normalize."""
        assert resolve_package_path(tmp_path, " agents/./a/../a/instruction.txt ") == (
            tmp_path / "agents" / "a" / "instruction.txt"
        )

    def test_absolute(self, tmp_path):
        """Test absolute paths are kept."""
        target = tmp_path / "elsewhere" / "file.txt"
        assert resolve_package_path(Path("/pkg"), str(target)) == target


class TestInlineGlobalInstruction:
    """Test the inline-text heuristic for globalInstruction."""

    @pytest.mark.parametrize("value,expected", [
        ("", False),
        ("   ", False),
        ("global_instruction.txt", False),
        ("a_very_long_global_instruction_file.txt", False),
        ("instructions/global", False),
        ("short value", False),
        ("Always answer politely and briefly", True),
        ("line one\nline two", True),
    ])
    def test_heuristic(self, value, expected):
        """Test multi-line and long single-line values are inline text."""
        assert is_likely_inline_global_instruction(value) is expected
