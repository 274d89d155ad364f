"""Tests for the instruction markup parser."""

from pathlib import Path

import pytest

from cesval.models.instruction import ReferenceType
from cesval.parser.instruction import InstructionParser, is_likely_tool_call, parse_instruction_file


def parse(content: str):
    return InstructionParser("agent", Path("instruction.txt")).parse_text(content)


class TestSections:
    """Test section stack handling."""

    def test_block_and_inline_sections(self):
        """Test sections on their own lines and wrapping inline content."""
        info = parse("<role>You are a fallback agent.</role>\n<persona>\n  Helpful.\n</persona>")

        assert [(s.name, s.start_line, s.end_line) for s in info.sections] == [
            ("role", 1, 1),
            ("persona", 2, 4),
        ]
        assert info.parse_error is None

    def test_tags_are_case_insensitive(self):
        """Test upper-case tags are recognized."""
        info = parse("<ROLE>\nx\n</Role>")

        assert info.section_names == {"role"}

    def test_close_pops_last_same_named_section(self):
        """Test interleaved sections of different names."""
        info = parse("<role>\n<persona>\n</role>\n</persona>")

        assert [(s.name, s.start_line, s.end_line) for s in info.sections] == [
            ("role", 1, 3),
            ("persona", 2, 4),
        ]
        assert info.parse_error is None

    def test_unclosed_sections_aggregated(self):
        """Test every unclosed section is named with its opening line."""
        info = parse("intro\n<role>\n<taskflow>\nsteps")

        assert info.parse_error == "Unclosed section(s): <role> at line 2, <taskflow> at line 3"
        assert info.parse_error_line == 2

    def test_unmatched_close_ignored(self):
        """Test a closer without an opener is not an error."""
        info = parse("</examples>\n<role>\nx\n</role>")

        assert info.parse_error is None
        assert info.section_names == {"role"}

    def test_unknown_tags_ignored(self):
        """Test tags outside the known set are not sections."""
        info = parse('<role>\n<subtask name="Main">\n</role>')

        assert info.section_names == {"role"}


class TestReferences:
    """Test placeholder extraction."""

    def test_agent_and_tool_references(self):
        """Test both placeholder forms with line numbers."""
        info = parse("<role>\nAsk {@AGENT: billing_agent} or use {@TOOL:end_session}.\n</role>")

        assert [(r.type, r.name, r.line) for r in info.references] == [
            (ReferenceType.AGENT, "billing_agent", 2),
            (ReferenceType.TOOL, "end_session", 2),
        ]

    def test_references_outside_sections(self):
        """Test placeholders are scanned regardless of section structure."""
        info = parse("{@AGENT: a}\n{@AGENT: b}")

        assert [r.name for r in info.references_of(ReferenceType.AGENT)] == ["a", "b"]

    def test_only_newlines_split_lines(self):
        """Test form feeds and other Unicode separators do not shift line numbers."""
        info = parse("<role>\x0cIntro\x0b\u2028text\r\n{@AGENT: helper}\x85\n</role>")

        assert [(r.name, r.line) for r in info.references] == [("helper", 2)]
        assert [(s.name, s.start_line, s.end_line) for s in info.sections] == [("role", 1, 3)]


class TestToolCalls:
    """Test call extraction inside <examples>."""

    def test_calls_only_inside_examples(self):
        """Test calls outside <examples> are ignored."""
        info = parse("\n".join([
            "<role>",
            "call searchBranches(city) here",
            "</role>",
            "<examples>",
            '<tool_call>location.searchBranches(city="Berlin")</tool_call>',
            "<tool_call>end_session()</tool_call>",
            "</examples>",
            "after_examples(x)",
        ]))

        assert [(c.operation, c.line) for c in info.tool_calls] == [
            ("location.searchBranches", 5),
            ("end_session", 6),
        ]
        assert info.tool_calls[0].toolset == "location"
        assert info.tool_calls[0].operation_name == "searchBranches"
        assert info.tool_calls[1].toolset is None

    def test_false_positives_filtered(self):
        """Test prose-like calls are dropped."""
        info = parse("<examples>\nThe user (e.g. Bob) said hi(there) and step(one) or Subtask(x)\n</examples>")

        assert info.tool_calls == []

    @pytest.mark.parametrize("operation,expected", [
        ("location.search", True),
        ("getBranch", True),
        ("end_session", True),
        ("name", False),
        ("Step", False),
        ("foo", False),
        ("ab", False),
        ("ABC", False),
    ])
    def test_is_likely_tool_call(self, operation, expected):
        """Test the tool-call heuristic."""
        assert is_likely_tool_call(operation) is expected


class TestParseFile:
    """Test file-level parsing."""

    def test_parse_file(self, tmp_path):
        """Test reading from disk."""
        file_path = tmp_path / "instruction.txt"
        file_path.write_text("<role>\nx\n</role>\n", encoding="utf-8")

        info = parse_instruction_file(file_path, "main")

        assert info.agent_name == "main"
        assert info.file_path == file_path
        assert info.section_names == {"role"}

    def test_unreadable_file(self, tmp_path):
        """Test a read failure yields an info carrying the error."""
        info = parse_instruction_file(tmp_path / "missing.txt", "main")

        assert info.parse_error
        assert info.sections == []
