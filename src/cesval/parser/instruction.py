"""Parser for instruction markup files.

Instruction files are plain text with XML-like section tags
(``<role>...</role>`` and friends), ``{@AGENT: name}`` / ``{@TOOL: name}``
placeholders, and call-like tool invocations inside ``<examples>``.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from cesval.models.instruction import (
    InstructionInfo,
    InstructionReference,
    InstructionSection,
    InstructionToolCall,
    ReferenceType,
)

logger = logging.getLogger(__name__)

KNOWN_SECTIONS = ("role", "persona", "constraints", "taskflow", "examples")
REQUIRED_SECTIONS = ("role",)
EXAMPLES_SECTION = "examples"
LINE_BREAK_RE = re.compile(r"\r?\n")

_SECTION_ALTERNATION = "|".join(KNOWN_SECTIONS)
SECTION_OPEN_RE = re.compile(rf"^<({_SECTION_ALTERNATION})>", re.IGNORECASE)
SECTION_CLOSE_RE = re.compile(rf"</({_SECTION_ALTERNATION})>", re.IGNORECASE)
REFERENCE_RES = {
    ReferenceType.AGENT: re.compile(r"\{@AGENT:\s*([^}]+)\}"),
    ReferenceType.TOOL: re.compile(r"\{@TOOL:\s*([^}]+)\}"),
}
TOOL_CALL_RE = re.compile(r"([a-zA-Z_][a-zA-Z0-9_.]*)\(([^)]*)\)")

# Call-like words that show up in example prose but are never tools
FALSE_POSITIVE_CALLS = frozenset({
    "e", "g", "i", "s", "t",
    "name", "step", "action", "trigger", "subtask",
    "user", "agent", "example", "tool_call",
})


@dataclass
class _OpenSection:
    name: str
    start_line: int


def is_likely_tool_call(operation: str) -> bool:
    """Filter call-like matches down to plausible tool invocations.

    Qualified names (``toolset.operation``) are always accepted. Bare names
    need at least three characters, a lowercase letter, and an uppercase
    letter or underscore.
    """
    if operation.lower() in FALSE_POSITIVE_CALLS:
        return False

    if "." in operation:
        return True

    return (
        len(operation) >= 3
        and re.search(r"[a-z]", operation) is not None
        and re.search(r"[A-Z_]", operation) is not None
    )


class InstructionParser:
    """Single-pass, line-oriented parser for instruction markup."""

    def __init__(self, agent_name: str, file_path: Path):
        self.agent_name = agent_name
        self.file_path = Path(file_path)

    def parse_file(self) -> InstructionInfo:
        """Read and parse the instruction file.

        Returns:
            InstructionInfo: Parsed structure, or an info carrying the read
            error when the file cannot be read
        """
        try:
            content = self.file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read instruction file {self.file_path}: {e}")
            return InstructionInfo(
                agent_name=self.agent_name,
                file_path=self.file_path,
                parse_error=str(e) or "Failed to read instruction file",
            )

        return self.parse_text(content)

    def parse_text(self, content: str) -> InstructionInfo:
        sections: list[InstructionSection] = []
        references: list[InstructionReference] = []
        tool_calls: list[InstructionToolCall] = []
        open_sections: list[_OpenSection] = []

        for line_number, line in enumerate(LINE_BREAK_RE.split(content), start=1):
            stripped = line.strip()

            open_match = SECTION_OPEN_RE.match(stripped)
            if open_match:
                open_sections.append(_OpenSection(open_match.group(1).lower(), line_number))

            close_match = SECTION_CLOSE_RE.search(stripped)
            if close_match:
                closed = self._pop_last_open(open_sections, close_match.group(1).lower())
                if closed is not None:
                    sections.append(InstructionSection(
                        name=closed.name,
                        start_line=closed.start_line,
                        end_line=line_number,
                    ))

            for ref_type, pattern in REFERENCE_RES.items():
                for match in pattern.finditer(line):
                    references.append(InstructionReference(
                        type=ref_type,
                        name=match.group(1).strip(),
                        line=line_number,
                    ))

            if any(section.name == EXAMPLES_SECTION for section in open_sections):
                for match in TOOL_CALL_RE.finditer(line):
                    operation = match.group(1)
                    if is_likely_tool_call(operation):
                        tool_calls.append(InstructionToolCall(operation=operation, line=line_number))

        parse_error = None
        parse_error_line = None
        if open_sections:
            unclosed = ", ".join(f"<{s.name}> at line {s.start_line}" for s in open_sections)
            parse_error = f"Unclosed section(s): {unclosed}"
            parse_error_line = open_sections[0].start_line

        return InstructionInfo(
            agent_name=self.agent_name,
            file_path=self.file_path,
            sections=sections,
            references=references,
            tool_calls=tool_calls,
            parse_error=parse_error,
            parse_error_line=parse_error_line,
        )

    @staticmethod
    def _pop_last_open(open_sections: list[_OpenSection], name: str) -> _OpenSection | None:
        """Remove and return the most recently opened section called ``name``."""
        for index in range(len(open_sections) - 1, -1, -1):
            if open_sections[index].name == name:
                return open_sections.pop(index)
        return None


def parse_instruction_file(file_path: Path, agent_name: str) -> InstructionInfo:
    return InstructionParser(agent_name, file_path).parse_file()
