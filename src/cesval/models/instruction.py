"""Models for parsed instruction markup files."""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

GLOBAL_INSTRUCTION_AGENT = "__global__"


class ReferenceType(str, Enum):
    AGENT = "agent"
    TOOL = "tool"


class InstructionSection(BaseModel):
    """A closed section with its 1-based line span."""
    name: str
    start_line: int
    end_line: int


class InstructionReference(BaseModel):
    """A ``{@AGENT: name}`` or ``{@TOOL: name}`` placeholder."""
    type: ReferenceType
    name: str
    line: int


class InstructionToolCall(BaseModel):
    """A call-like expression found inside an ``<examples>`` section."""
    operation: str
    line: int

    @property
    def toolset(self) -> str | None:
        parts = self.operation.split(".")
        return parts[0] if len(parts) > 1 else None

    @property
    def operation_name(self) -> str:
        parts = self.operation.split(".")
        return parts[1] if len(parts) > 1 else parts[0]


class InstructionInfo(BaseModel):
    """Parsed structure of one instruction file."""
    agent_name: str
    file_path: Path
    sections: list[InstructionSection] = Field(default_factory=list)
    references: list[InstructionReference] = Field(default_factory=list)
    tool_calls: list[InstructionToolCall] = Field(default_factory=list)
    parse_error: str | None = None
    parse_error_line: int | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_global(self) -> bool:
        return self.agent_name == GLOBAL_INSTRUCTION_AGENT

    @property
    def section_names(self) -> set[str]:
        return {section.name for section in self.sections}

    def references_of(self, ref_type: ReferenceType) -> list[InstructionReference]:
        return [ref for ref in self.references if ref.type == ref_type]
