"""Pydantic data models for agent packages."""

from cesval.models.instruction import (
    GLOBAL_INSTRUCTION_AGENT,
    InstructionInfo,
    InstructionReference,
    InstructionSection,
    InstructionToolCall,
    ReferenceType,
)
from cesval.models.manifests import (
    AgentManifest,
    AgentToolsetRef,
    AppManifest,
    EvaluationManifest,
    FieldIssue,
    GuardrailManifest,
    ScriptToolManifest,
    ToolsetManifest,
    load_record,
)
from cesval.models.package import (
    AgentInfo,
    EnvironmentInfo,
    EvaluationInfo,
    ManifestFormat,
    PackageModel,
    ScriptToolInfo,
    ToolInventory,
    ToolsetInfo,
)

__all__ = [
    "GLOBAL_INSTRUCTION_AGENT",
    "InstructionInfo",
    "InstructionReference",
    "InstructionSection",
    "InstructionToolCall",
    "ReferenceType",
    "AgentManifest",
    "AgentToolsetRef",
    "AppManifest",
    "EvaluationManifest",
    "FieldIssue",
    "GuardrailManifest",
    "ScriptToolManifest",
    "ToolsetManifest",
    "load_record",
    "AgentInfo",
    "EnvironmentInfo",
    "EvaluationInfo",
    "ManifestFormat",
    "PackageModel",
    "ScriptToolInfo",
    "ToolInventory",
    "ToolsetInfo",
]
