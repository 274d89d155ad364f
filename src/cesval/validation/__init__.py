"""Validation layer for agent packages.

A fixed battery of independent rules runs against an indexed ``PackageModel``;
findings are returned sorted by (file, line, code).
"""

from .framework import (
    IssueSeverity,
    ValidationFramework,
    ValidationIssue,
    ValidationResult,
    ValidationRule,
    ValidationStatus,
    index_and_validate,
    run_rules,
    validate_package,
)
from .rules import (
    AgentRule,
    EnvironmentRule,
    EvaluationRule,
    GlobalInstructionRule,
    GuardrailReferenceRule,
    InstructionRule,
    ManifestRule,
    NestingDepthRule,
    RootAgentRule,
    ToolsetRule,
    UnsupportedDirectoriesRule,
    default_rules,
)

__all__ = [
    "IssueSeverity",
    "ValidationFramework",
    "ValidationIssue",
    "ValidationResult",
    "ValidationRule",
    "ValidationStatus",
    "index_and_validate",
    "run_rules",
    "validate_package",
    "ManifestRule",
    "RootAgentRule",
    "GlobalInstructionRule",
    "GuardrailReferenceRule",
    "UnsupportedDirectoriesRule",
    "NestingDepthRule",
    "AgentRule",
    "ToolsetRule",
    "EvaluationRule",
    "InstructionRule",
    "EnvironmentRule",
    "default_rules",
]
