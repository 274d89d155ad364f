"""Validation rules for agent packages.

Each rule checks one structural or referential property of a ``PackageModel``.
Line numbers are best effort: they point at the first line mentioning the
offending token.
"""

import logging
import re
from pathlib import Path
from typing import Any

from ..config import CesvalConfig
from ..models.instruction import ReferenceType
from ..models.manifests import FieldIssue, GuardrailManifest, load_record
from ..models.package import PackageModel
from ..parser.documents import (
    find_line_containing,
    has_openapi_version_marker,
    parse_json_file,
    parse_openapi_file,
)
from ..parser.instruction import REQUIRED_SECTIONS
from ..utils.paths import (
    get_depth_below_top_level,
    get_top_level_segment,
    is_likely_inline_global_instruction,
    normalize_path,
    resolve_package_path,
    to_relative_path,
)
from .framework import ValidationResult, ValidationRule

logger = logging.getLogger(__name__)

LOCALHOST_RE = re.compile(r"localhost|127\.0\.0\.1", re.IGNORECASE)
OPENAPI_MARKER_RE = re.compile(r"openapi|swagger")


def _report_field_issues(result: ValidationResult, code: str, subject: str,
                         file_path: Path, field_issues: list[FieldIssue]) -> None:
    for issue in field_issues:
        result.error(
            code,
            f"{subject}: field '{issue.location}' has an invalid value ({issue.message})",
            file_path,
            find_line_containing(file_path, issue.field),
        )


class ManifestRule(ValidationRule):
    """Validate presence, format and parseability of the root manifest."""

    @property
    def name(self) -> str:
        return "manifest"

    def validate(self, model: PackageModel, config: CesvalConfig, result: ValidationResult) -> None:
        if model.manifest_path is None:
            result.error(
                "CES_MANIFEST_MISSING",
                "Package must contain app.yaml or app.json at root",
                model.default_manifest_path,
                1,
            )
            return

        if model.has_app_json and model.has_app_yaml:
            result.warning(
                "CES_MANIFEST_BOTH_PRESENT",
                "Both app.yaml and app.json are present. app.yaml takes precedence.",
                model.manifest_path,
                1,
            )
        elif model.has_app_json:
            result.warning(
                "CES_APP_JSON_ONLY",
                "app.json is supported by this validator, but Agent Studio import "
                "compatibility is typically app.yaml-first.",
                model.manifest_path,
                1,
            )

        if model.manifest_invalid_root:
            result.error(
                "CES_MANIFEST_INVALID_ROOT",
                "Manifest root must be an object",
                model.manifest_path,
                1,
            )
            return

        if model.manifest_error:
            result.error(
                "CES_MANIFEST_PARSE_ERROR",
                f"Manifest parse error: {model.manifest_error}",
                model.manifest_path,
                1,
            )
            return

        _report_field_issues(
            result, "CES_MANIFEST_FIELD_INVALID", "Manifest",
            model.manifest_path, model.manifest_field_issues,
        )


class RootAgentRule(ValidationRule):
    """Validate that rootAgent is declared and resolves to an agent folder."""

    @property
    def name(self) -> str:
        return "root_agent"

    def validate(self, model: PackageModel, config: CesvalConfig, result: ValidationResult) -> None:
        if model.manifest is None:
            return  # Reported by ManifestRule

        root_agent = model.manifest.root_agent
        line = find_line_containing(model.manifest_path, "rootAgent")

        if root_agent is None or not root_agent.strip():
            if any(issue.field == "rootAgent" for issue in model.manifest_field_issues):
                return
            result.error(
                "CES_ROOT_AGENT_MISSING",
                "Manifest must define a non-empty rootAgent",
                model.manifest_path,
                line,
            )
            return

        agent_dir = model.root_path / "agents" / root_agent
        if not model.has_directory(agent_dir):
            result.error(
                "CES_ROOT_AGENT_DIR_MISSING",
                f"rootAgent '{root_agent}' must exist at agents/{root_agent}",
                model.manifest_path,
                line,
            )
            return

        agent_manifest = agent_dir / f"{root_agent}.json"
        if not model.has_file(agent_manifest):
            result.error(
                "CES_ROOT_AGENT_MANIFEST_MISSING",
                f"rootAgent manifest missing at agents/{root_agent}/{root_agent}.json",
                agent_manifest,
                1,
            )


class GlobalInstructionRule(ValidationRule):
    """Validate that a globalInstruction file reference exists."""

    @property
    def name(self) -> str:
        return "global_instruction"

    def validate(self, model: PackageModel, config: CesvalConfig, result: ValidationResult) -> None:
        if model.manifest is None:
            return

        value = model.manifest.global_instruction
        if value is None or not value.strip() or is_likely_inline_global_instruction(value):
            return

        declared = normalize_path(value.strip())
        if not model.path_exists(resolve_package_path(model.root_path, declared)):
            result.error(
                "CES_GLOBAL_INSTRUCTION_MISSING",
                f"globalInstruction path does not exist: {declared}",
                model.manifest_path,
                find_line_containing(model.manifest_path, "globalInstruction"),
            )


def resolve_guardrail_manifest_path(model: PackageModel, reference: str) -> Path | None:
    """Map a guardrail reference to its manifest file.

    Tries the literal name and a whitespace-to-underscore variant, each as
    ``guardrails/<n>/<n>.json`` and then ``guardrails/<n>.json``.
    """
    candidates = dict.fromkeys([reference, re.sub(r"\s+", "_", reference)])
    guardrails_dir = model.root_path / "guardrails"

    for candidate in candidates:
        nested_path = guardrails_dir / candidate / f"{candidate}.json"
        if model.has_file(nested_path):
            return nested_path

        flat_path = guardrails_dir / f"{candidate}.json"
        if model.has_file(flat_path):
            return flat_path

    return None


class GuardrailReferenceRule(ValidationRule):
    """Validate that guardrails named in the manifest resolve to manifests."""

    @property
    def name(self) -> str:
        return "guardrail_references"

    def validate(self, model: PackageModel, config: CesvalConfig, result: ValidationResult) -> None:
        if model.manifest is None:
            return

        for reference in model.manifest.guardrails or []:
            if not reference.strip():
                continue

            guardrail_path = resolve_guardrail_manifest_path(model, reference)
            if guardrail_path is None:
                result.error(
                    "CES_GUARDRAIL_REFERENCE_MISSING",
                    f"guardrail reference '{reference}' does not map to an existing guardrail manifest",
                    model.manifest_path,
                    find_line_containing(model.manifest_path, reference),
                )
                continue

            parsed = parse_json_file(guardrail_path)
            if not parsed.ok:
                result.error(
                    "CES_GUARDRAIL_JSON_INVALID",
                    f"guardrail manifest is invalid JSON: {parsed.error}",
                    guardrail_path,
                    1,
                )
                continue

            guardrail, field_issues = load_record(GuardrailManifest, parsed.data)
            _report_field_issues(
                result, "CES_GUARDRAIL_FIELD_INVALID", f"Guardrail '{reference}'",
                guardrail_path, field_issues,
            )
            result.increment_counter("guardrails_resolved")

            if guardrail.display_name is None:
                continue

            display_name = guardrail.display_name.strip()
            if display_name != reference.strip():
                result.warning(
                    "CES_GUARDRAIL_DISPLAYNAME_MISMATCH",
                    f"guardrail displayName '{display_name}' differs from manifest "
                    f"reference '{reference.strip()}'",
                    guardrail_path,
                    find_line_containing(guardrail_path, "displayName"),
                )


class AgentRule(ValidationRule):
    """Validate agent manifests, instruction paths, child agents and toolset references."""

    @property
    def name(self) -> str:
        return "agents"

    def validate(self, model: PackageModel, config: CesvalConfig, result: ValidationResult) -> None:
        agent_names = model.agent_names
        toolset_names = model.toolset_names

        for agent in model.agents:
            if agent.manifest_error:
                result.error(
                    "CES_AGENT_MANIFEST_INVALID",
                    f"Agent manifest error for '{agent.name}': {agent.manifest_error}",
                    agent.manifest_path,
                    1,
                )

            manifest = agent.manifest
            if manifest is None:
                continue

            _report_field_issues(
                result, "CES_AGENT_FIELD_INVALID", f"Agent '{agent.name}'",
                agent.manifest_path, agent.field_issues,
            )
            self._validate_instruction(model, agent, result)

            for child in manifest.child_agents or []:
                if child.strip() and child not in agent_names:
                    result.error(
                        "CES_CHILD_AGENT_MISSING",
                        f"childAgent '{child}' does not exist under agents/",
                        agent.manifest_path,
                        find_line_containing(agent.manifest_path, child),
                    )

            for toolset_name in manifest.toolset_names():
                if toolset_name not in toolset_names:
                    result.error(
                        "CES_AGENT_TOOLSET_REFERENCE_MISSING",
                        f"Agent '{agent.name}' references missing toolset '{toolset_name}'",
                        agent.manifest_path,
                        find_line_containing(agent.manifest_path, toolset_name),
                    )

    @staticmethod
    def _validate_instruction(model: PackageModel, agent, result: ValidationResult) -> None:
        line = find_line_containing(agent.manifest_path, "instruction")
        instruction = agent.manifest.instruction

        if instruction is None or not instruction.strip():
            if not agent.has_field_issue("instruction"):
                result.error(
                    "CES_AGENT_INSTRUCTION_MISSING",
                    f"Agent '{agent.name}' must define instruction path",
                    agent.manifest_path,
                    line,
                )
            return

        expected = f"agents/{agent.name}/instruction.txt"
        declared = normalize_path(instruction.strip())
        if declared != expected:
            result.error(
                "CES_AGENT_INSTRUCTION_PATH_MISMATCH",
                f"Agent '{agent.name}' instruction should be '{expected}'",
                agent.manifest_path,
                line,
            )

        if not model.path_exists(resolve_package_path(model.root_path, declared)):
            result.error(
                "CES_AGENT_INSTRUCTION_FILE_MISSING",
                f"Instruction file does not exist: {declared}",
                agent.manifest_path,
                line,
            )


class ToolsetRule(ValidationRule):
    """Validate toolset manifests and their OpenAPI schemas."""

    @property
    def name(self) -> str:
        return "toolsets"

    def validate(self, model: PackageModel, config: CesvalConfig, result: ValidationResult) -> None:
        for toolset in model.toolsets:
            if toolset.manifest_error:
                result.error(
                    "CES_TOOLSET_MANIFEST_INVALID",
                    f"Toolset '{toolset.name}' manifest error: {toolset.manifest_error}",
                    toolset.manifest_path,
                    1,
                )
                continue

            _report_field_issues(
                result, "CES_TOOLSET_FIELD_INVALID", f"Toolset '{toolset.name}'",
                toolset.manifest_path, toolset.field_issues,
            )

            schema_path = self._resolve_schema_path(model, toolset, result)

            if schema_path is None and model.has_directory(toolset.open_api_dir_path):
                result.error(
                    "CES_OPENAPI_SCHEMA_NOT_FOUND",
                    f"Toolset '{toolset.name}' has open_api_toolset directory but no schema file",
                    toolset.manifest_path,
                    find_line_containing(toolset.manifest_path, "openApiToolset"),
                )
                continue

            if schema_path is not None:
                self._validate_schema(schema_path, result)

    @staticmethod
    def _resolve_schema_path(model: PackageModel, toolset, result: ValidationResult) -> Path | None:
        """Explicit schema path if declared (and existing), else the auto-detected file."""
        declared = toolset.manifest.declared_schema_path if toolset.manifest else None
        if not declared:
            return toolset.auto_detected_schema_path

        normalized = normalize_path(declared)
        schema_path = resolve_package_path(model.root_path, normalized)
        if model.path_exists(schema_path):
            return schema_path

        result.error(
            "CES_OPENAPI_SCHEMA_MISSING",
            f"Declared OpenAPI schema does not exist: {normalized}",
            toolset.manifest_path,
            find_line_containing(toolset.manifest_path, "openApiSchema"),
        )
        return None

    @staticmethod
    def _validate_schema(schema_path: Path, result: ValidationResult) -> None:
        parsed = parse_openapi_file(schema_path)

        if parsed.invalid_root:
            result.error(
                "CES_OPENAPI_INVALID_ROOT",
                "OpenAPI schema root must be an object",
                schema_path,
                1,
            )
            return

        if parsed.error:
            result.error(
                "CES_OPENAPI_PARSE_ERROR",
                f"OpenAPI schema parse error: {parsed.error}",
                schema_path,
                1,
            )
            return

        if not has_openapi_version_marker(parsed.data):
            result.error(
                "CES_OPENAPI_VERSION_MISSING",
                "OpenAPI schema must define either 'openapi' or 'swagger' at top level",
                schema_path,
                find_line_containing(schema_path, OPENAPI_MARKER_RE),
            )
            return

        result.increment_counter("openapi_schemas_valid")


class UnsupportedDirectoriesRule(ValidationRule):
    """Flag top-level directories the import pipeline does not accept."""

    @property
    def name(self) -> str:
        return "unsupported_directories"

    def validate(self, model: PackageModel, config: CesvalConfig, result: ValidationResult) -> None:
        target = model.default_manifest_path

        for dir_name in config.validation.unsupported_directories:
            if dir_name not in model.top_level_dirs:
                continue

            result.error(
                "CES_UNSUPPORTED_IMPORT_DIRECTORY",
                f"Directory '{dir_name}/' is not supported in CES import packages",
                target,
                find_line_containing(target, dir_name) or 1,
            )


class NestingDepthRule(ValidationRule):
    """Warn about files nested too deeply below their top-level folder."""

    ROOT_LEVEL_DIRS = ("agents", "tools", "examples")

    @property
    def name(self) -> str:
        return "nesting_depth"

    def _limits(self, config: CesvalConfig) -> dict[str, tuple[str, int]]:
        """Top-level folder -> (issue code, maximum depth)."""
        validation = config.validation
        limits = {
            name: ("CES_NESTING_DEPTH_EXCEEDED", validation.root_depth_limit)
            for name in self.ROOT_LEVEL_DIRS
        }
        limits["toolsets"] = ("CES_TOOLSET_NESTING_DEPTH_EXCEEDED", validation.toolset_depth_limit)
        limits["guardrails"] = ("CES_GUARDRAIL_NESTING_DEPTH_EXCEEDED", validation.guardrail_depth_limit)
        return limits

    def validate(self, model: PackageModel, config: CesvalConfig, result: ValidationResult) -> None:
        limits = self._limits(config)

        for file_path in model.files:
            relative_path = to_relative_path(model.root_path, file_path)
            top_level = get_top_level_segment(relative_path)
            if top_level not in limits:
                continue

            code, limit = limits[top_level]
            depth = get_depth_below_top_level(relative_path)
            if depth > limit:
                result.warning(
                    code,
                    f"{top_level}/ contains file nested {depth} levels deep; expected max {limit}",
                    file_path,
                    1,
                )


def contains_localhost_reference(value: Any) -> bool:
    """Whether any string anywhere inside ``value`` mentions localhost or 127.0.0.1."""
    if isinstance(value, str):
        return LOCALHOST_RE.search(value) is not None

    if isinstance(value, list):
        return any(contains_localhost_reference(entry) for entry in value)

    if isinstance(value, dict):
        return any(contains_localhost_reference(entry) for entry in value.values())

    return False


class EnvironmentRule(ValidationRule):
    """Validate the optional environment.json."""

    @property
    def name(self) -> str:
        return "environment"

    def validate(self, model: PackageModel, config: CesvalConfig, result: ValidationResult) -> None:
        environment = model.environment
        if environment is None:
            return  # environment.json is optional

        file_path = environment.file_path

        if environment.invalid_root:
            result.error(
                "CES_ENVIRONMENT_INVALID_ROOT",
                "environment.json root must be an object",
                file_path,
                1,
            )
            return

        if environment.error or environment.data is None:
            result.error(
                "CES_ENVIRONMENT_PARSE_ERROR",
                f"environment.json parse error: {environment.error}",
                file_path,
                1,
            )
            return

        toolsets = environment.data.get("toolsets")
        if not isinstance(toolsets, dict):
            result.error(
                "CES_ENVIRONMENT_TOOLSETS_INVALID",
                "environment.json must contain a 'toolsets' object",
                file_path,
                find_line_containing(file_path, "toolsets"),
            )
        else:
            for toolset_name, entry in toolsets.items():
                self._validate_toolset_entry(file_path, toolset_name, entry, result)

        if config.validation.warn_on_localhost and contains_localhost_reference(environment.data):
            result.warning(
                "CES_ENVIRONMENT_LOCALHOST_WARNING",
                "environment.json contains localhost or 127.0.0.1 URLs; use deployed endpoints before import",
                file_path,
                1,
            )

    @staticmethod
    def _validate_toolset_entry(file_path: Path, toolset_name: str, entry: Any,
                                result: ValidationResult) -> None:
        if not isinstance(entry, dict):
            result.error(
                "CES_ENVIRONMENT_TOOLSET_ENTRY_INVALID",
                f"environment.json toolsets.{toolset_name} must be an object",
                file_path,
                find_line_containing(file_path, toolset_name),
            )
            return

        if "openApiToolset" not in entry:
            return

        open_api_toolset = entry["openApiToolset"]
        if not isinstance(open_api_toolset, dict):
            result.error(
                "CES_ENVIRONMENT_OPENAPI_TOOLSET_INVALID",
                f"environment.json toolsets.{toolset_name}.openApiToolset must be an object",
                file_path,
                find_line_containing(file_path, "openApiToolset"),
            )
            return

        if "url" in open_api_toolset and not isinstance(open_api_toolset["url"], str):
            result.error(
                "CES_ENVIRONMENT_OPENAPI_URL_INVALID",
                f"environment.json toolsets.{toolset_name}.openApiToolset.url must be a string",
                file_path,
                find_line_containing(file_path, "url"),
            )


class EvaluationRule(ValidationRule):
    """Validate evaluation manifests and their expected tool calls."""

    @property
    def name(self) -> str:
        return "evaluations"

    def validate(self, model: PackageModel, config: CesvalConfig, result: ValidationResult) -> None:
        inventory = model.tool_inventory
        known_tools = ", ".join(sorted(inventory.direct_tools))

        for evaluation in model.evaluations:
            if evaluation.manifest_error:
                result.error(
                    "CES_EVALUATION_MANIFEST_INVALID",
                    f"Evaluation '{evaluation.name}' manifest error: {evaluation.manifest_error}",
                    evaluation.manifest_path,
                    1,
                )
                continue

            manifest = evaluation.manifest
            if manifest is None:
                continue

            _report_field_issues(
                result, "CES_EVALUATION_FIELD_INVALID", f"Evaluation '{evaluation.name}'",
                evaluation.manifest_path, evaluation.field_issues,
            )

            if manifest.display_name is not None and manifest.display_name != evaluation.name:
                result.warning(
                    "CES_EVALUATION_DISPLAYNAME_MISMATCH",
                    f"Evaluation displayName '{manifest.display_name}' differs from folder "
                    f"name '{evaluation.name}'",
                    evaluation.manifest_path,
                    find_line_containing(evaluation.manifest_path, "displayName"),
                )

            for turn_index, tool_name in manifest.expected_tool_calls():
                prefix = f"Evaluation '{evaluation.name}' turn {turn_index + 1}: toolCall '{tool_name}'"
                line = find_line_containing(evaluation.manifest_path, tool_name)

                # OpenAPI membership wins over direct-tool membership
                if inventory.is_openapi_operation(tool_name):
                    result.error(
                        "CES_EVALUATION_TOOLCALL_OPENAPI_OPERATION",
                        f"{prefix} is an OpenAPI operation, not a direct tool. "
                        f"Evaluations must expect direct tools only.",
                        evaluation.manifest_path,
                        line,
                    )
                elif inventory.direct_tools and tool_name not in inventory.direct_tools:
                    result.error(
                        "CES_EVALUATION_TOOLCALL_UNKNOWN",
                        f"{prefix} not found in any agent's tools list. Known tools: [{known_tools}]",
                        evaluation.manifest_path,
                        line,
                    )


class InstructionRule(ValidationRule):
    """Validate instruction structure and the names it references."""

    @property
    def name(self) -> str:
        return "instructions"

    def validate(self, model: PackageModel, config: CesvalConfig, result: ValidationResult) -> None:
        agent_names = model.agent_names
        toolset_names = model.toolset_names
        direct_tools = model.direct_tools

        for info in model.instructions:
            if info.is_global:
                continue

            subject = f"Instruction for '{info.agent_name}'"

            if info.parse_error:
                result.error(
                    "CES_INSTRUCTION_PARSE_ERROR",
                    f"Instruction parse error for '{info.agent_name}': {info.parse_error}",
                    info.file_path,
                    info.parse_error_line or 1,
                )

            for required in REQUIRED_SECTIONS:
                if required not in info.section_names:
                    result.warning(
                        "CES_INSTRUCTION_MISSING_SECTION",
                        f"{subject} is missing required <{required}> section",
                        info.file_path,
                        1,
                    )

            for ref in info.references_of(ReferenceType.AGENT):
                if ref.name not in agent_names:
                    result.error(
                        "CES_INSTRUCTION_AGENT_REF_UNKNOWN",
                        f"{subject} references unknown agent '{ref.name}' at line {ref.line}",
                        info.file_path,
                        ref.line,
                    )

            for ref in info.references_of(ReferenceType.TOOL):
                if direct_tools and ref.name not in direct_tools:
                    result.warning(
                        "CES_INSTRUCTION_TOOL_REF_UNKNOWN",
                        f"{subject} references unknown tool '{ref.name}' at line {ref.line}",
                        info.file_path,
                        ref.line,
                    )

            for call in info.tool_calls:
                if call.toolset is not None:
                    if call.toolset not in toolset_names:
                        result.warning(
                            "CES_INSTRUCTION_TOOLCALL_UNKNOWN_TOOLSET",
                            f"{subject}: tool_call '{call.operation}' references unknown toolset "
                            f"'{call.toolset}' at line {call.line}",
                            info.file_path,
                            call.line,
                        )
                elif direct_tools and call.operation_name not in direct_tools:
                    result.warning(
                        "CES_INSTRUCTION_TOOLCALL_UNKNOWN_TOOL",
                        f"{subject}: tool_call '{call.operation}' is not a known direct tool "
                        f"at line {call.line}",
                        info.file_path,
                        call.line,
                    )


def default_rules() -> list[ValidationRule]:
    """The standard rule battery, in execution order."""
    return [
        ManifestRule(),
        RootAgentRule(),
        GlobalInstructionRule(),
        GuardrailReferenceRule(),
        UnsupportedDirectoriesRule(),
        NestingDepthRule(),
        AgentRule(),
        ToolsetRule(),
        EvaluationRule(),
        InstructionRule(),
        EnvironmentRule(),
    ]
