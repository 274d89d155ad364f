"""Agent package indexing and model construction."""

import logging
import os
from pathlib import Path

from cesval.models.instruction import GLOBAL_INSTRUCTION_AGENT, InstructionInfo
from cesval.models.manifests import (
    AgentManifest,
    AppManifest,
    EvaluationManifest,
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
from cesval.parser.documents import (
    SCHEMA_EXTENSIONS,
    parse_file_by_extension,
    parse_json_file,
)
from cesval.parser.instruction import parse_instruction_file

logger = logging.getLogger(__name__)

APP_YAML = "app.yaml"
APP_JSON = "app.json"
ENVIRONMENT_FILE = "environment.json"
GLOBAL_INSTRUCTION_FILE = "global_instruction.txt"
INSTRUCTION_FILE = "instruction.txt"
OPEN_API_DIR = "open_api_toolset"


def _sorted_entries(directory: Path) -> list[os.DirEntry]:
    with os.scandir(directory) as entries:
        return sorted(entries, key=lambda entry: entry.name)


def collect_immediate_directories(parent: Path) -> list[Path]:
    """Immediate subdirectories of ``parent``, sorted by name; empty if missing."""
    if not parent.is_dir():
        return []

    return [Path(entry.path) for entry in _sorted_entries(parent) if entry.is_dir()]


def find_first_schema_file(open_api_dir: Path) -> Path | None:
    """First file under ``open_api_dir`` with a recognized schema extension."""
    if not open_api_dir.is_dir():
        return None

    for entry in _sorted_entries(open_api_dir):
        if entry.is_file() and Path(entry.name).suffix.lower() in SCHEMA_EXTENSIONS:
            return Path(entry.path)

    return None


def build_tool_inventory(
    agents: list[AgentInfo],
    toolsets: list[ToolsetInfo],
    script_tools: list[ScriptToolInfo],
) -> ToolInventory:
    """Fold agent, toolset and script-tool manifests into the tool inventory.

    Direct tools come from each agent's ``tools`` list and each script-tool
    folder name. OpenAPI operations come from ``toolIds`` declared on agent
    toolset references and on toolset manifests, kept both bare and
    namespaced by toolset name.
    """
    direct_tools: set[str] = set()
    operations: set[str] = set()
    namespaced: set[str] = set()

    def add_operations(toolset_name: str | None, tool_ids: list[str] | None) -> None:
        for tool_id in tool_ids or []:
            if not tool_id.strip():
                continue
            operations.add(tool_id)
            if toolset_name:
                namespaced.add(f"{toolset_name}.{tool_id}")

    for agent in agents:
        if agent.manifest is None:
            continue

        direct_tools.update(tool for tool in agent.manifest.tools or [] if tool.strip())

        for entry in agent.manifest.toolsets or []:
            if not isinstance(entry, str):
                add_operations(entry.toolset, entry.tool_ids)

    for toolset in toolsets:
        if toolset.manifest is not None:
            add_operations(toolset.name, toolset.manifest.tool_ids)

    direct_tools.update(tool.name for tool in script_tools)

    return ToolInventory(
        direct_tools=frozenset(direct_tools),
        openapi_operations=frozenset(operations),
        openapi_namespaced_operations=frozenset(namespaced),
    )


class PackageIndexer:
    """Walks a package root and builds its ``PackageModel``."""

    def __init__(self, root_path: Path):
        """Initialize package indexer.

        Args:
            root_path: Directory holding the root manifest
        """
        self.root_path = Path(root_path).resolve()

    def build(self) -> PackageModel:
        """Index the package.

        Per-entity read and parse failures are recorded on the entity. Only
        unexpected failures (e.g. a directory vanishing mid-scan) propagate.
        """
        logger.info(f"Indexing agent package at {self.root_path}")

        app_yaml = self.root_path / APP_YAML
        app_json = self.root_path / APP_JSON
        has_app_yaml = app_yaml.is_file()
        has_app_json = app_json.is_file()

        if has_app_yaml:
            manifest_path, manifest_format = app_yaml, ManifestFormat.YAML
        elif has_app_json:
            manifest_path, manifest_format = app_json, ManifestFormat.JSON
        else:
            manifest_path, manifest_format = None, ManifestFormat.NONE

        manifest_doc = parse_file_by_extension(manifest_path) if manifest_path else None
        manifest = None
        manifest_field_issues = []
        if manifest_doc is not None and manifest_doc.ok:
            manifest, manifest_field_issues = load_record(AppManifest, manifest_doc.data)

        files, directories = self._collect_paths()
        top_level_files, top_level_dirs = self._collect_top_level()

        agents = self._collect_agents()
        toolsets = self._collect_toolsets()
        evaluations = self._collect_evaluations()
        script_tools = self._collect_script_tools()

        logger.info(
            f"Found {len(agents)} agents, {len(toolsets)} toolsets, "
            f"{len(evaluations)} evaluations, {len(script_tools)} script tools"
        )

        return PackageModel(
            root_path=self.root_path,
            has_app_yaml=has_app_yaml,
            has_app_json=has_app_json,
            manifest_path=manifest_path,
            manifest_format=manifest_format,
            manifest_data=manifest_doc.data if manifest_doc else None,
            manifest_error=manifest_doc.error if manifest_doc else None,
            manifest_invalid_root=manifest_doc.invalid_root if manifest_doc else False,
            manifest=manifest,
            manifest_field_issues=manifest_field_issues,
            files=files,
            directories=directories,
            top_level_files=top_level_files,
            top_level_dirs=top_level_dirs,
            agents=agents,
            toolsets=toolsets,
            evaluations=evaluations,
            script_tools=script_tools,
            instructions=self._collect_instructions(agents),
            guardrail_dirs=collect_immediate_directories(self.root_path / "guardrails"),
            environment=self._load_environment(),
            tool_inventory=build_tool_inventory(agents, toolsets, script_tools),
        )

    def _collect_paths(self) -> tuple[list[Path], list[Path]]:
        """Recursively list every file and directory under the root.

        Symlinked directories are followed, like the entity collectors do;
        a link back to one of its own ancestors is listed but not descended.
        """
        files: list[Path] = []
        directories: list[Path] = []
        if not self.root_path.is_dir():
            return files, directories

        pending = [(self.root_path, frozenset({os.path.realpath(self.root_path)}))]
        while pending:
            current, ancestors = pending.pop()
            for entry in _sorted_entries(current):
                entry_path = Path(entry.path)
                if entry.is_dir():
                    directories.append(entry_path)
                    real_path = os.path.realpath(entry_path)
                    if real_path not in ancestors:
                        pending.append((entry_path, ancestors | {real_path}))
                elif entry.is_file():
                    files.append(entry_path)

        return sorted(files), sorted(directories)

    def _collect_top_level(self) -> tuple[list[str], list[str]]:
        if not self.root_path.is_dir():
            return [], []

        entries = _sorted_entries(self.root_path)
        return (
            [entry.name for entry in entries if entry.is_file()],
            [entry.name for entry in entries if entry.is_dir()],
        )

    def _load_entity(self, dir_path: Path, kind: str, record_cls):
        """Parse ``<dir>/<name>.json`` into manifest fields shared by every entity kind."""
        name = dir_path.name
        manifest_path = dir_path / f"{name}.json"
        fields = {
            "name": name,
            "dir_path": dir_path,
            "manifest_path": manifest_path,
        }

        if not manifest_path.is_file():
            fields["manifest_error"] = f"Missing {kind} manifest file"
            return fields

        parsed = parse_json_file(manifest_path)
        fields["manifest_data"] = parsed.data
        fields["manifest_error"] = parsed.error
        if parsed.ok:
            fields["manifest"], fields["field_issues"] = load_record(record_cls, parsed.data)
        else:
            logger.debug(f"{kind} manifest {manifest_path} failed to parse: {parsed.error}")
        return fields

    def _collect_agents(self) -> list[AgentInfo]:
        return [
            AgentInfo(**self._load_entity(dir_path, "agent", AgentManifest))
            for dir_path in collect_immediate_directories(self.root_path / "agents")
        ]

    def _collect_toolsets(self) -> list[ToolsetInfo]:
        toolsets = []
        for dir_path in collect_immediate_directories(self.root_path / "toolsets"):
            open_api_dir = dir_path / OPEN_API_DIR
            toolsets.append(ToolsetInfo(
                **self._load_entity(dir_path, "toolset", ToolsetManifest),
                open_api_dir_path=open_api_dir,
                auto_detected_schema_path=find_first_schema_file(open_api_dir),
            ))
        return toolsets

    def _collect_evaluations(self) -> list[EvaluationInfo]:
        return [
            EvaluationInfo(**self._load_entity(dir_path, "evaluation", EvaluationManifest))
            for dir_path in collect_immediate_directories(self.root_path / "evaluations")
        ]

    def _collect_script_tools(self) -> list[ScriptToolInfo]:
        return [
            ScriptToolInfo(**self._load_entity(dir_path, "script tool", ScriptToolManifest))
            for dir_path in collect_immediate_directories(self.root_path / "tools")
        ]

    def _collect_instructions(self, agents: list[AgentInfo]) -> list[InstructionInfo]:
        instructions = []
        for agent in agents:
            instruction_path = agent.dir_path / INSTRUCTION_FILE
            if instruction_path.is_file():
                instructions.append(parse_instruction_file(instruction_path, agent.name))

        global_path = self.root_path / GLOBAL_INSTRUCTION_FILE
        if global_path.is_file():
            instructions.append(parse_instruction_file(global_path, GLOBAL_INSTRUCTION_AGENT))

        return instructions

    def _load_environment(self) -> EnvironmentInfo | None:
        environment_path = self.root_path / ENVIRONMENT_FILE
        if not environment_path.is_file():
            return None

        parsed = parse_json_file(environment_path)
        return EnvironmentInfo(
            file_path=environment_path,
            data=parsed.data,
            error=parsed.error,
            invalid_root=parsed.invalid_root,
        )


def build_package_model(root_path: Path | str) -> PackageModel:
    """Build the package model for the package rooted at ``root_path``."""
    return PackageIndexer(Path(root_path)).build()
