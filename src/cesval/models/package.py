"""Models for an indexed agent package.

A ``PackageModel`` is built once per validation pass and never mutated
afterwards; revalidation always builds a fresh one.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from cesval.models.instruction import InstructionInfo
from cesval.models.manifests import (
    AgentManifest,
    AppManifest,
    EvaluationManifest,
    FieldIssue,
    ScriptToolManifest,
    ToolsetManifest,
)


class ManifestFormat(str, Enum):
    """Format of the root manifest."""
    YAML = "yaml"
    JSON = "json"
    NONE = "none"


class _EntityInfo(BaseModel):
    """Common shape of a folder-keyed package entity."""
    name: str  # folder name, the entity's canonical name
    dir_path: Path
    manifest_path: Path
    manifest_data: dict[str, Any] | None = None
    manifest_error: str | None = None
    field_issues: list[FieldIssue] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def has_field_issue(self, field: str) -> bool:
        return any(issue.field == field for issue in self.field_issues)


class AgentInfo(_EntityInfo):
    manifest: AgentManifest | None = None


class ToolsetInfo(_EntityInfo):
    manifest: ToolsetManifest | None = None
    open_api_dir_path: Path
    auto_detected_schema_path: Path | None = None


class EvaluationInfo(_EntityInfo):
    manifest: EvaluationManifest | None = None


class ScriptToolInfo(_EntityInfo):
    manifest: ScriptToolManifest | None = None


class EnvironmentInfo(BaseModel):
    """Parsed ``environment.json``."""
    file_path: Path
    data: dict[str, Any] | None = None
    error: str | None = None
    invalid_root: bool = False

    model_config = ConfigDict(frozen=True)


class ToolInventory(BaseModel):
    """Tool names known to the package, derived from agents, toolsets and script tools."""
    direct_tools: frozenset[str] = frozenset()
    openapi_operations: frozenset[str] = frozenset()
    openapi_namespaced_operations: frozenset[str] = frozenset()  # "<toolset>.<toolId>"

    model_config = ConfigDict(frozen=True)

    def is_openapi_operation(self, name: str) -> bool:
        return name in self.openapi_operations or name in self.openapi_namespaced_operations


class PackageModel(BaseModel):
    """Complete in-memory view of one agent package."""
    root_path: Path

    # Root manifest
    has_app_yaml: bool = False
    has_app_json: bool = False
    manifest_path: Path | None = None
    manifest_format: ManifestFormat = ManifestFormat.NONE
    manifest_data: dict[str, Any] | None = None
    manifest_error: str | None = None
    manifest_invalid_root: bool = False
    manifest: AppManifest | None = None
    manifest_field_issues: list[FieldIssue] = Field(default_factory=list)

    # Filesystem listing (absolute paths, sorted)
    files: list[Path] = Field(default_factory=list)
    directories: list[Path] = Field(default_factory=list)
    top_level_files: list[str] = Field(default_factory=list)
    top_level_dirs: list[str] = Field(default_factory=list)

    # Entities
    agents: list[AgentInfo] = Field(default_factory=list)
    toolsets: list[ToolsetInfo] = Field(default_factory=list)
    evaluations: list[EvaluationInfo] = Field(default_factory=list)
    script_tools: list[ScriptToolInfo] = Field(default_factory=list)
    instructions: list[InstructionInfo] = Field(default_factory=list)
    guardrail_dirs: list[Path] = Field(default_factory=list)
    environment: EnvironmentInfo | None = None

    tool_inventory: ToolInventory = Field(default_factory=ToolInventory)

    _file_set: frozenset[Path] = PrivateAttr(default_factory=frozenset)
    _directory_set: frozenset[Path] = PrivateAttr(default_factory=frozenset)

    model_config = ConfigDict(frozen=True)

    def model_post_init(self, __context: Any) -> None:
        self._file_set = frozenset(self.files)
        self._directory_set = frozenset(self.directories)

    @property
    def direct_tools(self) -> frozenset[str]:
        return self.tool_inventory.direct_tools

    @property
    def openapi_operations(self) -> frozenset[str]:
        return self.tool_inventory.openapi_operations

    @property
    def agent_names(self) -> set[str]:
        return {agent.name for agent in self.agents}

    @property
    def toolset_names(self) -> set[str]:
        return {toolset.name for toolset in self.toolsets}

    @property
    def default_manifest_path(self) -> Path:
        """Manifest file issues are attached to, even when it does not exist."""
        return self.manifest_path or self.root_path / "app.yaml"

    def _is_inside_root(self, path: Path) -> bool:
        try:
            Path(os.path.normpath(path)).relative_to(self.root_path)
        except ValueError:
            return False
        return True

    def has_file(self, path: Path) -> bool:
        """Whether ``path`` is a file of this package (or exists, if outside the root)."""
        path = Path(os.path.normpath(path))
        if self._is_inside_root(path):
            return path in self._file_set
        return path.is_file()

    def has_directory(self, path: Path) -> bool:
        path = Path(os.path.normpath(path))
        if path == self.root_path:
            return True
        if self._is_inside_root(path):
            return path in self._directory_set
        return path.is_dir()

    def path_exists(self, path: Path) -> bool:
        return self.has_file(path) or self.has_directory(path)
