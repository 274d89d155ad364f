"""Typed records for the manifest kinds found in an agent package.

Records are loaded leniently: a value with the wrong type is dropped and
reported as a ``FieldIssue`` instead of failing the whole manifest.
"""

import copy
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError


@dataclass(frozen=True)
class FieldIssue:
    """A manifest field whose value does not have the expected type."""
    field: str        # top-level key as written in the manifest
    location: str     # dotted location of the offending value
    message: str


class ManifestRecord(BaseModel):
    """Base for manifest records."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)


class AppManifest(ManifestRecord):
    """Root ``app.yaml`` / ``app.json`` manifest."""
    display_name: StrictStr | None = Field(alias="displayName", default=None)
    root_agent: StrictStr | None = Field(alias="rootAgent", default=None)
    global_instruction: StrictStr | None = Field(alias="globalInstruction", default=None)
    guardrails: list[StrictStr] | None = None


class AgentToolsetRef(ManifestRecord):
    """Toolset reference inside an agent manifest."""
    toolset: StrictStr | None = None
    tool_ids: list[StrictStr] | None = Field(alias="toolIds", default=None)


class AgentManifest(ManifestRecord):
    """``agents/<name>/<name>.json``."""
    display_name: StrictStr | None = Field(alias="displayName", default=None)
    instruction: StrictStr | None = None
    child_agents: list[StrictStr] | None = Field(alias="childAgents", default=None)
    tools: list[StrictStr] | None = None
    toolsets: list[StrictStr | AgentToolsetRef] | None = None

    def toolset_names(self) -> list[str]:
        """Names of referenced toolsets, in declaration order."""
        names = []
        for entry in self.toolsets or []:
            name = entry if isinstance(entry, str) else entry.toolset
            if name:
                names.append(name)
        return names


class OpenApiToolsetSpec(ManifestRecord):
    open_api_schema: StrictStr | None = Field(alias="openApiSchema", default=None)


class ToolsetManifest(ManifestRecord):
    """``toolsets/<name>/<name>.json``."""
    display_name: StrictStr | None = Field(alias="displayName", default=None)
    open_api_toolset: OpenApiToolsetSpec | None = Field(alias="openApiToolset", default=None)
    tool_ids: list[StrictStr] | None = Field(alias="toolIds", default=None)

    @property
    def declared_schema_path(self) -> str | None:
        if self.open_api_toolset is None:
            return None
        return self.open_api_toolset.open_api_schema


class GuardrailManifest(ManifestRecord):
    display_name: StrictStr | None = Field(alias="displayName", default=None)


class ScriptToolManifest(ManifestRecord):
    display_name: StrictStr | None = Field(alias="displayName", default=None)


class EvaluationManifest(ManifestRecord):
    """``evaluations/<name>/<name>.json``.

    The golden conversation is kept as raw data: its expected tool calls are
    walked leniently, skipping malformed turns and steps.
    """
    display_name: StrictStr | None = Field(alias="displayName", default=None)
    golden: dict[str, Any] | None = None

    def expected_tool_calls(self) -> Iterator[tuple[int, str]]:
        """Yield ``(turn_index, tool_name)`` for every golden toolCall expectation."""
        if not isinstance(self.golden, dict):
            return

        turns = self.golden.get("turns")
        if not isinstance(turns, list):
            return

        for turn_index, turn in enumerate(turns):
            if not isinstance(turn, dict) or not isinstance(turn.get("steps"), list):
                continue

            for step in turn["steps"]:
                if not isinstance(step, dict):
                    continue
                expectation = step.get("expectation")
                if not isinstance(expectation, dict):
                    continue
                tool_call = expectation.get("toolCall")
                if not isinstance(tool_call, dict):
                    continue
                tool_name = tool_call.get("tool")
                if isinstance(tool_name, str) and tool_name.strip():
                    yield turn_index, tool_name


RecordT = TypeVar("RecordT", bound=ManifestRecord)


def _removal_target(payload: dict[str, Any], top_key: str, loc: tuple) -> tuple:
    """Path of the value to drop for an error at ``loc``.

    Errors inside a list drop only the offending element (the deepest list
    index on the path); anything else drops the whole top-level field.
    Union branch tags in ``loc`` do not name payload keys and are skipped.
    """
    target: tuple = (top_key,)
    path: tuple = (top_key,)
    current = payload[top_key]
    for part in loc[1:]:
        if isinstance(current, list) and isinstance(part, int) and 0 <= part < len(current):
            path += (part,)
            target = path
            current = current[part]
        elif isinstance(current, dict) and part in current:
            path += (part,)
            current = current[part]
    return target


def _remove_value(payload: dict[str, Any], target: tuple) -> None:
    container: Any = payload
    for part in target[:-1]:
        container = container[part]
    del container[target[-1]]


def load_record(record_cls: type[RecordT], data: dict[str, Any]) -> tuple[RecordT, list[FieldIssue]]:
    """Build a manifest record, dropping and reporting mistyped values.

    A mistyped list element is dropped on its own so the remaining elements
    of the list are kept; any other mistyped value drops its whole field.

    Args:
        record_cls: Record model to build
        data: Parsed manifest document

    Returns:
        The record (with offending values removed) and the list of field
        issues found
    """
    keys_by_alias: dict[str, set[str]] = {}
    for name, info in record_cls.model_fields.items():
        alias = info.alias or name
        keys_by_alias[alias] = keys_by_alias[name] = {alias, name}

    payload = copy.deepcopy(dict(data))
    issues: list[FieldIssue] = []

    while True:
        try:
            return record_cls.model_validate(payload), issues
        except ValidationError as e:
            targets: dict[tuple, FieldIssue] = {}
            for error in e.errors():
                loc = tuple(error.get("loc", ()))
                if not loc:
                    continue
                field = str(loc[0])
                top_keys = sorted(keys_by_alias.get(field, {field}) & payload.keys())
                if not top_keys:
                    continue
                target = _removal_target(payload, top_keys[0], loc)
                if target in targets:
                    continue
                targets[target] = FieldIssue(
                    field=field,
                    location=".".join(str(part) for part in (loc if len(target) == 1 else target)),
                    message=error.get("msg", "invalid value"),
                )

            if not targets:
                raise

            # Union members report both the element and its nested value; drop
            # the nested value first.
            nested = [
                target for target in targets
                if not any(other != target and other[:len(target)] == target for other in targets)
            ]
            issues.extend(targets[target] for target in nested)
            for target in sorted(nested, reverse=True):
                _remove_value(payload, target)
