"""Shared fixtures for cesval tests."""

import json
from pathlib import Path

import pytest

from cesval.parser.package import build_package_model
from cesval.validation.framework import run_rules


def base_valid_files() -> dict[str, str]:
    """A minimal package that passes every rule: root agent, one child, one toolset."""
    return {
        "app.yaml": "\n".join([
            "displayName: sample_agent",
            "rootAgent: voice_banking_agent",
            "globalInstruction: global_instruction.txt",
            "guardrails: []",
            "",
        ]),
        "global_instruction.txt": "Global instruction text for package.",
        "agents/voice_banking_agent/voice_banking_agent.json": json.dumps({
            "displayName": "voice_banking_agent",
            "instruction": "agents/voice_banking_agent/instruction.txt",
            "childAgents": ["location_services_agent"],
        }, indent=2),
        "agents/voice_banking_agent/instruction.txt": "<role>\nRoot agent instruction\n</role>",
        "agents/location_services_agent/location_services_agent.json": json.dumps({
            "displayName": "location_services_agent",
            "instruction": "agents/location_services_agent/instruction.txt",
            "toolsets": [{"toolset": "location"}],
        }, indent=2),
        "agents/location_services_agent/instruction.txt": "<role>\nChild agent instruction\n</role>",
        "toolsets/location/location.json": json.dumps({
            "displayName": "location",
            "openApiToolset": {
                "openApiSchema": "toolsets/location/open_api_toolset/open_api_schema.yaml",
            },
        }, indent=2),
        "toolsets/location/open_api_toolset/open_api_schema.yaml": "\n".join([
            "openapi: 3.0.0",
            "info:",
            "  title: Location API",
            "  version: 1.0.0",
            "paths: {}",
            "",
        ]),
        "environment.json": json.dumps({
            "toolsets": {
                "location": {
                    "openApiToolset": {"url": "https://api.example.com"},
                },
            },
        }, indent=2),
    }


@pytest.fixture
def valid_files():
    """Fresh copy of the canonical valid package files."""
    return base_valid_files()


@pytest.fixture
def make_package(tmp_path):
    """Factory writing ``{relative_path: contents}`` under a fresh package root."""
    counter = {"n": 0}

    def _make(files: dict[str, str]) -> Path:
        counter["n"] += 1
        root = tmp_path / f"package_{counter['n']}"
        root.mkdir()
        for relative_path, contents in files.items():
            file_path = root / relative_path
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(contents, encoding="utf-8")
        return root.resolve()

    return _make


@pytest.fixture
def run_validation(make_package):
    """Build a package from files and return its sorted issues."""
    def _run(files: dict[str, str], config=None):
        return run_rules(build_package_model(make_package(files)), config)

    return _run
