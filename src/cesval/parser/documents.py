"""JSON, YAML and OpenAPI document parsing for agent package files.

Parsers never raise. Every call returns a ``ParsedDocument`` holding either
the parsed record or an error message.
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

SCHEMA_EXTENSIONS = frozenset({".yaml", ".yml", ".json"})


@dataclass
class ParsedDocument:
    """Result of parsing one structured-config file."""
    data: dict[str, Any] | None = None
    error: str | None = None
    raw_text: str | None = None
    invalid_root: bool = False  # parsed fine, but the root value is not a mapping

    @property
    def ok(self) -> bool:
        return self.error is None and self.data is not None


def is_record(value: Any) -> bool:
    return isinstance(value, dict)


def _root_must_be_object(format_name: str, raw_text: str) -> ParsedDocument:
    return ParsedDocument(
        error=f"{format_name} root must be an object",
        raw_text=raw_text,
        invalid_root=True,
    )


def parse_json_file(file_path: Path) -> ParsedDocument:
    """Parse a JSON file whose root must be an object."""
    try:
        raw_text = Path(file_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Failed to read {file_path}: {e}")
        return ParsedDocument(error=str(e))

    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as e:
        return ParsedDocument(error=str(e), raw_text=raw_text)

    if not is_record(parsed):
        return _root_must_be_object("JSON", raw_text)

    return ParsedDocument(data=parsed, raw_text=raw_text)


def parse_yaml_file(file_path: Path) -> ParsedDocument:
    """Parse a YAML file whose root must be a mapping."""
    try:
        raw_text = Path(file_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Failed to read {file_path}: {e}")
        return ParsedDocument(error=str(e))

    try:
        parsed = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        return ParsedDocument(error=" ".join(str(e).split()), raw_text=raw_text)

    if not is_record(parsed):
        return _root_must_be_object("YAML", raw_text)

    return ParsedDocument(data=parsed, raw_text=raw_text)


def parse_file_by_extension(file_path: Path) -> ParsedDocument:
    """Dispatch to the JSON or YAML parser based on the file extension."""
    extension = Path(file_path).suffix.lower()
    if extension == ".json":
        return parse_json_file(file_path)

    if extension in (".yaml", ".yml"):
        return parse_yaml_file(file_path)

    return ParsedDocument(error=f"Unsupported file extension for parse: {extension}")


def parse_openapi_file(file_path: Path) -> ParsedDocument:
    """Parse an OpenAPI schema file.

    The version marker (``openapi`` or ``swagger``) is checked by the rule
    layer so that a missing marker is reported separately from syntax errors.
    """
    return parse_file_by_extension(file_path)


def has_openapi_version_marker(document: dict[str, Any]) -> bool:
    return "openapi" in document or "swagger" in document


def find_line_containing(file_path: Path | None, token: str | re.Pattern[str]) -> int | None:
    """Return the 1-based number of the first line containing ``token``.

    Best effort only: a token that appears on several lines is attributed to
    the first occurrence.
    """
    if file_path is None:
        return None

    try:
        content = Path(file_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None

    for index, line in enumerate(re.split(r"\r?\n", content), start=1):
        if isinstance(token, str):
            if token in line:
                return index
        elif token.search(line):
            return index

    return None
