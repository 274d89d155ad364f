"""Parsers for agent package files and directory trees."""

from cesval.parser.discovery import find_package_root_for_path, find_package_roots
from cesval.parser.documents import (
    ParsedDocument,
    find_line_containing,
    parse_file_by_extension,
    parse_json_file,
    parse_openapi_file,
    parse_yaml_file,
)
from cesval.parser.instruction import InstructionParser, parse_instruction_file
from cesval.parser.package import PackageIndexer, build_package_model

__all__ = [
    "find_package_root_for_path",
    "find_package_roots",
    "ParsedDocument",
    "find_line_containing",
    "parse_file_by_extension",
    "parse_json_file",
    "parse_openapi_file",
    "parse_yaml_file",
    "InstructionParser",
    "parse_instruction_file",
    "PackageIndexer",
    "build_package_model",
]
