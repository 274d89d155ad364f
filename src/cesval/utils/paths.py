"""Path normalization and classification helpers for agent packages."""

import os
from pathlib import Path


def normalize_path(path: str) -> str:
    """Convert any path to canonical forward slash format.

    Examples:
        >>> normalize_path("agents\\\\root\\\\instruction.txt")
        'agents/root/instruction.txt'
    """
    if not path:
        return path

    return path.replace("\\", "/")


def to_relative_path(root_path: Path, target_path: Path) -> str:
    """Return target_path relative to root_path in POSIX form."""
    return normalize_path(os.path.relpath(target_path, root_path))


def split_relative_path(relative_path: str) -> list[str]:
    return [segment for segment in normalize_path(relative_path).split("/") if segment]


def get_top_level_segment(relative_path: str) -> str | None:
    segments = split_relative_path(relative_path)
    return segments[0] if segments else None


def get_depth_below_top_level(relative_path: str) -> int:
    """Count path segments below the top-level folder.

    Examples:
        >>> get_depth_below_top_level("agents/root/instruction.txt")
        2
        >>> get_depth_below_top_level("app.yaml")
        0
    """
    segments = split_relative_path(relative_path)
    if len(segments) <= 1:
        return 0

    return len(segments) - 1


def resolve_package_path(root_path: Path, declared: str) -> Path:
    """Resolve a path declared inside a manifest against the package root.

    Absolute paths are kept as declared; relative ones are joined to the
    root. The result is lexically normalized but not resolved on disk.
    """
    normalized = normalize_path(declared.strip())
    candidate = Path(normalized)
    if not candidate.is_absolute():
        candidate = root_path / candidate
    return Path(os.path.normpath(candidate))


def is_likely_inline_global_instruction(value: str) -> bool:
    """Guess whether a globalInstruction value is inline text rather than a path.

    Multi-line text is inline. Anything ending in ``.txt`` or containing a
    separator is a file reference. Remaining single-line values count as
    inline only when longer than 20 characters.
    """
    trimmed = value.strip()
    if not trimmed:
        return False

    if "\n" in trimmed or "\r" in trimmed:
        return True

    if trimmed.endswith(".txt") or "/" in trimmed:
        return False

    return len(trimmed) > 20
