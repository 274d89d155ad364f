"""Package root discovery."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

MANIFEST_NAMES = ("app.yaml", "app.json")
EXCLUDED_DIR_NAMES = frozenset({"node_modules", ".git", "dist", "out"})


def has_root_manifest(directory: Path) -> bool:
    return any((directory / name).is_file() for name in MANIFEST_NAMES)


def find_package_root_for_path(path: Path) -> Path | None:
    """Find the package root containing ``path`` by walking up the tree.

    Args:
        path: File or directory inside a package (need not exist)

    Returns:
        Nearest directory holding ``app.yaml`` or ``app.json``, None otherwise
    """
    current = Path(path).resolve()
    if not current.is_dir():
        current = current.parent

    while True:
        if has_root_manifest(current):
            return current

        parent = current.parent
        if parent == current:  # Reached filesystem root
            return None
        current = parent


def find_package_roots(base_dir: Path) -> list[Path]:
    """Find every package root under ``base_dir``, sorted."""
    roots = set()
    for current, dir_names, _ in os.walk(Path(base_dir).resolve()):
        dir_names[:] = [name for name in dir_names if name not in EXCLUDED_DIR_NAMES]
        current_path = Path(current)
        if has_root_manifest(current_path):
            roots.add(current_path)

    logger.debug(f"Discovered {len(roots)} package roots under {base_dir}")
    return sorted(roots)
