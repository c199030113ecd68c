from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

PROJECT_MARKERS = ("pyproject.toml", "setup.cfg", "setup.py")


def find_project_root(start: Path) -> Optional[Path]:
    """Nearest ancestor of start (inclusive) holding a packaging file."""
    start = start.resolve()
    for candidate in (start, *start.parents):
        if any((candidate / m).is_file() for m in PROJECT_MARKERS):
            return candidate
    return None


def resolve_import_root(api_root: Path, project_root: Optional[Path]) -> Path:
    """
    Directory module paths are computed against (a sys.path entry).

    src/ layouts import from project_root/src. Without any project root
    the api root's parent is used so the api directory becomes the
    top-level package.
    """
    api_root = api_root.resolve()
    if project_root is None:
        logger.warning(
            "no %s found above %s; using %s as import root",
            "/".join(PROJECT_MARKERS),
            api_root,
            api_root.parent,
        )
        return api_root.parent

    src = project_root / "src"
    if src.is_dir() and (api_root == src or src in api_root.parents):
        return src
    return project_root


def module_name_for(path: Path, import_root: Path) -> str:
    """v1/todos/id.py -> v1.todos.id (relative to import_root)."""
    rel = path.resolve().relative_to(import_root.resolve())
    parts = list(rel.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(parts)
