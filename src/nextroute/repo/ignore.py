from __future__ import annotations

from pathlib import Path

DEFAULT_IGNORES = frozenset(
    {
        ".git",
        ".venv",
        "venv",
        "__pycache__",
        "node_modules",
        "dist",
        "build",
        ".mypy_cache",
        ".ruff_cache",
        ".pytest_cache",
    }
)


def should_ignore_dir(dir_path: Path, ignores: frozenset[str] = DEFAULT_IGNORES) -> bool:
    name = dir_path.name
    # private and hidden directories never contribute routes
    return name in ignores or name.startswith((".", "_"))
