from __future__ import annotations

import os
from pathlib import Path

from nextroute.repo.ignore import DEFAULT_IGNORES, should_ignore_dir


def scan_api_files(
    api_root: Path,
    ignores: frozenset[str] = DEFAULT_IGNORES,
    max_files: int | None = None,
) -> list[Path]:
    """
    Return absolute paths of route modules under api_root, sorted.
    Underscore-prefixed modules (__init__.py, _helpers.py) are skipped.
    """
    out: list[Path] = []
    for root, dirs, files in _walk(api_root):
        root_p = Path(root)

        # prune ignored dirs; sort for a deterministic walk
        dirs[:] = sorted(d for d in dirs if not should_ignore_dir(root_p / d, ignores))

        for f in sorted(files):
            if not f.endswith(".py") or f.startswith("_"):
                continue
            out.append((root_p / f).resolve())
            if max_files is not None and len(out) >= max_files:
                return sorted(out)
    return sorted(out)


def _walk(api_root: Path):
    # Separate helper to make unit testing easier (can be mocked)
    return os.walk(api_root)
