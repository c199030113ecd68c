"""Build configuration.

BuildConfig is a frozen dataclass; a project can override defaults in
``pyproject.toml``::

    [tool.nextroute]
    middleware_filename = "middleware.py"
    output_package = "gen.api"
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

from nextroute.repo.ignore import DEFAULT_IGNORES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildConfig:
    # Directory declarations
    middleware_filename: str = "middleware.py"
    exclude_suffix: str = "-"

    # Directive defaults
    default_method: str = "GET"
    default_status: int = 200

    # Discovery
    ignore_dirs: frozenset[str] = DEFAULT_IGNORES
    import_root: Optional[Path] = None  # None = derive from project root

    # Generated code location (emitter hint)
    output_package: str = ""

    def with_overrides(self, **overrides: Any) -> "BuildConfig":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_config(project_root: Optional[Path]) -> BuildConfig:
    """Read ``[tool.nextroute]`` from the project's pyproject.toml, if any."""
    config = BuildConfig()
    if project_root is None:
        return config

    pyproject = project_root / "pyproject.toml"
    if not pyproject.is_file():
        return config

    with pyproject.open("rb") as f:
        data = tomllib.load(f)

    section = data.get("tool", {}).get("nextroute", {})
    known = {f.name for f in fields(BuildConfig)}
    values: dict[str, Any] = {}
    for key, value in section.items():
        if key not in known:
            logger.warning("ignoring unknown [tool.nextroute] key %r in %s", key, pyproject)
            continue
        if key == "ignore_dirs":
            value = frozenset(value)
        elif key == "import_root":
            value = (project_root / value).resolve()
        values[key] = value
    return replace(config, **values)
