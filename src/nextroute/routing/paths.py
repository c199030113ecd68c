from __future__ import annotations

import posixpath
import re

from nextroute.annotations.model import HandlerDescriptor

_MULTI_SLASH = re.compile(r"/{2,}")


def api_path(rel_path: str, suffix: str = ".py") -> str:
    """v1\\todos\\id.py -> /v1/todos/id (forward slashes, suffix stripped)."""
    p = rel_path.replace("\\", "/")
    if suffix and p.endswith(suffix):
        p = p[: -len(suffix)]
    p = _MULTI_SLASH.sub("/", "/" + p.lstrip("/"))
    return posixpath.normpath(p) if p != "/" else p


def synthesize_pattern(handler: HandlerDescriptor) -> str:
    """
    URL pattern of a handler: its api-relative path with every segment
    that names a path parameter replaced by "{name}".

      v1/todos/id.py + def get(id: str)  ->  /v1/todos/{id}

    Only parameters classified as path bind. Each parameter takes the
    first segment carrying its name, so placeholders stay unique.
    """
    remaining = [p.url_name for p in handler.params if p.location == "path"]

    segments = api_path(handler.rel_path).split("/")
    for i, seg in enumerate(segments):
        if seg and seg in remaining:
            segments[i] = "{" + seg + "}"
            remaining.remove(seg)
    return "/".join(segments)
