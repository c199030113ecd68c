from __future__ import annotations

import logging
import posixpath
from typing import Iterable, Optional, Sequence, Union

from nextroute.annotations.model import (
    Directive,
    FileScan,
    HandlerDescriptor,
    MiddlewareDeclaration,
    RawDirective,
)
from nextroute.config import BuildConfig
from nextroute.errors import DanglingDirectiveError, DuplicateFileDirectiveError, MergeError

logger = logging.getLogger(__name__)

ParsedDirective = tuple[RawDirective, Directive]


def resolve_include_exclude(tokens: Sequence[str], suffix: str = "-") -> list[str]:
    """
    Resolve a middleware list where "x-" removes "x":

      ["a", "b", "b-"]      -> ["a"]
      ["x", "y", "x-"]      -> ["y"]
      ["a", "b", "a"]       -> ["a", "b"]

    A plain token survives when, counting itself as +1, every later
    occurrence as +1 and every later removal as -1, the total stays
    above zero. Output keeps first-seen order without duplicates.
    """
    out: list[str] = []
    seen: set[str] = set()
    for i, t in enumerate(tokens):
        if t.endswith(suffix):
            continue
        removal = t + suffix
        net = 1
        for later in tokens[i + 1 :]:
            if later == t:
                net += 1
            elif later == removal:
                net -= 1
        if net > 0 and t not in seen:
            seen.add(t)
            out.append(t)
    return out


def merge_directives(
    handler: Optional[Directive],
    file: Optional[Directive],
    default_method: str = "GET",
    default_status: int = 200,
) -> Directive:
    """
    Combine a handler's own directive with its file directive.

    File middleware and bindings come first, labels are overridden per
    key by the handler. Merging an already merged directive returns it
    unchanged.
    """
    if handler is not None and handler.merged:
        return handler

    h = handler or Directive(scope="handler")
    f = file or Directive(scope="file")

    return Directive(
        scope="handler",
        method=h.method or default_method,
        status_code=h.status_code or default_status,
        path_prefix=h.path_prefix,
        middleware=[*f.middleware, *h.middleware],
        labels={**f.labels, **h.labels},
        bind_query=[*f.bind_query, *h.bind_query],
        bind_header=[*f.bind_header, *h.bind_header],
        position=h.position,
        merged=True,
    )


def bind_file_directives(scan: FileScan, parsed: Iterable[ParsedDirective]) -> list[MergeError]:
    """
    Attach a file's directives to its handlers.

    The MappingFile directive goes to every handler of the file. A
    statement-form Mapping directive goes to the nearest following
    handler; decorator-form goes to the function it decorates.
    """
    errors: list[MergeError] = []
    file_directive: Optional[Directive] = None
    nodes: list[Union[HandlerDescriptor, Directive]] = list(scan.handlers)

    for raw, d in parsed:
        if d.scope == "file":
            if file_directive is not None:
                errors.append(
                    DuplicateFileDirectiveError(
                        f"multiple MappingFile directives found (first at {file_directive.position})",
                        raw.position,
                    )
                )
                continue
            file_directive = d
        elif d.scope == "handler":
            if raw.decorates is None:
                nodes.append(d)
                continue
            target = _decorated(scan.handlers, raw)
            if target is None:
                continue
            if target.directive is not None:
                errors.append(MergeError(f"multiple Mapping directives on handler {target.name!r}", raw.position))
                continue
            target.directive = d

    nodes.sort(key=_line)
    for i, node in enumerate(nodes):
        if not isinstance(node, Directive):
            continue
        following = nodes[i + 1] if i + 1 < len(nodes) else None
        if following is None:
            errors.append(DanglingDirectiveError("Mapping directive is not followed by a handler", node.position))
        elif isinstance(following, Directive):
            errors.append(
                DanglingDirectiveError(
                    "multiple Mapping directives found without a handler between them",
                    following.position,
                )
            )
        elif following.directive is not None:
            errors.append(
                MergeError(
                    f"handler {following.name!r} already has a Mapping directive",
                    node.position,
                )
            )
        else:
            following.directive = node

    for h in scan.handlers:
        h.file_directive = file_directive

    return errors


def _line(node: Union[HandlerDescriptor, Directive]) -> int:
    pos = node.position
    return pos.line if pos is not None else 0


def _decorated(handlers: list[HandlerDescriptor], raw: RawDirective) -> Optional[HandlerDescriptor]:
    candidates = [h for h in handlers if h.name == raw.decorates and h.position.line >= raw.position.line]
    return min(candidates, key=_line, default=None)


def collect_middleware_declarations(
    scans: Iterable[tuple[FileScan, list[ParsedDirective]]],
    filename: str,
) -> tuple[list[MiddlewareDeclaration], list[MergeError]]:
    """
    One declaration per middleware file, ordered root to leaf.

    Only the MappingFile directive of a middleware file is read, and a
    file may hold just one.
    """
    out: list[MiddlewareDeclaration] = []
    errors: list[MergeError] = []
    for scan, parsed in scans:
        directory, base = posixpath.split(scan.rel_path)
        if base != filename:
            continue

        declared: Optional[ParsedDirective] = None
        for raw, d in parsed:
            if d.scope == "handler":
                logger.warning("%s: Mapping directive in a middleware file is ignored", raw.position)
                continue
            if d.scope != "file":
                continue
            if declared is not None:
                errors.append(
                    DuplicateFileDirectiveError(
                        f"multiple MappingFile directives found (first at {declared[0].position})",
                        raw.position,
                    )
                )
                continue
            declared = (raw, d)

        if declared is None:
            continue
        raw, d = declared
        out.append(MiddlewareDeclaration(directory=directory, middleware=tuple(d.middleware), position=raw.position))
    out.sort(key=lambda m: (m.depth, m.directory))
    return out, errors


def ancestor_middleware(rel_path: str, declarations: Sequence[MiddlewareDeclaration]) -> list[str]:
    tokens: list[str] = []
    for m in sorted(declarations, key=lambda m: (m.depth, m.directory)):
        if m.contains(rel_path):
            tokens.extend(m.middleware)
    return tokens


class MergeEngine:
    def __init__(self, config: BuildConfig, declarations: Sequence[MiddlewareDeclaration] = ()) -> None:
        self.config = config
        self.declarations = list(declarations)

    def merge(self, handler: HandlerDescriptor) -> Directive:
        """
        Final directive and middleware order for handler:

          M1 ++ ... ++ Mn ++ file middleware ++ handler middleware

        resolved with the include/exclude rule. Runs once per handler.
        """
        if handler.mapping_merged and handler.directive is not None:
            return handler.directive

        handler.parent_middlewares = ancestor_middleware(handler.rel_path, self.declarations)
        merged = merge_directives(
            handler.directive,
            handler.file_directive,
            default_method=self.config.default_method,
            default_status=self.config.default_status,
        )
        handler.directive = merged
        handler.middlewares = resolve_include_exclude(
            [*handler.parent_middlewares, *merged.middleware],
            self.config.exclude_suffix,
        )
        handler.mapping_merged = True
        logger.debug("%s: %s middlewares=%s", handler.key, merged.method, handler.middlewares)
        return merged
