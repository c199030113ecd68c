from __future__ import annotations

import ast
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from nextroute.annotations.binding import classify_parameters
from nextroute.annotations.merge import (
    MergeEngine,
    ParsedDirective,
    bind_file_directives,
    collect_middleware_declarations,
)
from nextroute.annotations.model import FileScan, HandlerDescriptor
from nextroute.annotations.parser import DirectiveParser
from nextroute.config import BuildConfig, load_config
from nextroute.errors import BuildFailed, NextrouteError, RouteCollisionError
from nextroute.extractors.python.registry import TypeRegistry, index_module
from nextroute.extractors.python.source import extract_file_scan, read_module
from nextroute.repo.project import find_project_root, module_name_for, resolve_import_root
from nextroute.repo.scanner import scan_api_files
from nextroute.routing.naming import NameAllocator
from nextroute.routing.paths import synthesize_pattern
from nextroute.routing.table import RouteTable, RouteTableBuilder, resolve_route

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildResult:
    table: RouteTable
    errors: list[NextrouteError]
    handlers: list[HandlerDescriptor]
    files_scanned: int
    api_root: str
    project_root: Optional[str]
    import_root: str

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        if self.errors:
            raise BuildFailed(self.errors)


def run_build(
    api_root: Path,
    config: Optional[BuildConfig] = None,
    max_files: Optional[int] = None,
) -> BuildResult:
    """
    Resolve every handler under api_root into a route table.

    Parse and merge errors are collected per file and returned; the
    files they affect contribute no routes. Route collisions raise
    RouteCollisionError since the table would be ambiguous; the errors
    collected before that are carried on its ``errors``.
    """
    api_root = api_root.resolve()
    if not api_root.is_dir():
        raise NotADirectoryError(f"API root is not a directory: {api_root}")

    project_root = find_project_root(api_root)
    if config is None:
        config = load_config(project_root)
    import_root = (config.import_root or resolve_import_root(api_root, project_root)).resolve()
    if import_root != api_root and import_root not in api_root.parents:
        raise ValueError(f"import root {import_root} does not contain API root {api_root}")

    files = scan_api_files(api_root, config.ignore_dirs, max_files=max_files)
    logger.debug("scanning %d files under %s (import root %s)", len(files), api_root, import_root)

    errors: list[NextrouteError] = []
    registry = TypeRegistry()

    # Index every module before resolving anything so constants and
    # types can be looked up across files.
    modules: list[tuple[Path, str, ast.Module]] = []
    for f in files:
        tree, err = read_module(f)
        if tree is None:
            if err is not None:
                errors.append(err)
            continue
        module = module_name_for(f, import_root)
        registry.add(index_module(module, tree))
        modules.append((f, module, tree))
    _index_dependencies(registry, import_root)

    parser = DirectiveParser(registry)
    per_file: list[tuple[FileScan, list[ParsedDirective]]] = []
    for f, module, tree in modules:
        scan = extract_file_scan(
            tree,
            path=str(f),
            rel_path=f.relative_to(api_root).as_posix(),
            module=module,
            registry=registry,
            collect_handlers=f.name != config.middleware_filename,
        )
        errors.extend(scan.errors)
        parsed: list[ParsedDirective] = []
        for raw in scan.directives:
            d = parser.parse(module, raw)
            if d.scope is not None:
                parsed.append((raw, d))
        per_file.append((scan, parsed))
    errors.extend(parser.errors)

    declarations, declaration_errors = collect_middleware_declarations(per_file, config.middleware_filename)
    errors.extend(declaration_errors)
    engine = MergeEngine(config, declarations)
    names = NameAllocator()
    builder = RouteTableBuilder()
    handlers: list[HandlerDescriptor] = []

    for scan, parsed in per_file:
        if Path(scan.path).name == config.middleware_filename:
            continue

        merge_errors = bind_file_directives(scan, parsed)
        if merge_errors:
            logger.warning("%s: %d directive error(s); skipping its handlers", scan.rel_path, len(merge_errors))
            errors.extend(merge_errors)
            continue

        for h in scan.handlers:
            directive = engine.merge(h)
            classify_parameters(h, directive, names)
            builder.add(resolve_route(h, synthesize_pattern(h), config.output_package))
            handlers.append(h)

    errors.sort(key=_error_key)
    try:
        table = builder.build()
    except RouteCollisionError as e:
        # an unparsable directive often falls back to GET and collides;
        # report its cause together with the collision
        e.errors = tuple(errors)
        raise
    logger.debug("resolved %d routes, %d errors", len(table), len(errors))

    return BuildResult(
        table=table,
        errors=errors,
        handlers=handlers,
        files_scanned=len(files),
        api_root=str(api_root),
        project_root=str(project_root) if project_root else None,
        import_root=str(import_root),
    )


def _error_key(e: NextrouteError) -> tuple[str, int, int]:
    if e.position is None:
        return ("", 0, 0)
    return (e.position.file, e.position.line, e.position.column)


def _index_dependencies(registry: TypeRegistry, import_root: Path) -> None:
    """Index modules imported by route modules that live under import_root."""
    stack = list(registry.modules.values())
    while stack:
        idx = stack.pop()
        for target in idx.imports.values():
            parts = target.split(".")
            # longest importable prefix: a.b.C -> a.b.C, a.b, a
            for n in range(len(parts), 0, -1):
                candidate = ".".join(parts[:n])
                if candidate in registry.modules:
                    break
                path, is_package = _module_file(import_root, parts[:n])
                if path is None:
                    continue
                tree, err = read_module(path)
                if tree is None:
                    logger.debug("cannot index %s: %s", path, err)
                    break
                dep = index_module(candidate, tree, is_package=is_package)
                registry.add(dep)
                stack.append(dep)
                break


def _module_file(import_root: Path, parts: list[str]) -> tuple[Optional[Path], bool]:
    base = import_root.joinpath(*parts)
    if base.with_suffix(".py").is_file():
        return base.with_suffix(".py"), False
    if (base / "__init__.py").is_file():
        return base / "__init__.py", True
    return None, False
