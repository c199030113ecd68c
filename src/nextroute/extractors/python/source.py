from __future__ import annotations

import ast
from pathlib import Path
from typing import Iterable, Optional, Union

from nextroute.annotations.model import (
    FileScan,
    HandlerDescriptor,
    Parameter,
    RawDirective,
    ResultValue,
)
from nextroute.errors import ScanError, SourcePosition
from nextroute.extractors.python.registry import TypeRegistry

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]

_TUPLE_ORIGINS = {"builtins.tuple", "typing.Tuple"}


def read_module(path: Path, max_bytes: int = 2_000_000) -> tuple[Optional[ast.Module], Optional[ScanError]]:
    """Parse a route module with ast only; never imports or executes it."""
    try:
        source = path.read_bytes()[:max_bytes].decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return None, ScanError(f"cannot read module: {e}", SourcePosition(str(path), 1))
    try:
        return ast.parse(source, filename=str(path)), None
    except SyntaxError as e:
        pos = SourcePosition(str(path), e.lineno or 1, e.offset or 0)
        return None, ScanError(f"syntax error: {e.msg}", pos)


def extract_file_scan(
    tree: ast.Module,
    *,
    path: str,
    rel_path: str,
    module: str,
    registry: TypeRegistry,
    collect_handlers: bool = True,
) -> FileScan:
    """
    Extract handler signatures and candidate directive expressions from
    one module. Handlers are public top-level functions:

      _ = Mapping.http_method("POST")
      def create(todo: Todo) -> Todo: ...

    Directive candidates are module-level assignment values and bare
    call statements, plus decorators on handlers. Which of them really
    are directives is decided by the parser.
    """
    scan = FileScan(path=path, rel_path=rel_path, module=module)
    package_name = module.rpartition(".")[0].rpartition(".")[2]

    for node in tree.body:
        for value in _statement_values(node):
            scan.directives.append(RawDirective(node=value, position=_pos(path, value)))

        if not collect_handlers or not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            continue
        if node.name.startswith("_"):
            continue

        handler = HandlerDescriptor(
            name=node.name,
            module=module,
            package_name=package_name,
            position=_pos(path, node),
            rel_path=rel_path,
            doc=ast.get_docstring(node) or "",
            is_async=isinstance(node, ast.AsyncFunctionDef),
        )
        handler.params = _parse_params(node, handler, registry, scan)
        handler.results = _parse_results(node, module, registry)
        scan.handlers.append(handler)

        for dec in node.decorator_list:
            scan.directives.append(RawDirective(node=dec, position=_pos(path, dec), decorates=node.name))

    # stable ordering: source line, then column
    scan.directives.sort(key=lambda d: (d.position.line, d.position.column))
    scan.handlers.sort(key=lambda h: h.position.line)
    return scan


def _statement_values(node: ast.stmt) -> Iterable[ast.expr]:
    if isinstance(node, ast.Assign):
        yield node.value
    elif isinstance(node, ast.AnnAssign) and node.value is not None:
        yield node.value
    elif isinstance(node, ast.Expr) and isinstance(node.value, ast.Call):
        yield node.value


def _parse_params(
    node: FunctionNode,
    handler: HandlerDescriptor,
    registry: TypeRegistry,
    scan: FileScan,
) -> list[Parameter]:
    # *args / **kwargs never bind to a request
    args = [*node.args.posonlyargs, *node.args.args, *node.args.kwonlyargs]
    params: list[Parameter] = []
    for a in args:
        if a.annotation is None:
            scan.errors.append(
                ScanError(
                    f"parameter {a.arg!r} of handler {handler.name!r} has no type annotation",
                    _pos(scan.path, a),
                )
            )
        params.append(Parameter(name=a.arg, type=registry.resolve_type(handler.module, a.annotation)))
    return params


def _parse_results(node: FunctionNode, module: str, registry: TypeRegistry) -> list[ResultValue]:
    ann = node.returns
    if ann is None or (isinstance(ann, ast.Constant) and ann.value is None):
        return []

    if isinstance(ann, ast.Subscript):
        origin = registry.resolve_symbol(module, ann.value)
        if origin in _TUPLE_ORIGINS:
            elts = ann.slice.elts if isinstance(ann.slice, ast.Tuple) else [ann.slice]
            return [ResultValue(name="", type=registry.resolve_type(module, e)) for e in elts]

    return [ResultValue(name="", type=registry.resolve_type(module, ann))]


def _pos(path: str, node: ast.AST) -> SourcePosition:
    return SourcePosition(path, getattr(node, "lineno", 1) or 1, (getattr(node, "col_offset", 0) or 0) + 1)
