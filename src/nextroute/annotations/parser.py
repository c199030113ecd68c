from __future__ import annotations

import ast
from typing import Any, Callable, Optional

from nextroute.annotations.model import Directive, RawDirective, Scope, TypeRef
from nextroute.errors import DirectiveParseError, SourcePosition
from nextroute.extractors.python.registry import TypeRegistry

_HANDLER_ONLY = {"http_method", "status_code", "path_prefix"}


class DirectiveParser:
    """
    Turns a Mapping / MappingFile call chain into a Directive.

    Errors are collected on ``self.errors`` and parsing carries on with
    whatever arguments were usable, so one bad expression never hides
    the rest of a file.
    """

    def __init__(self, registry: TypeRegistry) -> None:
        self.registry = registry
        self.errors: list[DirectiveParseError] = []
        self._handlers: dict[str, Callable[[str, str, ast.Call, Directive], None]] = {
            "http_method": self._http_method,
            "status_code": self._status_code,
            "path_prefix": self._path_prefix,
            "middleware": self._middleware,
            "label": self._label,
            "bind_query": self._bind_query,
            "bind_header": self._bind_header,
        }

    def parse(self, module: str, raw: RawDirective) -> Directive:
        """
        Returns an empty Directive (scope None) when the expression is not
        a directive chain, e.g. ``app = FastAPI()``.
        """
        calls: list[ast.Call] = []
        scope = self._walk(module, raw.node, calls)
        if scope is None:
            return Directive()

        directive = Directive(scope=scope, position=raw.position)
        # collected outermost first; apply in source order so the last
        # call of a repeated scalar directive wins
        for call in reversed(calls):
            self._apply(module, raw.position.file, scope, call, directive)
        return directive

    def _walk(self, module: str, expr: ast.expr, calls: list[ast.Call]) -> Optional[Scope]:
        if isinstance(expr, ast.Call):
            if not isinstance(expr.func, ast.Attribute):
                return None
            calls.append(expr)
            return self._walk(module, expr.func.value, calls)
        if isinstance(expr, (ast.Name, ast.Attribute)):
            return self.registry.entry_scope(module, expr)
        return None

    def _apply(self, module: str, file: str, scope: Scope, call: ast.Call, d: Directive) -> None:
        if not isinstance(call.func, ast.Attribute):
            return
        name = call.func.attr

        handler = self._handlers.get(name)
        if handler is None:
            self._err(file, call, f"unrecognized directive call {name!r}")
            return
        if scope == "file" and name in _HANDLER_ONLY:
            self._err(file, call, f"{name!r} is not allowed on MappingFile")
            return
        if call.keywords:
            self._err(file, call, f"{name!r} does not accept keyword arguments")

        handler(module, file, call, d)

    # ----------------------------
    # directive calls
    # ----------------------------

    def _http_method(self, module: str, file: str, call: ast.Call, d: Directive) -> None:
        if len(call.args) != 1:
            self._err(file, call, f"unexpected http_method args: {_src(call)}")
            return
        values = self._const_strings(module, file, call.args)
        if not values:
            return
        if not values[0].strip():
            self._err(file, call, f"unexpected http_method args: {_src(call)}")
            return
        d.method = values[0].strip().upper()

    def _status_code(self, module: str, file: str, call: ast.Call, d: Directive) -> None:
        if len(call.args) != 1:
            self._err(file, call, f"unexpected status_code args: {_src(call)}")
            return
        arg = call.args[0]
        value = self.registry.resolve_constant(module, arg)
        if value is None:
            self._non_constant(file, arg)
            return
        try:
            if isinstance(value, float):
                raise ValueError(value)
            d.status_code = int(value)
        except ValueError:
            self._err(file, arg, f"unexpected status_code arg: {_src(arg)}")

    def _path_prefix(self, module: str, file: str, call: ast.Call, d: Directive) -> None:
        if call.args:
            self._err(file, call, "path_prefix takes no arguments")
        d.path_prefix = True

    def _middleware(self, module: str, file: str, call: ast.Call, d: Directive) -> None:
        d.middleware.extend(self._const_strings(module, file, call.args))

    def _label(self, module: str, file: str, call: ast.Call, d: Directive) -> None:
        for token in self._const_strings(module, file, call.args):
            key, sep, value = token.partition("=")
            if sep:
                d.labels[key] = value

    def _bind_query(self, module: str, file: str, call: ast.Call, d: Directive) -> None:
        d.bind_query.extend(self._bind_types(module, file, call.args))

    def _bind_header(self, module: str, file: str, call: ast.Call, d: Directive) -> None:
        d.bind_header.extend(self._bind_types(module, file, call.args))

    # ----------------------------
    # arguments
    # ----------------------------

    def _bind_types(self, module: str, file: str, args: list[ast.expr]) -> list[TypeRef]:
        out: list[TypeRef] = []
        for arg in args:
            if (
                isinstance(arg, ast.Call)
                and isinstance(arg.func, (ast.Name, ast.Attribute))
                and not arg.args
                and not arg.keywords
            ):
                out.append(self.registry.resolve_type(module, arg.func))
                continue
            self._err(file, arg, f"unexpected bind arg: {_src(arg)}, must look like Foo() or pkg.Foo()")
        return out

    def _const_strings(self, module: str, file: str, args: list[ast.expr]) -> list[str]:
        out: list[str] = []
        for arg in args:
            value = self._const(module, file, arg)
            if value is None:
                continue
            if not isinstance(value, str):
                self._err(file, arg, f"arg {_src(arg)} expected to be a constant string, got {type(value).__name__}")
                continue
            out.append(value)
        return out

    def _const(self, module: str, file: str, arg: ast.expr) -> Any:
        value = self.registry.resolve_constant(module, arg)
        if value is None:
            self._non_constant(file, arg)
        return value

    def _non_constant(self, file: str, arg: ast.expr) -> None:
        self._err(file, arg, f"arg {_src(arg)} expected to be a constant, got {type(arg).__name__}")

    def _err(self, file: str, node: ast.AST, message: str) -> None:
        pos = SourcePosition(file, getattr(node, "lineno", 1) or 1, (getattr(node, "col_offset", 0) or 0) + 1)
        self.errors.append(DirectiveParseError(message, pos))


def _src(node: ast.AST) -> str:
    return ast.unparse(node)
