from __future__ import annotations

import ast
import builtins
import http
from dataclasses import dataclass, field
from typing import Any, Optional

from nextroute.annotations.model import BUILTINS, Scope, TypeRef

MAPPING_MODULE = "nextroute.mapping"

_ENTRY_SYMBOLS: dict[str, Scope] = {
    f"{MAPPING_MODULE}.Mapping": "handler",
    f"{MAPPING_MODULE}.MappingFile": "file",
}

# stdlib enums whose members are accepted as constants
_STDLIB_CONSTANTS: dict[str, Any] = {
    "http.HTTPStatus": http.HTTPStatus,
    "http.HTTPMethod": http.HTTPMethod,
}

_OPTIONAL_ORIGINS = {"typing.Optional"}
_UNION_ORIGINS = {"typing.Union"}
_ANNOTATED_ORIGINS = {"typing.Annotated", "typing_extensions.Annotated"}

ANY = TypeRef("typing", "Any")


@dataclass
class ModuleIndex:
    """Module-level names of one scanned module (no code is executed)."""

    name: str
    package: str
    imports: dict[str, str] = field(default_factory=dict)
    classes: set[str] = field(default_factory=set)
    constants: dict[str, ast.expr] = field(default_factory=dict)


def index_module(name: str, tree: ast.Module, is_package: bool = False) -> ModuleIndex:
    package = name if is_package else name.rpartition(".")[0]
    idx = ModuleIndex(name=name, package=package)

    for node in tree.body:
        if isinstance(node, ast.Import):
            for alias in node.names:
                if alias.asname:
                    idx.imports[alias.asname] = alias.name
                else:
                    # "import a.b" binds "a"
                    top = alias.name.split(".")[0]
                    idx.imports[top] = top
        elif isinstance(node, ast.ImportFrom):
            base = _absolute_module(package, node.module, node.level)
            for alias in node.names:
                if alias.name == "*":
                    continue
                local = alias.asname or alias.name
                idx.imports[local] = f"{base}.{alias.name}" if base else alias.name
        elif isinstance(node, ast.ClassDef):
            idx.classes.add(node.name)
        elif isinstance(node, ast.Assign) and len(node.targets) == 1:
            target = node.targets[0]
            if isinstance(target, ast.Name) and target.id != "_":
                idx.constants[target.id] = node.value
        elif isinstance(node, ast.AnnAssign) and node.value is not None:
            if isinstance(node.target, ast.Name):
                idx.constants[node.target.id] = node.value

    return idx


def _absolute_module(package: str, module: Optional[str], level: int) -> str:
    if level == 0:
        return module or ""
    parts = package.split(".") if package else []
    if level > 1:
        parts = parts[: len(parts) - (level - 1)]
    base = ".".join(parts)
    if module:
        return f"{base}.{module}" if base else module
    return base


class TypeRegistry:
    """
    Resolves syntactic references inside scanned modules to declared
    types and constant values.
    """

    def __init__(self) -> None:
        self.modules: dict[str, ModuleIndex] = {}

    def add(self, idx: ModuleIndex) -> None:
        self.modules[idx.name] = idx

    # ----------------------------
    # symbols
    # ----------------------------

    def resolve_symbol(self, module: str, expr: ast.expr) -> Optional[str]:
        """Fully qualified dotted name of a Name / Attribute reference."""
        if isinstance(expr, ast.Name):
            idx = self.modules.get(module)
            if idx is not None:
                if expr.id in idx.imports:
                    return idx.imports[expr.id]
                if expr.id in idx.classes or expr.id in idx.constants:
                    return f"{module}.{expr.id}"
            if hasattr(builtins, expr.id):
                return f"{BUILTINS}.{expr.id}"
            return None

        if isinstance(expr, ast.Attribute):
            base = self.resolve_symbol(module, expr.value)
            if base is None:
                return None
            return f"{base}.{expr.attr}"

        return None

    def split_qualified(self, qualified: str) -> tuple[str, str]:
        """'v1.models.Todo' -> ('v1.models', 'Todo') using known modules first."""
        best = ""
        for name in self.modules:
            if qualified.startswith(name + ".") and len(name) > len(best):
                best = name
        if best:
            return best, qualified[len(best) + 1 :]
        mod, _, name = qualified.rpartition(".")
        return mod, name

    def entry_scope(self, module: str, expr: ast.expr) -> Optional[Scope]:
        qualified = self.resolve_symbol(module, expr)
        if qualified is None:
            return None
        return _ENTRY_SYMBOLS.get(qualified)

    # ----------------------------
    # constants
    # ----------------------------

    def resolve_constant(self, module: str, expr: ast.expr) -> Any:
        """Literal value of a constant expression, or None when it is not one."""
        return self._constant(module, expr, set())

    def _constant(self, module: str, expr: ast.expr, seen: set[str]) -> Any:
        if isinstance(expr, ast.Constant):
            if isinstance(expr.value, (str, int, float)):
                return expr.value
            return None

        if not isinstance(expr, (ast.Name, ast.Attribute)):
            return None

        qualified = self.resolve_symbol(module, expr)
        if qualified is None or qualified in seen:
            return None
        seen.add(qualified)

        owner, _, member = qualified.rpartition(".")
        enum_cls = _STDLIB_CONSTANTS.get(owner)
        if enum_cls is not None:
            value = getattr(enum_cls, member, None)
            if value is None:
                return None
            return value.value

        mod, name = self.split_qualified(qualified)
        idx = self.modules.get(mod)
        if idx is None or name not in idx.constants:
            return None
        return self._constant(mod, idx.constants[name], seen)

    # ----------------------------
    # types
    # ----------------------------

    def resolve_type(self, module: str, annotation: Optional[ast.expr]) -> TypeRef:
        if annotation is None:
            return ANY

        if isinstance(annotation, ast.Constant):
            if annotation.value is None:
                return TypeRef(BUILTINS, "None")
            if isinstance(annotation.value, str):
                try:
                    parsed = ast.parse(annotation.value, mode="eval").body
                except SyntaxError:
                    return ANY
                return self.resolve_type(module, parsed)
            return ANY

        # X | None
        if isinstance(annotation, ast.BinOp) and isinstance(annotation.op, ast.BitOr):
            members = [m for m in _flatten_union(annotation) if not _is_none(m)]
            if len(members) == 1:
                inner = self.resolve_type(module, members[0])
                return TypeRef(inner.module, inner.name, optional=True)
            return TypeRef("typing", "Union")

        if isinstance(annotation, ast.Subscript):
            origin = self.resolve_symbol(module, annotation.value) or ""
            args = _subscript_args(annotation)
            if origin in _OPTIONAL_ORIGINS and args:
                inner = self.resolve_type(module, args[0])
                return TypeRef(inner.module, inner.name, optional=True)
            if origin in _ANNOTATED_ORIGINS and args:
                return self.resolve_type(module, args[0])
            if origin in _UNION_ORIGINS:
                members = [a for a in args if not _is_none(a)]
                if len(members) == 1:
                    inner = self.resolve_type(module, members[0])
                    return TypeRef(inner.module, inner.name, optional=len(args) > 1)
                return TypeRef("typing", "Union")
            # generics resolve to their origin: list[Todo] -> builtins.list
            return self.resolve_type(module, annotation.value)

        if isinstance(annotation, (ast.Name, ast.Attribute)):
            qualified = self.resolve_symbol(module, annotation)
            if qualified is None:
                # forward reference to a name we cannot see; assume local
                if isinstance(annotation, ast.Name):
                    return TypeRef(module, annotation.id)
                mod, _, name = ast.unparse(annotation).rpartition(".")
                return TypeRef(mod, name)
            mod, name = self.split_qualified(qualified)
            return TypeRef(mod, name)

        return ANY

    @staticmethod
    def is_primitive(t: TypeRef) -> bool:
        return t.is_primitive


def _is_none(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is None


def _flatten_union(node: ast.expr) -> list[ast.expr]:
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _flatten_union(node.left) + _flatten_union(node.right)
    return [node]


def _subscript_args(node: ast.Subscript) -> list[ast.expr]:
    if isinstance(node.slice, ast.Tuple):
        return list(node.slice.elts)
    return [node.slice]
