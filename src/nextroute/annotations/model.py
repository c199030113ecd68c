from __future__ import annotations

import ast
from dataclasses import dataclass, field
from typing import Literal, Optional

from nextroute.errors import NextrouteError, SourcePosition

Location = Literal["path", "query", "header", "body", "context", "none"]
Scope = Literal["handler", "file"]

BUILTINS = "builtins"

PRIMITIVE_TYPES = frozenset(
    {
        "str",
        "int",
        "float",
        "complex",
        "bool",
        "bytes",
        "bytearray",
        # error kinds
        "Exception",
        "BaseException",
    }
)
ERROR_TYPES = frozenset({"Exception", "BaseException"})


@dataclass(frozen=True)
class TypeRef:
    """
    A declared type as seen from source.

    module is the dotted module path ("v1.models", "builtins"), name the
    short class name. optional is the Optional[...] / X | None wrapper.
    """

    module: str
    name: str
    optional: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.module}.{self.name}" if self.module else self.name

    @property
    def display(self) -> str:
        # builtins read better unqualified: "str", "Optional[str]"
        base = self.name if self.module == BUILTINS else f"{self.module.rsplit('.', 1)[-1]}.{self.name}"
        return f"Optional[{base}]" if self.optional else base

    @property
    def is_primitive(self) -> bool:
        return self.module == BUILTINS and self.name in PRIMITIVE_TYPES

    @property
    def is_error(self) -> bool:
        return self.module == BUILTINS and self.name in ERROR_TYPES

    def same_type(self, other: "TypeRef") -> bool:
        return self.module == other.module and self.name == other.name


@dataclass
class Parameter:
    name: str
    type: TypeRef
    location: Optional[Location] = None
    # set when the variable was renamed; the URL placeholder keeps this name
    path_param_name: str = ""

    @property
    def url_name(self) -> str:
        return self.path_param_name or self.name


@dataclass
class ResultValue:
    name: str
    type: TypeRef

    @property
    def is_error(self) -> bool:
        return self.type.is_error


@dataclass
class Directive:
    """Structured form of one Mapping / MappingFile chain."""

    scope: Optional[Scope] = None
    method: str = ""
    status_code: int = 0
    path_prefix: bool = False
    middleware: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    bind_query: list[TypeRef] = field(default_factory=list)
    bind_header: list[TypeRef] = field(default_factory=list)
    position: Optional[SourcePosition] = None
    merged: bool = False


@dataclass
class HandlerDescriptor:
    name: str
    module: str
    package_name: str
    position: SourcePosition
    rel_path: str  # api-root relative, forward slashes, with suffix
    params: list[Parameter] = field(default_factory=list)
    results: list[ResultValue] = field(default_factory=list)
    doc: str = ""
    is_async: bool = False

    # filled by later stages
    directive: Optional[Directive] = None
    file_directive: Optional[Directive] = None
    parent_middlewares: list[str] = field(default_factory=list)
    middlewares: list[str] = field(default_factory=list)
    mapping_merged: bool = False
    shadowed_body: str = ""  # earlier body parameter overridden by a later one
    generated_module: str = ""

    @property
    def key(self) -> str:
        return f"{self.module}.{self.name}" if self.module else self.name

    @property
    def path_params(self) -> list[Parameter]:
        return [p for p in self.params if p.location == "path"]

    @property
    def returns_error(self) -> bool:
        return any(r.is_error for r in self.results)


@dataclass(frozen=True)
class RawDirective:
    """A candidate directive expression and where it was written."""

    node: ast.expr
    position: SourcePosition
    decorates: Optional[str] = None  # handler name for decorator form


@dataclass(frozen=True)
class MiddlewareDeclaration:
    directory: str  # api-root relative, forward slashes, "" for the root
    middleware: tuple[str, ...]
    position: SourcePosition

    @property
    def depth(self) -> int:
        return len([p for p in self.directory.split("/") if p])

    def contains(self, rel_path: str) -> bool:
        if not self.directory:
            return True
        return rel_path.startswith(self.directory + "/")


@dataclass
class FileScan:
    path: str
    rel_path: str
    module: str
    handlers: list[HandlerDescriptor] = field(default_factory=list)
    directives: list[RawDirective] = field(default_factory=list)
    errors: list[NextrouteError] = field(default_factory=list)
