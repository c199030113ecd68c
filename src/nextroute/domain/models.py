from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from nextroute.annotations.model import TypeRef
from nextroute.routing.table import ResolvedRoute, RouteTable

LocationName = Literal["path", "query", "header", "body", "context", "none"]


class TypeSpec(BaseModel):
    module: str
    name: str
    optional: bool = False
    primitive: bool = False
    display: str = ""

    @classmethod
    def from_ref(cls, t: TypeRef) -> "TypeSpec":
        return cls(module=t.module, name=t.name, optional=t.optional, primitive=t.is_primitive, display=t.display)


class ParamSpec(BaseModel):
    name: str
    type: TypeSpec
    location: Optional[LocationName] = None
    path_param_name: str = ""


class ResultSpec(BaseModel):
    name: str
    type: TypeSpec
    is_error: bool = False


class RouteSpec(BaseModel):
    """Everything an emitter needs to wire and document one route."""

    pattern: str
    method: str
    match: Literal["Path", "PathPrefix"] = "Path"
    status_code: int = 200

    handler_name: str
    module: str
    file_path: str = ""
    line: int = 0
    doc: str = ""
    is_async: bool = False
    generated_module: str = ""

    middlewares: list[str] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)
    bind_query: list[TypeSpec] = Field(default_factory=list)
    bind_header: list[TypeSpec] = Field(default_factory=list)

    path_params: list[str] = Field(default_factory=list)
    params: list[ParamSpec] = Field(default_factory=list)
    results: list[ResultSpec] = Field(default_factory=list)
    returns_error: bool = False

    @classmethod
    def from_route(cls, route: ResolvedRoute) -> "RouteSpec":
        h = route.handler
        return cls(
            pattern=route.pattern,
            method=route.method,
            match=route.match,
            status_code=route.status_code,
            handler_name=h.name,
            module=h.module,
            file_path=h.rel_path,
            line=h.position.line,
            doc=h.doc,
            is_async=h.is_async,
            generated_module=route.generated_module,
            middlewares=list(route.middlewares),
            labels=dict(route.labels),
            bind_query=[TypeSpec.from_ref(t) for t in route.bind_query],
            bind_header=[TypeSpec.from_ref(t) for t in route.bind_header],
            path_params=list(route.path_params),
            params=[
                ParamSpec(
                    name=p.name,
                    type=TypeSpec.from_ref(p.type),
                    location=p.location,
                    path_param_name=p.path_param_name,
                )
                for p in h.params
            ],
            results=[ResultSpec(name=r.name, type=TypeSpec.from_ref(r.type), is_error=r.is_error) for r in h.results],
            returns_error=h.returns_error,
        )


def route_specs(table: RouteTable) -> list[RouteSpec]:
    # RouteTable iterates by pattern, then method
    return [RouteSpec.from_route(r) for r in table]
