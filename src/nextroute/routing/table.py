from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from nextroute.annotations.model import HandlerDescriptor, TypeRef
from nextroute.errors import RouteCollision, RouteCollisionError


@dataclass(frozen=True)
class ResolvedRoute:
    pattern: str
    method: str
    handler: HandlerDescriptor
    status_code: int = 200
    path_prefix: bool = False
    middlewares: tuple[str, ...] = ()
    labels: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    bind_query: tuple[TypeRef, ...] = ()
    bind_header: tuple[TypeRef, ...] = ()
    path_params: tuple[str, ...] = ()
    generated_module: str = ""

    @property
    def match(self) -> str:
        return "PathPrefix" if self.path_prefix else "Path"


def resolve_route(handler: HandlerDescriptor, pattern: str, output_package: str = "") -> ResolvedRoute:
    """Freeze a merged and classified handler into a route entry."""
    d = handler.directive
    if d is None or not handler.mapping_merged:
        raise ValueError(f"handler {handler.key} has not been merged")

    if output_package:
        directory = posixpath.dirname(handler.rel_path.replace("\\", "/"))
        suffix = directory.replace("/", ".")
        handler.generated_module = f"{output_package}.{suffix}" if suffix else output_package

    return ResolvedRoute(
        pattern=pattern,
        method=d.method,
        handler=handler,
        status_code=d.status_code,
        path_prefix=d.path_prefix,
        middlewares=tuple(handler.middlewares),
        labels=MappingProxyType(dict(d.labels)),
        bind_query=tuple(d.bind_query),
        bind_header=tuple(d.bind_header),
        path_params=tuple(p.url_name for p in handler.path_params),
        generated_module=handler.generated_module,
    )


class RouteTable:
    """pattern -> method -> ResolvedRoute. Read-only."""

    def __init__(self, routes: dict[str, dict[str, ResolvedRoute]]) -> None:
        self._routes = MappingProxyType(
            {pattern: MappingProxyType(dict(methods)) for pattern, methods in routes.items()}
        )

    @property
    def routes(self) -> Mapping[str, Mapping[str, ResolvedRoute]]:
        return self._routes

    def get(self, pattern: str, method: str) -> Optional[ResolvedRoute]:
        methods = self._routes.get(pattern)
        if methods is None:
            return None
        return methods.get(method.upper())

    def patterns(self) -> list[str]:
        return sorted(self._routes)

    def __iter__(self) -> Iterator[ResolvedRoute]:
        # stable ordering: pattern, then method
        for pattern in self.patterns():
            methods = self._routes[pattern]
            for method in sorted(methods):
                yield methods[method]

    def __len__(self) -> int:
        return sum(len(m) for m in self._routes.values())

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._routes


class RouteTableBuilder:
    """
    Groups resolved routes by pattern and method.

    A second route for the same (pattern, method) is never stored; every
    such collision is reported together when the table is built.
    """

    def __init__(self) -> None:
        self._routes: dict[str, dict[str, ResolvedRoute]] = {}
        self._collisions: list[RouteCollision] = []
        self._built = False

    def add(self, route: ResolvedRoute) -> None:
        if self._built:
            raise RuntimeError("route table already built")

        methods = self._routes.setdefault(route.pattern, {})
        existing = methods.get(route.method)
        if existing is not None:
            self._collisions.append(
                RouteCollision(
                    pattern=route.pattern,
                    method=route.method,
                    first=existing.handler.position,
                    second=route.handler.position,
                )
            )
            return
        methods[route.method] = route

    def build(self) -> RouteTable:
        if self._built:
            raise RuntimeError("route table already built")
        self._built = True
        if self._collisions:
            raise RouteCollisionError(self._collisions)
        table = RouteTable(self._routes)
        self._routes = {}
        return table
