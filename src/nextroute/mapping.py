from __future__ import annotations

from typing import Any, Callable, TypeVar

F = TypeVar("F", bound=Callable[..., Any])


class _FileMapping:
    """
    No-op fluent builder for file-wide directives:

      _ = MappingFile.middleware("auth").bind_header(ApiToken())

    Only recorded by static inspection; calling it at runtime has no effect.
    """

    def middleware(self, *names: str) -> "_FileMapping":
        return self

    def label(self, *pairs: str) -> "_FileMapping":
        return self

    def bind_query(self, *types: Any) -> "_FileMapping":
        return self

    def bind_header(self, *types: Any) -> "_FileMapping":
        return self


class _HandlerMapping(_FileMapping):
    """
    No-op fluent builder for the handler that follows it:

      _ = Mapping.http_method("POST").status_code(201).label("code=CREATE_TODO")
      def create(todo: Todo) -> Todo: ...

    Also usable as a decorator on the handler itself.
    """

    def http_method(self, method: str) -> "_HandlerMapping":
        return self

    def status_code(self, code: int | str) -> "_HandlerMapping":
        return self

    def path_prefix(self) -> "_HandlerMapping":
        return self

    def __call__(self, fn: F) -> F:
        return fn


Mapping = _HandlerMapping()
MappingFile = _FileMapping()


class Context:
    """Marker: request-scoped host context passed through to the handler."""


class Request:
    """Marker: raw request passed through to the handler."""


class ResponseWriter:
    """Marker: raw response writer passed through to the handler."""
