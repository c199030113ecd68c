import ast
import textwrap

from nextroute.annotations.merge import (
    MergeEngine,
    ancestor_middleware,
    bind_file_directives,
    collect_middleware_declarations,
    merge_directives,
)
from nextroute.annotations.model import Directive, HandlerDescriptor, MiddlewareDeclaration, TypeRef
from nextroute.annotations.parser import DirectiveParser
from nextroute.config import BuildConfig
from nextroute.errors import DanglingDirectiveError, DuplicateFileDirectiveError, MergeError, SourcePosition
from nextroute.extractors.python.registry import TypeRegistry, index_module
from nextroute.extractors.python.source import extract_file_scan

MODULE = "api.v1.todos"
POS = SourcePosition("middleware.py", 1)


def scan_and_bind(src: str):
    tree = ast.parse(textwrap.dedent(src))
    registry = TypeRegistry()
    registry.add(index_module(MODULE, tree))
    scan = extract_file_scan(tree, path="todos.py", rel_path="v1/todos.py", module=MODULE, registry=registry)
    parser = DirectiveParser(registry)
    parsed = [(raw, parser.parse(MODULE, raw)) for raw in scan.directives]
    parsed = [(raw, d) for raw, d in parsed if d.scope is not None]
    errors = bind_file_directives(scan, parsed)
    return scan, errors


def test_merge_defaults_without_handler_directive():
    d = merge_directives(None, None)
    assert d.method == "GET"
    assert d.status_code == 200
    assert d.middleware == []


def test_merge_orders_file_before_handler_and_handler_labels_win():
    h = Directive(
        scope="handler",
        method="POST",
        middleware=["b"],
        labels={"code": "H", "only_h": "1"},
        bind_query=[TypeRef("m", "Q2")],
    )
    f = Directive(
        scope="file",
        middleware=["a"],
        labels={"code": "F", "only_f": "1"},
        bind_query=[TypeRef("m", "Q1")],
        bind_header=[TypeRef("m", "Token")],
    )
    d = merge_directives(h, f)
    assert d.method == "POST"
    assert d.middleware == ["a", "b"]
    assert d.labels == {"code": "H", "only_h": "1", "only_f": "1"}
    assert d.bind_query == [TypeRef("m", "Q1"), TypeRef("m", "Q2")]
    assert d.bind_header == [TypeRef("m", "Token")]
    # inputs are not modified
    assert h.middleware == ["b"]


def test_merge_is_idempotent():
    f = Directive(scope="file", middleware=["a"], labels={"k": "v"})
    once = merge_directives(Directive(scope="handler", middleware=["b"]), f)
    twice = merge_directives(once, f)
    assert twice == once
    assert twice.middleware == ["a", "b"]


def test_ancestor_middleware_applies_root_to_leaf():
    declarations = [
        MiddlewareDeclaration("v1/todos", ("c",), POS),
        MiddlewareDeclaration("", ("a",), POS),
        MiddlewareDeclaration("v1", ("b",), POS),
        MiddlewareDeclaration("v1/todosx", ("x",), POS),
    ]
    assert ancestor_middleware("v1/todos/id.py", declarations) == ["a", "b", "c"]
    assert ancestor_middleware("v2/items.py", declarations) == ["a"]


def test_engine_resolves_directory_middleware_with_exclusions():
    h = HandlerDescriptor(
        name="get",
        module="api.v1.todos.id",
        package_name="todos",
        position=SourcePosition("id.py", 5),
        rel_path="v1/todos/id.py",
        directive=Directive(scope="handler", middleware=["log-"]),
    )
    engine = MergeEngine(BuildConfig(), [MiddlewareDeclaration("v1/todos", ("auth", "log"), POS)])

    first = engine.merge(h)
    second = engine.merge(h)

    assert second is first
    assert h.mapping_merged
    assert h.middlewares == ["auth"]
    assert h.parent_middlewares == ["auth", "log"]


def test_engine_uses_configured_defaults():
    h = HandlerDescriptor(
        name="get",
        module="api.todos",
        package_name="api",
        position=SourcePosition("todos.py", 1),
        rel_path="todos.py",
    )
    d = MergeEngine(BuildConfig(default_method="POST", default_status=201)).merge(h)
    assert (d.method, d.status_code) == ("POST", 201)


def test_statement_directive_binds_to_nearest_following_handler():
    scan, errors = scan_and_bind(
        """
        from nextroute.mapping import Mapping, MappingFile

        _ = MappingFile.middleware("auth")

        def list_todos() -> None:
            pass

        _ = Mapping.http_method("POST")

        def create() -> None:
            pass
        """
    )
    assert errors == []
    by_name = {h.name: h for h in scan.handlers}
    assert by_name["list_todos"].directive is None
    assert by_name["create"].directive.method == "POST"
    assert all(h.file_directive.middleware == ["auth"] for h in scan.handlers)


def test_decorator_directive_binds_to_decorated_handler():
    scan, errors = scan_and_bind(
        """
        from nextroute.mapping import Mapping

        @Mapping.http_method("PUT")
        def update() -> None:
            pass
        """
    )
    assert errors == []
    assert scan.handlers[0].directive.method == "PUT"


def test_two_file_directives_are_rejected():
    _, errors = scan_and_bind(
        """
        from nextroute.mapping import MappingFile

        _ = MappingFile.middleware("a")
        _ = MappingFile.middleware("b")

        def get() -> None:
            pass
        """
    )
    assert len(errors) == 1
    assert isinstance(errors[0], DuplicateFileDirectiveError)
    assert errors[0].position.line == 5


def test_consecutive_handler_directives_are_rejected():
    _, errors = scan_and_bind(
        """
        from nextroute.mapping import Mapping

        _ = Mapping.http_method("POST")
        _ = Mapping.status_code(201)

        def create() -> None:
            pass
        """
    )
    assert len(errors) == 1
    assert isinstance(errors[0], DanglingDirectiveError)


def test_trailing_handler_directive_is_rejected():
    _, errors = scan_and_bind(
        """
        from nextroute.mapping import Mapping

        def get() -> None:
            pass

        _ = Mapping.http_method("POST")
        """
    )
    assert len(errors) == 1
    assert isinstance(errors[0], DanglingDirectiveError)


def test_statement_and_decorator_on_same_handler_are_rejected():
    _, errors = scan_and_bind(
        """
        from nextroute.mapping import Mapping

        _ = Mapping.status_code(201)

        @Mapping.http_method("POST")
        def create() -> None:
            pass
        """
    )
    assert len(errors) == 1
    assert isinstance(errors[0], MergeError)


def middleware_file(rel_path: str, src: str):
    tree = ast.parse(textwrap.dedent(src))
    registry = TypeRegistry()
    registry.add(index_module(MODULE, tree))
    scan = extract_file_scan(
        tree, path=rel_path, rel_path=rel_path, module=MODULE, registry=registry, collect_handlers=False
    )
    parser = DirectiveParser(registry)
    parsed = [(raw, parser.parse(MODULE, raw)) for raw in scan.directives]
    return scan, [(raw, d) for raw, d in parsed if d.scope is not None]


def test_middleware_file_reads_only_its_file_directive():
    scans = [
        middleware_file(
            "v1/middleware.py",
            """
            from nextroute.mapping import Mapping, MappingFile

            _ = MappingFile.middleware("auth")
            _ = Mapping.middleware("trace")
            """,
        ),
        middleware_file(
            "middleware.py",
            """
            from nextroute.mapping import MappingFile

            _ = MappingFile.middleware("recover")
            """,
        ),
    ]
    declarations, errors = collect_middleware_declarations(scans, "middleware.py")

    assert errors == []
    assert [(m.directory, m.middleware) for m in declarations] == [("", ("recover",)), ("v1", ("auth",))]


def test_middleware_file_with_two_file_directives_is_rejected():
    scans = [
        middleware_file(
            "v1/todos/middleware.py",
            """
            from nextroute.mapping import MappingFile

            _ = MappingFile.middleware("auth")
            _ = MappingFile.middleware("log")
            """,
        )
    ]
    declarations, errors = collect_middleware_declarations(scans, "middleware.py")

    assert len(errors) == 1
    assert isinstance(errors[0], DuplicateFileDirectiveError)
    assert errors[0].position.line == 5
    assert declarations[0].middleware == ("auth",)
