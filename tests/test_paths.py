from nextroute.annotations.model import HandlerDescriptor, Parameter, TypeRef
from nextroute.errors import SourcePosition
from nextroute.routing.paths import api_path, synthesize_pattern

STR = TypeRef("builtins", "str")


def make_handler(rel_path: str, *params: Parameter) -> HandlerDescriptor:
    return HandlerDescriptor(
        name="get",
        module="api." + rel_path[:-3].replace("/", "."),
        package_name="",
        position=SourcePosition(rel_path, 1),
        rel_path=rel_path,
        params=list(params),
    )


def test_api_path_normalizes_separators_and_suffix():
    assert api_path("v1/todos.py") == "/v1/todos"
    assert api_path("v1\\todos\\id.py") == "/v1/todos/id"
    assert api_path("/v1//todos.py") == "/v1/todos"


def test_path_parameter_segment_becomes_placeholder():
    h = make_handler("v1/todos/id.py", Parameter("id", STR, location="path"))
    assert synthesize_pattern(h) == "/v1/todos/{id}"


def test_non_path_parameter_is_not_rewritten():
    h = make_handler("v1/todos/id.py", Parameter("id", TypeRef("models", "Id"), location="body"))
    assert synthesize_pattern(h) == "/v1/todos/id"


def test_renamed_parameter_matches_by_original_name():
    h = make_handler(
        "v1/users/show.py",
        Parameter("users_param", STR, location="path", path_param_name="users"),
    )
    assert synthesize_pattern(h) == "/v1/{users}/show"


def test_directory_segments_are_rewritten_too():
    h = make_handler(
        "v1/users/user_id/posts/post_id.py",
        Parameter("user_id", STR, location="path"),
        Parameter("post_id", STR, location="path"),
    )
    assert synthesize_pattern(h) == "/v1/users/{user_id}/posts/{post_id}"


def test_each_parameter_takes_one_segment():
    h = make_handler("v1/id/items/id.py", Parameter("id", STR, location="path"))
    assert synthesize_pattern(h) == "/v1/{id}/items/id"
