from pathlib import Path

from typer.testing import CliRunner

from nextroute.cli import app

runner = CliRunner()


def make_api(tmp_path: Path, body: str) -> Path:
    (tmp_path / "pyproject.toml").write_text('[project]\nname = "demo"\n', encoding="utf-8")
    api = tmp_path / "api"
    api.mkdir()
    (api / "todos.py").write_text(body, encoding="utf-8")
    return api


def test_ping():
    result = runner.invoke(app, ["ping"])
    assert result.exit_code == 0
    assert "pong" in result.output


def test_check_reports_route_count(tmp_path: Path):
    api = make_api(tmp_path, "def get() -> None:\n    ...\n")
    result = runner.invoke(app, ["check", str(api)])
    assert result.exit_code == 0, result.output
    assert "1 routes in 1 files" in result.output


def test_check_fails_on_directive_errors(tmp_path: Path):
    api = make_api(
        tmp_path,
        "from nextroute.mapping import Mapping\n\n_ = Mapping.http_method(1, 2)\n\ndef get() -> None:\n    ...\n",
    )
    result = runner.invoke(app, ["check", str(api)])
    assert result.exit_code == 1


def test_check_fails_on_route_collision(tmp_path: Path):
    api = make_api(tmp_path, "def a() -> None:\n    ...\n\ndef b() -> None:\n    ...\n")
    result = runner.invoke(app, ["check", str(api)])
    assert result.exit_code == 1


def test_routes_json_lists_specs(tmp_path: Path):
    api = make_api(tmp_path, "def get(id: str) -> None:\n    ...\n")
    result = runner.invoke(app, ["routes", str(api), "--format", "json"])
    assert result.exit_code == 0, result.output
    assert '"pattern": "/todos"' in result.output


def test_collision_output_includes_the_directive_error(tmp_path: Path):
    api = make_api(
        tmp_path,
        "from nextroute.mapping import Mapping\n\n"
        "def a() -> None:\n    ...\n\n"
        "_ = Mapping.http_method(method())\n\n"
        "def b() -> None:\n    ...\n",
    )
    result = runner.invoke(app, ["check", str(api)])
    assert result.exit_code == 1
    output = " ".join(result.output.split())
    assert "expected to be a constant" in output
    assert "ambiguous routes" in output
