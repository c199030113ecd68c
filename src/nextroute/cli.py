from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from nextroute.config import load_config
from nextroute.domain.models import route_specs
from nextroute.errors import NextrouteError, RouteCollisionError
from nextroute.orchestrator.pipeline import BuildResult, run_build
from nextroute.repo.project import find_project_root

app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()
err_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def _build(
    api_root: str,
    middleware_filename: Optional[str],
    output_package: Optional[str],
) -> BuildResult:
    root = Path(api_root).expanduser().resolve()
    if not root.is_dir():
        raise typer.BadParameter(f"API root is not a directory: {root}")

    config = load_config(find_project_root(root)).with_overrides(
        middleware_filename=middleware_filename,
        output_package=output_package,
    )
    try:
        return run_build(root, config)
    except RouteCollisionError as e:
        _print_errors([*e.errors, e])
        raise typer.Exit(code=1)


def _print_errors(errors: list[NextrouteError]) -> None:
    for e in errors:
        err_console.print(f"[bold red]error[/bold red] {escape(str(e))}")


@app.command()
def routes(
    api_root: str = typer.Argument(..., help="Directory holding the route modules"),
    format: str = typer.Option("table", help="Output format: table|json"),
    strict: bool = typer.Option(True, help="Exit non-zero when any directive error was found"),
    middleware_filename: Optional[str] = typer.Option(None, help="Directory middleware file name"),
    output_package: Optional[str] = typer.Option(None, help="Package the generated code will live in"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    _setup_logging(verbose)
    result = _build(api_root, middleware_filename, output_package)

    fmt = format.lower().strip()
    if fmt not in ("table", "json"):
        raise typer.BadParameter("format must be one of: table, json")

    _print_errors(result.errors)

    if fmt == "json":
        payload = [s.model_dump() for s in route_specs(result.table)]
        console.print_json(json.dumps(payload))
    else:
        table = Table(show_header=True, header_style="bold")
        table.add_column("METHOD", no_wrap=True)
        table.add_column("PATTERN")
        table.add_column("MATCH", no_wrap=True)
        table.add_column("HANDLER")
        table.add_column("MIDDLEWARE")
        table.add_column("FILE:LINE", no_wrap=True)

        for r in result.table:
            h = r.handler
            table.add_row(
                r.method,
                r.pattern,
                r.match,
                h.key,
                ", ".join(r.middlewares),
                f"{h.rel_path}:{h.position.line}",
            )
        console.print(table)
        console.print(f"Files scanned: {result.files_scanned}  Routes: [bold]{len(result.table)}[/bold]")

    if strict and result.errors:
        raise typer.Exit(code=1)


@app.command()
def check(
    api_root: str = typer.Argument(..., help="Directory holding the route modules"),
    middleware_filename: Optional[str] = typer.Option(None, help="Directory middleware file name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    _setup_logging(verbose)
    result = _build(api_root, middleware_filename, None)
    _print_errors(result.errors)
    if result.errors:
        raise typer.Exit(code=1)
    console.print(f"[bold green]ok[/bold green] {len(result.table)} routes in {result.files_scanned} files")


@app.command()
def ping() -> None:
    console.print("pong")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
