"""CLI application for depmend."""

import asyncio
import json
import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from core.config import DEFAULT_MAX_CYCLES, DEFAULT_TIMEOUT, SessionConfig
from core.detect import detect_package_manager, identify
from core.errors import (
    DepmendError,
    LoopBoundExceededError,
    ManifestNotFoundError,
    ManifestParseError,
    ManifestReadError,
)
from core.models import Analysis, SessionReport
from core.orchestrator import Orchestrator, analyze
from core.parse_node import PackageJsonManifest, merge_dependencies, parse_package_json

console = Console()
err_console = Console(stderr=True)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFLICTS = 2


def format_analysis(analysis: Analysis) -> Table:
    """Render conflicts and proposed edits as a table."""
    table = Table(title="Conflicts")
    table.add_column("Package A")
    table.add_column("Package B")
    table.add_column("Reason")
    table.add_column("Proposal")

    for resolution in analysis.resolutions:
        pair = resolution.pair
        if resolution.resolved:
            proposal = f"both -> {resolution.outcomes[0].version}"
        else:
            proposal = "unresolved"
        table.add_row(
            escape(f"{pair.first.name}@{pair.first.spec}"),
            escape(f"{pair.second.name}@{pair.second.spec}"),
            pair.reason.value,
            escape(proposal),
        )
    return table


def format_report(report: SessionReport) -> None:
    """Print a session report for humans."""
    style = "green" if report.outcome.ok else "yellow"
    console.print(f"Outcome: {report.outcome.value}", style=style)
    if report.package_manager:
        console.print(f"Package manager: {report.package_manager}")
    console.print(f"Cycles: {report.cycles}")
    for name, version in report.edits.items():
        console.print(escape(f"  {name} -> {version}"))
    for pair in report.conflicts:
        console.print(
            escape(f"  conflict: {pair.first.name}@{pair.first.spec} / {pair.second.name}@{pair.second.spec}"),
            style="red",
        )
    if report.detail:
        console.print(escape(report.detail))


def read_content(file_path: str) -> tuple[str, str | None]:
    """Read manifest text from a file or from stdin ('-')."""
    if file_path == "-":
        return sys.stdin.read(), None

    path_obj = Path(file_path)
    try:
        return path_obj.read_text(encoding="utf-8"), path_obj.name
    except FileNotFoundError as e:
        raise ManifestNotFoundError(f"File {file_path} not found") from e
    except UnicodeDecodeError as e:
        raise ManifestParseError(f"File {file_path} is not valid UTF-8") from e
    except OSError as e:
        raise ManifestReadError(f"Cannot read {file_path}: {e}") from e


def exit_code_for(report: SessionReport) -> int:
    try:
        report.raise_for_outcome()
    except LoopBoundExceededError:
        return EXIT_CONFLICTS
    except DepmendError:
        return EXIT_ERROR
    return EXIT_OK


app = typer.Typer(
    name="depmend",
    help="depmend - Find and resolve conflicting version ranges in package.json",
    add_completion=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log each step"),
) -> None:
    """depmend - Find and resolve conflicting version ranges in package.json."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


@app.command()
def check(
    file_path: str = typer.Argument("package.json", help="Path to package.json (use '-' for stdin)"),
    format_type: str = typer.Option("text", "--format", help="Output format: text or json"),
) -> None:
    """Report conflicting ranges and the edits that would resolve them."""
    try:
        content, filename = read_content(file_path)
        ecosystem = identify(content, filename)
        if ecosystem != "node":
            console.print(f"Error: Unsupported ecosystem: {ecosystem}", style="red")
            raise typer.Exit(EXIT_ERROR)

        deps, sections = merge_dependencies(parse_package_json(content))
        analysis = analyze(deps, sections)

        if format_type == "json":
            typer.echo(json.dumps(analysis.to_dict(), indent=2))
        elif not analysis.conflicts:
            console.print(f"No conflicts among {len(deps)} dependencies", style="green")
        else:
            console.print(format_analysis(analysis))
            for name in analysis.malformed:
                console.print(escape(f"Malformed specifier: {name}@{deps[name]}"), style="red")

        raise typer.Exit(EXIT_CONFLICTS if analysis.conflicts else EXIT_OK)

    except typer.Exit:
        raise
    except DepmendError as e:
        console.print(f"Error: {escape(str(e))}", style="red")
        raise typer.Exit(EXIT_ERROR)


@app.command()
def resolve(
    file_path: str = typer.Argument("package.json", help="Path to package.json"),
    timeout: float = typer.Option(
        DEFAULT_TIMEOUT, "--timeout", envvar="DEPMEND_TIMEOUT", help="Seconds allowed for each install"
    ),
    max_cycles: int = typer.Option(
        DEFAULT_MAX_CYCLES, "--max-cycles", envvar="DEPMEND_MAX_CYCLES", help="Install and re-check passes"
    ),
    package_manager: str | None = typer.Option(
        None, "--package-manager", envvar="DEPMEND_PACKAGE_MANAGER", help="Force npm or yarn"
    ),
    clean_install: bool = typer.Option(False, "--clean-install", help="Force a full reinstall"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show planned edits without applying"),
    format_type: str = typer.Option("text", "--format", help="Output format: text or json"),
) -> None:
    """Resolve conflicting ranges, update package.json and run the package manager."""
    try:
        config = SessionConfig(
            manifest_path=Path(file_path),
            timeout=timeout,
            max_cycles=max_cycles,
            package_manager=package_manager,
            clean_install=clean_install,
            dry_run=dry_run,
        )
    except ValueError as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(EXIT_ERROR)

    report = asyncio.run(Orchestrator(config).run())

    if format_type == "json":
        typer.echo(report.to_json())
    else:
        format_report(report)

    raise typer.Exit(exit_code_for(report))


@app.command()
def detect(
    file_path: str = typer.Argument("package.json", help="Path to package.json"),
) -> None:
    """Print the package manager the project uses."""
    try:
        manifest = PackageJsonManifest(file_path).read()
    except ManifestReadError as e:
        console.print(f"Error: {escape(str(e))}", style="red")
        manifest = None

    package_manager = detect_package_manager(manifest)
    if package_manager is None:
        raise typer.Exit(EXIT_ERROR)
    typer.echo(package_manager)


if __name__ == "__main__":
    app()
