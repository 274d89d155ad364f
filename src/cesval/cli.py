"""CLI interface for cesval using Typer framework."""

import json as jsonlib
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from cesval import __description__, __version__
from cesval.config import CesvalConfig, LogLevel, OutputFormat, load_config
from cesval.models.package import PackageModel
from cesval.parser.discovery import find_package_root_for_path, find_package_roots
from cesval.parser.package import build_package_model
from cesval.validation import ValidationIssue, ValidationResult, index_and_validate

app = typer.Typer(
    name="cesval",
    help=__description__,
    add_completion=False,
    rich_markup_mode="rich"
)

console = Console()
err_console = Console(stderr=True)

LOG_LEVELS = {
    LogLevel.ERROR.value: logging.ERROR,
    LogLevel.WARN.value: logging.WARNING,
    LogLevel.INFO.value: logging.INFO,
    LogLevel.DEBUG.value: logging.DEBUG,
}

_verbose = False


def setup_logging(level: str, verbose: bool = False) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else LOG_LEVELS.get(level, logging.WARNING),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    """Show version information and exit."""
    if value:
        console.print(f"cesval version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", callback=version_callback, help="Show version and exit")
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging")
    ] = False,
) -> None:
    """cesval - Structural validator for conversational agent packages."""
    global _verbose
    _verbose = verbose
    setup_logging(LogLevel.WARN.value, verbose)


def resolve_package_dir(path: Optional[Path]) -> Path:
    """Explicit path, else the package enclosing the cwd, else the cwd itself."""
    if path is not None:
        return path.resolve()

    return find_package_root_for_path(Path.cwd()) or Path.cwd()


def _load_config_or_exit(config_path: Optional[Path], package_dir: Path) -> CesvalConfig:
    try:
        config = load_config(config_path, start_dir=package_dir)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    setup_logging(config.logging.level, _verbose)
    return config


def _require_directory(package_dir: Path) -> None:
    if not package_dir.is_dir():
        console.print(f"[red]Error:[/red] Directory not found: {package_dir}")
        raise typer.Exit(1)


def _format_location(issue: ValidationIssue, package_dir: Path) -> str:
    file_path = Path(issue.file)
    try:
        relative = file_path.relative_to(package_dir).as_posix()
    except ValueError:
        relative = issue.file
    return relative if issue.line is None else f"{relative}:{issue.line}"


def _print_inventory_summary(model: PackageModel) -> None:
    if model.direct_tools or model.openapi_operations:
        console.print("[bold]Tool Inventory[/bold]")
        console.print(f"  Direct tools:       [{', '.join(sorted(model.direct_tools))}]", markup=False)
        console.print(f"  OpenAPI operations: [{', '.join(sorted(model.openapi_operations))}]", markup=False)
        console.print()

    if model.evaluations:
        console.print("[bold]Evaluations[/bold]")
        console.print(f"  {len(model.evaluations)} evaluation(s) found")
        console.print()


def _print_issue_group(title: str, issues: list[ValidationIssue], package_dir: Path, color: str) -> None:
    if not issues:
        return

    console.print(f"[bold]{title} ({len(issues)})[/bold]")
    for issue in issues:
        severity = "ERROR" if issue.severity.value == "error" else "WARN"
        console.print(
            f"  [{color}]{severity}[/{color}]  [dim]\\[{issue.code}][/dim] "
            f"{_format_location(issue, package_dir)}"
        )
        console.print(f"         {issue.message}", markup=False)
    console.print()


def _print_table_report(result: ValidationResult, model: Optional[PackageModel], package_dir: Path) -> None:
    if model is not None:
        _print_inventory_summary(model)

    if not result.issues:
        console.print("[green][bold]ALL CHECKS PASSED[/bold][/green]")
        return

    _print_issue_group("Errors", result.errors, package_dir, "red")
    _print_issue_group("Warnings", result.warnings, package_dir, "yellow")

    if result.errors:
        console.print(
            f"[red][bold]FAILED:[/bold][/red] {len(result.errors)} error(s), "
            f"{len(result.warnings)} warning(s)"
        )
    elif result.exit_code:
        console.print(f"[red][bold]FAILED:[/bold][/red] {len(result.warnings)} warning(s) in strict mode")
    else:
        console.print(f"[green][bold]PASSED[/bold][/green] with {len(result.warnings)} warning(s)")


def _print_markdown_report(result: ValidationResult, package_dir: Path) -> None:
    lines = [
        "# Validation Report",
        f"**Status:** {result.status.value}",
        f"**Exit Code:** {result.exit_code}",
        "",
    ]

    if result.counters:
        lines.append("## Counters")
        lines.extend(f"- {key}: {value}" for key, value in sorted(result.counters.items()))
        lines.append("")

    if result.issues:
        lines.append("## Issues")
        for issue in result.issues:
            lines.append(
                f"- **{issue.severity.value.upper()}** `{issue.code}` "
                f"{_format_location(issue, package_dir)}: {issue.message}"
            )

    print("\n".join(lines))


@app.command()
def validate(
    path: Annotated[
        Optional[Path],
        typer.Argument(help="Package directory (default: discover from current directory)")
    ] = None,
    format: Annotated[
        Optional[str],
        typer.Option("--format", "-f", help="Output format: table, json, markdown (default: from config)")
    ] = None,
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Configuration file path (default: search for .cesval.json)")
    ] = None,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Exit non-zero when warnings are found")
    ] = False,
) -> None:
    """Validate an agent package directory."""
    valid_formats = [fmt.value for fmt in OutputFormat]
    if format is not None and format not in valid_formats:
        console.print(f"[red]Error:[/red] Invalid format '{format}'. Must be one of: {', '.join(valid_formats)}")
        raise typer.Exit(1)

    package_dir = resolve_package_dir(path)
    cesval_config = _load_config_or_exit(config, package_dir)
    if strict:
        cesval_config.validation.fail_on_warnings = True
    output_format = format or cesval_config.output.format

    if output_format == OutputFormat.TABLE.value:
        console.print("[bold]=== CES Package Validator ===[/bold]")
        console.print(f"  Package: {package_dir}", markup=False, soft_wrap=True)
        console.print()

    _require_directory(package_dir)

    model, result = index_and_validate(package_dir, cesval_config)

    if output_format == OutputFormat.JSON.value:
        print(jsonlib.dumps(result.to_dict(), indent=2))
    elif output_format == OutputFormat.MARKDOWN.value:
        _print_markdown_report(result, package_dir)
    else:
        _print_table_report(result, model, package_dir)

    raise typer.Exit(result.exit_code)


@app.command()
def inventory(
    path: Annotated[
        Optional[Path],
        typer.Argument(help="Package directory (default: discover from current directory)")
    ] = None,
) -> None:
    """Show the agents, toolsets and tools of an agent package."""
    package_dir = resolve_package_dir(path)
    _require_directory(package_dir)

    model = build_package_model(package_dir)

    agents_table = Table(title="Agents")
    agents_table.add_column("Name", style="cyan")
    agents_table.add_column("Tools", style="white")
    agents_table.add_column("Toolsets", style="white")
    agents_table.add_column("Child Agents", style="white")
    for agent in model.agents:
        manifest = agent.manifest
        agents_table.add_row(
            agent.name,
            ", ".join(manifest.tools or []) if manifest else "",
            ", ".join(manifest.toolset_names()) if manifest else "",
            ", ".join(manifest.child_agents or []) if manifest else "",
        )
    console.print(agents_table)

    toolsets_table = Table(title="Toolsets")
    toolsets_table.add_column("Name", style="cyan")
    toolsets_table.add_column("Schema", style="white")
    for toolset in model.toolsets:
        declared = toolset.manifest.declared_schema_path if toolset.manifest else None
        schema = declared or toolset.auto_detected_schema_path
        toolsets_table.add_row(
            toolset.name,
            str(schema.relative_to(model.root_path)) if isinstance(schema, Path) else (schema or "-"),
        )
    console.print(toolsets_table)

    tools_table = Table(title="Tool Inventory")
    tools_table.add_column("Name", style="cyan")
    tools_table.add_column("Kind", style="white")
    for name in sorted(model.direct_tools):
        tools_table.add_row(name, "direct")
    for name in sorted(model.openapi_operations):
        tools_table.add_row(name, "openapi")
    console.print(tools_table)

    if model.script_tools:
        console.print(f"\n[blue]Script tools:[/blue] {', '.join(tool.name for tool in model.script_tools)}")


@app.command()
def roots(
    path: Annotated[
        Path,
        typer.Argument(help="Directory to search for agent packages")
    ] = Path("."),
) -> None:
    """List agent package roots found under a directory."""
    base_dir = path.resolve()
    _require_directory(base_dir)

    package_roots = find_package_roots(base_dir)
    if not package_roots:
        console.print(f"[yellow]No agent packages found under {base_dir}[/yellow]")
        return

    for package_root in package_roots:
        console.print(str(package_root), markup=False, soft_wrap=True)


if __name__ == "__main__":
    app()
