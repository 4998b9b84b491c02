"""
glspgen command line.

Commands:

- generate: grammar -> GLSP extension sources
- validate: parse and check a grammar, show node/edge classification
- templates: list available templates
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import GenerationConfig, load_config
from .context.builder import ContextBuilder
from .core.errors import ConfigError, GlspGenError, ParseError, PluginError
from .core.parser import LangiumGrammarParser
from .core.validator import validate_grammar
from .orchestrator import GenerationOrchestrator, GenerationReport
from .rendering.loader import FileTemplateLoader

app = typer.Typer(
    help="Generate GLSP diagram editor extensions from Langium grammars.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

DEFAULT_CONFIG_NAMES = ("glspgen.toml", "glspgen.json")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"glspgen {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """glspgen main callback for global options."""


def _load_config(config_path: Path | None, grammar: Path) -> GenerationConfig:
    if config_path is None:
        for name in DEFAULT_CONFIG_NAMES:
            candidate = grammar.parent / name
            if candidate.exists():
                config_path = candidate
                break
    try:
        return load_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(code=1) from e


def _print_report(report: GenerationReport, output: Path, dry_run: bool) -> None:
    for warning in report.warnings:
        console.print(f"[yellow]warning:[/yellow] {warning}")
    for error in report.errors:
        err_console.print(f"[red]{error.kind}:[/red] {error}")

    if report.success:
        verb = "Would generate" if dry_run else "Generated"
        console.print(f"[green]✓[/green] {verb} {len(report.files)} files in {output}")
    else:
        failed = report.failed_phase.value if report.failed_phase else report.phase.value
        err_console.print(
            f"[red]✗[/red] Generation failed ({failed}): {len(report.errors)} error(s), "
            f"{len(report.written)} file(s) written"
        )


@app.command()
def generate(
    grammar: Annotated[Path, typer.Argument(help="Langium grammar file")],
    output: Annotated[Path, typer.Option("--output", "-o", help="Output directory")] = Path("."),
    config_path: Annotated[Path | None, typer.Option("--config", "-c", help="glspgen.toml or JSON config")] = None,
    target: Annotated[
        list[str] | None,
        typer.Option("--target", "-t", help="Strategy category to generate (common, server, browser). Repeatable."),
    ] = None,
    plugin: Annotated[
        list[str] | None,
        typer.Option("--plugin", "-p", help="Built-in plugin to enable (metrics, type-safety). Repeatable."),
    ] = None,
    templates_dir: Annotated[
        Path | None, typer.Option("--templates", help="Template directory searched before built-ins")
    ] = None,
    fail_fast: Annotated[bool, typer.Option("--fail-fast", help="Stop at the first template failure")] = False,
    workers: Annotated[int, typer.Option("--workers", min=1, help="Threads for per-type rendering")] = 1,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Compute files without writing them")] = False,
    output_json: Annotated[bool, typer.Option("--json", help="Output the report as JSON")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Generate a GLSP extension from a grammar."""
    _setup_logging(verbose)
    config = _load_config(config_path, grammar)

    generation = config.generation
    if target:
        generation.targets = list(target)
    if templates_dir is not None:
        generation.templates_dir = str(templates_dir)
    if fail_fast:
        generation.fail_fast = True
    if workers > 1:
        generation.parallel_workers = workers
    if plugin:
        config.plugins = [*config.plugins, *(p for p in plugin if p not in config.plugins)]

    try:
        orchestrator = GenerationOrchestrator.from_config(config, project_root=Path.cwd())
    except PluginError as e:
        err_console.print(f"[red]Plugin error:[/red] {e}")
        raise typer.Exit(code=1) from e

    report = orchestrator.generate(grammar, config, output_dir=output, dry_run=dry_run)

    if output_json:
        payload = {
            "success": report.success,
            "phase": report.phase.value,
            "files": [f.path for f in report.files],
            "written": [str(p) for p in report.written],
            "errors": [{"kind": e.kind, "message": str(e)} for e in report.errors],
            "warnings": report.warnings,
        }
        typer.echo(json.dumps(payload, indent=2))
    else:
        _print_report(report, output, dry_run)

    if not report.success:
        raise typer.Exit(code=1)


@app.command()
def validate(
    grammar: Annotated[Path, typer.Argument(help="Langium grammar file")],
    config_path: Annotated[Path | None, typer.Option("--config", "-c", help="glspgen.toml or JSON config")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Parse and check a grammar without generating anything."""
    _setup_logging(verbose)
    config = _load_config(config_path, grammar)

    try:
        model = LangiumGrammarParser().parse_grammar_file(grammar)
    except ParseError as e:
        err_console.print(f"[red]Parse error:[/red] {e}")
        raise typer.Exit(code=1) from e
    except OSError as e:
        err_console.print(f"[red]Cannot read grammar:[/red] {e}")
        raise typer.Exit(code=1) from e

    report = validate_grammar(model)
    for warning in report.warnings:
        console.print(f"[yellow]warning:[/yellow] {warning}")
    for error in report.errors:
        err_console.print(f"[red]error:[/red] {error}")
    if not report.ok:
        raise typer.Exit(code=1)

    try:
        context = ContextBuilder().build(model, config)
    except GlspGenError as e:
        err_console.print(f"[red]error:[/red] {e}")
        raise typer.Exit(code=1) from e

    table = Table(title=f"{context.grammar_name} ({len(context.interfaces)} interfaces)")
    table.add_column("Interface", style="cyan")
    table.add_column("Kind")
    table.add_column("Type id")
    table.add_column("Properties", justify="right")
    for info in context.interfaces:
        table.add_row(info.name, info.kind.value, info.type_id, str(len(info.all_properties)))
    console.print(table)
    console.print("[green]✓[/green] Grammar is valid")


@app.command()
def templates(
    category: Annotated[str | None, typer.Argument(help="Only list this category")] = None,
    templates_dir: Annotated[
        Path | None, typer.Option("--templates", help="Template directory searched before built-ins")
    ] = None,
) -> None:
    """List available templates."""
    loader = FileTemplateLoader(project_dir=templates_dir)
    names = loader.list_templates(category)
    if not names:
        console.print("[yellow]No templates found[/yellow]")
        return
    for name in names:
        console.print(name)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
