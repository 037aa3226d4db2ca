from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated

import click
import typer
from rich.console import Console

from standardsentinel import __version__
from standardsentinel.build_hook import EXIT_INFRASTRUCTURE, execute_build_validation
from standardsentinel.engine.types import ViolationReport
from standardsentinel.logging_utils import configure_logging
from standardsentinel.reporters.json_reporter import render_json
from standardsentinel.reporters.terminal import render_terminal
from standardsentinel.reporters.xml_reporter import render_xml

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="StandardSentinel: structural coding-standards validation for C# projects.",
)
console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def _main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose logs (printed to stderr)."),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Reduce non-essential output."),
    ] = False,
) -> None:
    """StandardSentinel CLI."""

    if verbose and quiet:
        raise typer.BadParameter("Choose at most one: --verbose or --quiet.")
    configure_logging(verbose=verbose, quiet=quiet)
    ctx.obj = {"verbose": verbose, "quiet": quiet}


def _cli_settings() -> dict[str, bool]:
    ctx = click.get_current_context(silent=True)
    if ctx is None or not isinstance(ctx.obj, dict):
        return {"verbose": False, "quiet": False}
    return {"verbose": bool(ctx.obj.get("verbose", False)), "quiet": bool(ctx.obj.get("quiet", False))}


def _emit_output(fmt: str, *, report: ViolationReport, project_root: Path, show_details: bool = True) -> None:
    normalized = fmt.strip().lower()
    if normalized == "terminal":
        render_terminal(report, project_root=project_root, console=console, show_details=show_details)
        return
    if normalized == "json":
        typer.echo(render_json(report, project_root=project_root))
        return
    if normalized == "xml":
        typer.echo(render_xml(report, project_root=project_root), nl=False)
        return
    raise typer.BadParameter("Unsupported format. Use: terminal, json, xml.")


def _normalize_choice(value: str, choices: tuple[str, ...], *, option: str) -> str:
    normalized = value.strip().lower()
    if normalized not in choices:
        raise typer.BadParameter(f"Unsupported {option}. Use: {', '.join(choices)}.")
    return normalized


@app.command()
def validate(
    project_path: Annotated[
        Path,
        typer.Option(
            "--project-path",
            file_okay=False,
            dir_okay=True,
            help="Project directory to validate (default: current directory).",
        ),
    ] = Path("."),
    config_path: Annotated[
        Path | None,
        typer.Option("--config-path", dir_okay=False, help="Configuration document (default: coding-standards.json)."),
    ] = None,
    report_path: Annotated[
        Path | None,
        typer.Option("--report-path", help="Where to write the report (default: obj/standards-report.xml)."),
    ] = None,
    report_format: Annotated[
        str,
        typer.Option("--report-format", help="Report file format: xml, json.", show_default=True),
    ] = "xml",
    fail_on_critical: Annotated[
        bool | None,
        typer.Option(
            "--fail-on-critical/--no-fail-on-critical",
            help="Exit 1 when error-severity violations are found (default: use config).",
            show_default=False,
        ),
    ] = None,
    enforce_enhanced_standards: Annotated[
        bool,
        typer.Option(
            "--enforce-enhanced-standards",
            help="Treat self-qualifier and file-organization violations as errors.",
        ),
    ] = False,
    output_format: Annotated[
        str,
        typer.Option("--format", help="Console output format: terminal, json, xml.", show_default=True),
    ] = "terminal",
    workers: Annotated[
        int | None,
        typer.Option("--workers", min=1, help="Worker threads (default: STANDARDSENTINEL_WORKERS or CPU count)."),
    ] = None,
) -> None:
    """
    Validate a project and write the violation report.

    Exit codes: 0 success, 1 critical violations, 2 the run could not complete.
    """

    settings = _cli_settings()
    report_fmt = _normalize_choice(report_format, ("xml", "json"), option="report format")
    output_fmt = _normalize_choice(output_format, ("terminal", "json", "xml"), option="format")

    outcome = execute_build_validation(
        project_path,
        config_path=config_path,
        report_path=report_path,
        report_format=report_fmt,
        fail_on_critical=fail_on_critical,
        enforce_enhanced_standards=True if enforce_enhanced_standards else None,
        workers=workers,
        emit_messages=False,
    )
    if outcome.run is None:
        err_console.print(f"Project path not found: {project_path}")
        raise typer.Exit(code=EXIT_INFRASTRUCTURE)

    _emit_output(
        output_fmt,
        report=outcome.run.report,
        project_root=outcome.run.project_root,
        show_details=not settings["quiet"],
    )
    if outcome.exit_code == EXIT_INFRASTRUCTURE:
        err_console.print("Failed to write the validation report.")
    if outcome.exit_code:
        raise typer.Exit(code=outcome.exit_code)


@app.command()
def fix(
    project_path: Annotated[
        Path,
        typer.Option(
            "--project-path",
            exists=True,
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
            help="Project directory to fix (default: current directory).",
        ),
    ] = Path("."),
    config_path: Annotated[
        Path | None,
        typer.Option("--config-path", dir_okay=False, help="Configuration document (default: coding-standards.json)."),
    ] = None,
    rule: Annotated[
        list[str] | None,
        typer.Option("--rule", help="Only apply fixes for this rule id (repeatable)."),
    ] = None,
    backup: Annotated[
        bool,
        typer.Option("--backup", help="Create a .bak backup before writing."),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Don't write changes; only print a unified diff."),
    ] = False,
) -> None:
    """
    Apply automatic fixes for fixable rules.

    Fixes for one file are applied one at a time with a re-parse in between.
    Moving files into their configured folders is left to you.
    """

    from standardsentinel.autofix import autofix_project
    from standardsentinel.config import load_config

    config = load_config(project_path, config_path=config_path)
    try:
        result = autofix_project(project_path, config, rule_ids=rule, dry_run=dry_run, backup=backup)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    for file_result in result.file_results:
        for message in file_result.skipped:
            logger.info("Could not fix %s: %s", file_result.path, message)

    if not result.changed_files:
        console.print("No changes needed.")
        return

    diff = result.diff
    if diff:
        typer.echo(diff)
    if not dry_run and not _cli_settings()["quiet"]:
        err_console.print(f"Applied {result.applied_count} fix(es) in {len(result.changed_files)} file(s).")


@app.command()
def rules(
    project_path: Annotated[
        Path,
        typer.Option(
            "--project-path",
            exists=True,
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
            help="Project directory used to load the configuration (default: current directory).",
        ),
    ] = Path("."),
    config_path: Annotated[
        Path | None,
        typer.Option("--config-path", dir_okay=False, help="Configuration document (default: coding-standards.json)."),
    ] = None,
    output_format: Annotated[
        str,
        typer.Option("--format", help="Output format: terminal, json.", show_default=True),
    ] = "terminal",
    enabled_only: Annotated[
        bool,
        typer.Option("--enabled-only", help="Only show rules enabled by the current config."),
    ] = False,
) -> None:
    """
    List all rules with their effective severity.
    """

    from rich.table import Table

    from standardsentinel.config import is_rule_enabled, load_config, resolve_severity
    from standardsentinel.rules.catalog import all_descriptors

    config = load_config(project_path, config_path=config_path)
    rows = []
    for desc in all_descriptors():
        enabled = is_rule_enabled(config, desc)
        if enabled_only and not enabled:
            continue
        rows.append(
            {
                "rule_id": desc.rule_id,
                "name": desc.name,
                "enabled": enabled,
                "severity": resolve_severity(config, desc),
                "category": desc.category,
                "fixable": desc.fixable,
                "title": desc.title,
            }
        )

    normalized = output_format.strip().lower()
    if normalized == "json":
        typer.echo(json.dumps(rows, indent=2, sort_keys=True))
        return
    if normalized != "terminal":
        raise typer.BadParameter("Unsupported format. Use: terminal, json.")

    table = Table(title="StandardSentinel Rules")
    table.add_column("ID", style="bold")
    table.add_column("Enabled", justify="center")
    table.add_column("Severity")
    table.add_column("Category")
    table.add_column("Fix", justify="center")
    table.add_column("Title")
    for row in rows:
        table.add_row(
            str(row["rule_id"]),
            "yes" if row["enabled"] else "no",
            str(row["severity"]),
            str(row["category"]),
            "yes" if row["fixable"] else "-",
            str(row["title"]),
        )
    console.print(table)


@app.command()
def explain(
    rule_id: Annotated[
        str,
        typer.Argument(help="Rule id to explain (e.g. BDD3001, BDD7002)."),
    ],
    output_format: Annotated[
        str,
        typer.Option("--format", help="Output format: terminal, json.", show_default=True),
    ] = "terminal",
) -> None:
    """
    Explain a single rule (metadata + configuration hints).
    """

    from rich.panel import Panel
    from rich.syntax import Syntax
    from rich.text import Text

    from standardsentinel.rules.catalog import descriptors_for_section, find_descriptor

    desc = find_descriptor(rule_id)
    if desc is None:
        raise typer.BadParameter(
            f"Unknown rule id: {rule_id!r}. Use `standardsentinel rules` to list available rules."
        )

    normalized = output_format.strip().lower()
    if normalized == "json":
        payload = {
            "rule_id": desc.rule_id,
            "name": desc.name,
            "title": desc.title,
            "description": desc.description,
            "message": desc.message_template,
            "category": desc.category,
            "default_severity": desc.default_severity,
            "section": desc.section,
            "follows_enforcement_level": desc.follows_enforcement_level,
            "fixable": desc.fixable,
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return
    if normalized != "terminal":
        raise typer.BadParameter("Unsupported format. Use: terminal, json.")

    related = [d.rule_id for d in descriptors_for_section(desc.section) if d.rule_id != desc.rule_id] if desc.section else []

    header = Text()
    header.append(desc.rule_id, style="bold")
    header.append(" · ", style="dim")
    header.append(desc.title)

    details = "\n".join(
        [
            desc.description,
            "",
            f"Name: {desc.name}",
            f"Category: {desc.category}",
            f"Default severity: {desc.default_severity}",
            f"Configuration section: {desc.section or '-'}",
            f"Automatic fix: {'yes' if desc.fixable else 'no'}",
            f"Related rules: {', '.join(related) or '-'}",
        ]
    )
    console.print(Panel(details, title=header, border_style="cyan"))

    console.print(Text("Config override (coding-standards.json):", style="bold"))
    console.print(
        Syntax(
            json.dumps({"rules": {desc.rule_id: {"enabled": True, "severity": "error"}}}, indent=2),
            "json",
            word_wrap=True,
        )
    )
