from __future__ import annotations

from collections import defaultdict
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from standardsentinel import __version__
from standardsentinel.engine.types import Diagnostic, ViolationReport
from standardsentinel.rules.catalog import descriptor
from standardsentinel.utils import safe_relpath

_SEVERITY_ICON = {"error": "✖", "warning": "⚠"}
_SEVERITY_STYLE = {"error": "bold red", "warning": "yellow"}


def render_terminal(report: ViolationReport, *, project_root: Path, console: Console, show_details: bool = True) -> None:
    header = Text()
    header.append("StandardSentinel ", style="bold")
    header.append(f"v{__version__}", style="dim")
    header.append(f" · {report.project_name}", style="dim")

    console.print(
        Panel(
            header,
            subtitle=f"Scanned {report.summary.files_scanned} files",
            border_style="cyan",
        )
    )

    if not show_details:
        _print_summary(report, console=console)
        return

    by_file: dict[str, list[Diagnostic]] = defaultdict(list)
    project_level: list[Diagnostic] = []

    for d in report.diagnostics:
        if d.location is None or d.location.path is None:
            project_level.append(d)
            continue
        by_file[safe_relpath(d.location.path, project_root)].append(d)

    if project_level:
        console.print(Text("Project", style="bold"))
        for d in project_level:
            _print_diagnostic(console, d, file_lines=None)
        console.print()

    for file_path in sorted(by_file):
        console.print(Text(file_path, style="bold"))
        file_lines = _read_lines(project_root / file_path)
        for d in sorted(by_file[file_path], key=_sort_key):
            _print_diagnostic(console, d, file_lines=file_lines)
        console.print()

    _print_summary(report, console=console)


def _print_diagnostic(console: Console, d: Diagnostic, *, file_lines: list[str] | None) -> None:
    icon = _SEVERITY_ICON.get(d.severity, "•")
    style = _SEVERITY_STYLE.get(d.severity, "")

    loc = ""
    if d.location is not None and d.location.start_line is not None:
        loc = f"{d.location.start_line}"
        if d.location.start_col is not None:
            loc += f":{d.location.start_col}"

    line = Text()
    line.append(f"  {icon} ", style=style)
    line.append(d.rule_id, style="bold")
    if loc:
        line.append(f"  ({loc})", style="dim")
    line.append(f"  {d.message}")
    if descriptor(d.rule_id).fixable:
        line.append("  [fixable]", style="green")
    console.print(line)

    if file_lines is not None and d.location is not None and d.location.start_line is not None:
        idx = d.location.start_line - 1
        if 0 <= idx < len(file_lines):
            snippet = file_lines[idx].rstrip("\n")
            console.print(f"     {d.location.start_line:>4} │ {snippet}", style="dim", markup=False, highlight=False)


def _print_summary(report: ViolationReport, *, console: Console) -> None:
    summary = report.summary
    console.print(Text("─" * 60, style="dim"))
    status_style = "bold red" if summary.build_status == "Failed" else "bold green"
    status = Text()
    status.append("Build status: ", style="bold")
    status.append(summary.build_status, style=status_style)
    console.print(status)
    console.print(
        Text(
            f"Violations: {summary.total} (critical: {summary.critical}, warnings: {summary.warnings}, "
            f"fixable: {summary.fixable})",
            style="dim",
        )
    )
    console.print(Text("─" * 60, style="dim"))


def _sort_key(d: Diagnostic) -> tuple[int, int, str]:
    severity_rank = {"error": 0, "warning": 1}.get(d.severity, 2)
    line = d.location.start_line if d.location and d.location.start_line else 10**9
    return severity_rank, line, d.rule_id


def _read_lines(path: Path) -> list[str]:
    try:
        return path.read_text(encoding="utf-8-sig", errors="replace").splitlines()
    except OSError:
        return []
