from __future__ import annotations

from pathlib import Path

from helpers import cs, write_cs
from rich.console import Console

from standardsentinel.config import StandardsConfig
from standardsentinel.engine.orchestrator import validate
from standardsentinel.reporters.terminal import render_terminal


def test_terminal_report_lists_violations(tmp_path: Path) -> None:
    write_cs(tmp_path, "Order.cs", cs("public class Order", "{", "}"))
    run = validate(tmp_path, StandardsConfig(), workers=1, timeout=0)

    console = Console(record=True, width=160)
    render_terminal(run.report, project_root=run.project_root, console=console)
    text = console.export_text()
    assert "StandardSentinel" in text
    assert "BDD5001" in text
    assert "Order.cs" in text
    assert "Failed" in text


def test_terminal_report_for_clean_project(tmp_path: Path) -> None:
    run = validate(tmp_path, StandardsConfig())
    console = Console(record=True, width=120)
    render_terminal(run.report, project_root=run.project_root, console=console, show_details=False)
    assert "Success" in console.export_text()
