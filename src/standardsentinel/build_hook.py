"""
Build-time entry point.

Hosts call `run_build_validation` with a project directory and get a process
exit code back: 0 on success, 1 when critical violations fail the build and 2
when the run itself could not complete.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from standardsentinel.config import DEFAULT_REPORT_PATH, load_config, with_overrides
from standardsentinel.engine.orchestrator import ReportWriteError, ValidationRun, validate, write_report
from standardsentinel.engine.types import SEVERITY_LABELS, Diagnostic
from standardsentinel.utils import safe_relpath

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_CRITICAL = 1
EXIT_INFRASTRUCTURE = 2


@dataclass(frozen=True, slots=True)
class BuildOutcome:
    exit_code: int
    run: ValidationRun | None = None
    report_path: Path | None = None


def resolve_report_path(project_root: Path, configured: str | None) -> Path:
    candidate = Path(configured or DEFAULT_REPORT_PATH)
    return candidate if candidate.is_absolute() else project_root / candidate


def format_build_message(d: Diagnostic, *, project_root: Path) -> str:
    """Compiler-style line: `path(line,col): error BDD3001: message`."""

    label = SEVERITY_LABELS[d.severity].lower()
    loc = d.location
    if loc is None or loc.path is None:
        return f"{label} {d.rule_id}: {d.message}"
    where = safe_relpath(loc.path, project_root)
    if loc.start_line is not None:
        where += f"({loc.start_line},{loc.start_col or 1})"
    return f"{where}: {label} {d.rule_id}: {d.message}"


def execute_build_validation(
    project_path: Path | str,
    *,
    config_path: Path | str | None = None,
    report_path: Path | str | None = None,
    report_format: str = "xml",
    fail_on_critical: bool | None = None,
    enforce_enhanced_standards: bool | None = None,
    workers: int | None = None,
    emit_messages: bool = True,
) -> BuildOutcome:
    root = Path(project_path)
    if not root.is_dir():
        logger.error("Project path %s does not exist or is not a directory.", root)
        return BuildOutcome(exit_code=EXIT_INFRASTRUCTURE)
    root = root.resolve()

    config = load_config(root, config_path=config_path)
    config = with_overrides(
        config,
        fail_on_critical=fail_on_critical,
        enforce_enhanced_standards=enforce_enhanced_standards,
        report_path=str(report_path) if report_path is not None else None,
    )

    run = validate(root, config, workers=workers)
    summary = run.report.summary

    if emit_messages:
        for d in run.report.diagnostics:
            message = format_build_message(d, project_root=root)
            if d.severity == "error":
                logger.error(message)
            else:
                logger.warning(message)

    target = resolve_report_path(root, config.report_path)
    try:
        write_report(run.report, target, report_format, project_root=root)
    except ReportWriteError as exc:
        logger.error("%s", exc)
        return BuildOutcome(exit_code=EXIT_INFRASTRUCTURE, run=run)

    logger.info(
        "Validated %d files: %d violations (%d critical, %d warnings). Build status: %s.",
        summary.files_scanned,
        summary.total,
        summary.critical,
        summary.warnings,
        summary.build_status,
    )
    exit_code = EXIT_CRITICAL if summary.build_status == "Failed" else EXIT_SUCCESS
    return BuildOutcome(exit_code=exit_code, run=run, report_path=target)


def run_build_validation(
    project_path: Path | str,
    *,
    config_path: Path | str | None = None,
    report_path: Path | str | None = None,
    fail_on_critical: bool | None = None,
    enforce_enhanced_standards: bool | None = None,
    workers: int | None = None,
) -> int:
    return execute_build_validation(
        project_path,
        config_path=config_path,
        report_path=report_path,
        fail_on_critical=fail_on_critical,
        enforce_enhanced_standards=enforce_enhanced_standards,
        workers=workers,
    ).exit_code
