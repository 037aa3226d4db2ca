"""
Validation orchestrator.

Runs every enabled analyzer over a project's sources, merges per-file results
only once each file is complete, and turns the merged list into a
deterministic `ViolationReport`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path

from standardsentinel.config import StandardsConfig, is_rule_enabled, resolve_severity
from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.types import (
    Diagnostic,
    Location,
    ReportSummary,
    RuleGroup,
    ViolationReport,
    diagnostic_sort_key,
)
from standardsentinel.reporters.json_reporter import render_json
from standardsentinel.reporters.xml_reporter import render_xml
from standardsentinel.rules.base import BaseAnalyzer
from standardsentinel.rules.catalog import descriptor, find_descriptor
from standardsentinel.rules.registry import all_analyzers
from standardsentinel.scanner import build_project_context, discover_files, load_source, worker_count_from_env
from standardsentinel.utils import safe_relpath

logger = logging.getLogger(__name__)

# How often the pool loop wakes up to look for files over their time budget.
_POLL_SECONDS = 0.05


@dataclass(frozen=True, slots=True)
class ValidationRun:
    project_root: Path
    config: StandardsConfig
    report: ViolationReport
    files: tuple[Path, ...]
    timed_out: tuple[Path, ...] = ()


class ReportWriteError(RuntimeError):
    pass


def enabled_analyzers(config: StandardsConfig, analyzers: Iterable[BaseAnalyzer] | None = None) -> list[BaseAnalyzer]:
    """Analyzers owning at least one enabled rule."""

    pool = list(all_analyzers() if analyzers is None else analyzers)
    return [a for a in pool if any(is_rule_enabled(config, descriptor(r)) for r in a.meta.rule_ids)]


def _infrastructure(rule_id: str, location: Location | None, **values: object) -> Diagnostic:
    desc = descriptor(rule_id)
    return Diagnostic(
        rule_id=desc.rule_id,
        severity=desc.default_severity,
        message=desc.format_message(**values),
        category=desc.category,
        location=location,
    )


def parse_failure(src: SourceFile) -> Diagnostic:
    if src.error_byte is not None:
        location = src.location(src.error_byte)
    else:
        location = Location(path=src.path, start_line=1, start_col=1)
    return _infrastructure("BDD0001", location, path=src.relative_path, reason=src.parse_error or "unknown error")


def analyze_source(src: SourceFile, ctx: ProjectContext, analyzers: Iterable[BaseAnalyzer]) -> list[Diagnostic]:
    """
    Run `analyzers` over one loaded source.

    A file that failed to parse yields a single `BDD0001` and nothing else; an
    analyzer that raises yields `BDD0002` while the others still run.
    """

    if not src.parse_ok:
        return [parse_failure(src)]

    out: list[Diagnostic] = []
    for analyzer in analyzers:
        try:
            out.extend(analyzer.check_file(src, ctx))
        except Exception as exc:
            logger.exception("Analyzer %s failed on %s", analyzer.meta.name, src.relative_path)
            out.append(
                _infrastructure(
                    "BDD0002",
                    Location(path=src.path, start_line=1, start_col=1),
                    analyzer=analyzer.meta.name,
                    error=f"{type(exc).__name__}: {exc}",
                )
            )
    return out


def analyze_project(ctx: ProjectContext, analyzers: Iterable[BaseAnalyzer]) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    for analyzer in analyzers:
        try:
            out.extend(analyzer.check_project(ctx))
        except Exception as exc:
            logger.exception("Analyzer %s failed on project checks", analyzer.meta.name)
            out.append(
                _infrastructure(
                    "BDD0002",
                    Location(path=None),
                    analyzer=analyzer.meta.name,
                    error=f"{type(exc).__name__}: {exc}",
                )
            )
    return out


def finalize(config: StandardsConfig, diagnostics: Iterable[Diagnostic]) -> list[Diagnostic]:
    """Drop disabled rules, apply configured severities and sort deterministically."""

    out: list[Diagnostic] = []
    for d in diagnostics:
        desc = find_descriptor(d.rule_id)
        if desc is None:
            logger.debug("Dropping diagnostic with unknown rule id %s", d.rule_id)
            continue
        if not is_rule_enabled(config, desc):
            continue
        severity = resolve_severity(config, desc)
        out.append(d if d.severity == severity else replace(d, severity=severity))
    out.sort(key=diagnostic_sort_key)
    return out


def build_report(
    config: StandardsConfig,
    diagnostics: list[Diagnostic],
    *,
    project_name: str,
    files_scanned: int,
    timestamp: str | None = None,
) -> ViolationReport:
    """Group already-finalized diagnostics by rule id and compute the summary."""

    by_rule: dict[str, list[Diagnostic]] = {}
    for d in diagnostics:
        by_rule.setdefault(d.rule_id, []).append(d)

    groups: list[RuleGroup] = []
    for rule_id in sorted(by_rule):
        desc = descriptor(rule_id)
        groups.append(RuleGroup(rule_id=rule_id, name=desc.name, title=desc.title, diagnostics=tuple(by_rule[rule_id])))

    critical = sum(1 for d in diagnostics if d.severity == "error")
    warnings = sum(1 for d in diagnostics if d.severity == "warning")
    fixable = sum(1 for d in diagnostics if descriptor(d.rule_id).fixable)
    failed = critical > 0 and config.fail_on_critical
    summary = ReportSummary(
        total=len(diagnostics),
        critical=critical,
        warnings=warnings,
        build_status="Failed" if failed else "Success",
        files_scanned=files_scanned,
        fixable=fixable,
    )
    return ViolationReport(
        project_name=project_name,
        timestamp=timestamp or datetime.now(timezone.utc).isoformat(timespec="seconds"),
        groups=tuple(groups),
        summary=summary,
    )


def _analyze_path(
    ctx: ProjectContext,
    analyzers: list[BaseAnalyzer],
    path: Path,
    started: dict[Path, float],
) -> list[Diagnostic]:
    started[path] = time.monotonic()
    return analyze_source(load_source(ctx, path), ctx, analyzers)


def _timeout_diagnostic(ctx: ProjectContext, path: Path, seconds: float) -> Diagnostic:
    return _infrastructure(
        "BDD0003",
        Location(path=path, start_line=1, start_col=1),
        path=safe_relpath(path, ctx.project_root),
        seconds=f"{seconds:g}",
    )


def _run_pool(
    ctx: ProjectContext,
    analyzers: list[BaseAnalyzer],
    paths: list[Path],
    *,
    workers: int,
    timeout: float | None,
    on_file_done: Callable[[Path], None] | None,
) -> tuple[dict[Path, list[Diagnostic]], list[Path]]:
    results: dict[Path, list[Diagnostic]] = {}
    timed_out: list[Path] = []
    started: dict[Path, float] = {}

    # Shut down without waiting once a worker has been abandoned.
    executor = ThreadPoolExecutor(max_workers=min(max(1, workers), len(paths)), thread_name_prefix="standardsentinel")
    try:
        pending: dict[Future[list[Diagnostic]], Path] = {
            executor.submit(_analyze_path, ctx, analyzers, path, started): path for path in paths
        }
        while pending:
            done, _ = wait(pending, timeout=_POLL_SECONDS if timeout else None, return_when=FIRST_COMPLETED)
            for future in done:
                path = pending.pop(future)
                results[path] = future.result()
                if on_file_done is not None:
                    on_file_done(path)
            if not timeout:
                continue
            now = time.monotonic()
            for future, path in list(pending.items()):
                begun = started.get(path)
                if begun is None or now - begun <= timeout:
                    continue
                logger.warning("Analysis of %s exceeded %gs; abandoning it.", path, timeout)
                pending.pop(future)
                future.cancel()
                timed_out.append(path)
                results[path] = [_timeout_diagnostic(ctx, path, timeout)]
                if on_file_done is not None:
                    on_file_done(path)
    finally:
        executor.shutdown(wait=not timed_out, cancel_futures=True)
    return results, timed_out


def validate(
    project_root: Path,
    config: StandardsConfig,
    *,
    workers: int | None = None,
    timeout: float | None = None,
    analyzers: Iterable[BaseAnalyzer] | None = None,
    on_file_done: Callable[[Path], None] | None = None,
) -> ValidationRun:
    """
    Validate every C# source under `project_root`.

    `workers` defaults to `STANDARDSENTINEL_WORKERS` (or the CPU count);
    `timeout` defaults to `config.analysis_timeout_seconds`, and a value of 0
    disables the per-file limit.
    """

    root = project_root.resolve()
    paths = discover_files(root, config)
    ctx = build_project_context(root, config, paths)
    active = enabled_analyzers(config, analyzers)
    effective_workers = workers if workers is not None else worker_count_from_env()
    effective_timeout = config.analysis_timeout_seconds if timeout is None else timeout
    logger.debug(
        "Validating %d files in %s with %d analyzers (%d workers)", len(paths), root, len(active), effective_workers
    )

    diagnostics: list[Diagnostic] = []
    timed_out: list[Path] = []
    if paths and effective_workers <= 1 and not effective_timeout:
        for path in paths:
            diagnostics.extend(analyze_source(load_source(ctx, path), ctx, active))
            if on_file_done is not None:
                on_file_done(path)
    elif paths:
        results, timed_out = _run_pool(
            ctx,
            active,
            paths,
            workers=effective_workers,
            timeout=effective_timeout or None,
            on_file_done=on_file_done,
        )
        for path in paths:
            diagnostics.extend(results.get(path, []))

    diagnostics.extend(analyze_project(ctx, active))

    finalized = finalize(config, diagnostics)
    report = build_report(
        config,
        finalized,
        project_name=config.project_name or root.name,
        files_scanned=len(paths),
    )
    return ValidationRun(project_root=root, config=config, report=report, files=tuple(paths), timed_out=tuple(timed_out))


def write_report(report: ViolationReport, path: Path, fmt: str = "xml", *, project_root: Path | None = None) -> Path:
    """Serialize `report` to `path`, creating parent directories. Raises `ReportWriteError`."""

    normalized = fmt.strip().lower()
    if normalized == "xml":
        content = render_xml(report, project_root=project_root)
    elif normalized == "json":
        content = render_json(report, project_root=project_root)
    else:
        raise ValueError(f"Unsupported report format: {fmt!r} (expected xml or json).")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise ReportWriteError(f"Could not write report to {path}: {exc}") from exc
    logger.info("Wrote %s report to %s", normalized, path)
    return path
