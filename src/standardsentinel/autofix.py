from __future__ import annotations

import codecs
import difflib
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from standardsentinel.config import StandardsConfig, is_rule_enabled
from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.orchestrator import analyze_source, finalize
from standardsentinel.engine.types import Diagnostic, diagnostic_sort_key
from standardsentinel.fixes.registry import compute_fix, fixable_rule_ids
from standardsentinel.rules.base import BaseAnalyzer
from standardsentinel.rules.catalog import descriptor, find_descriptor
from standardsentinel.rules.registry import analyzers_for_rules
from standardsentinel.scanner import build_project_context, discover_files, encode_source, load_source_from_text

logger = logging.getLogger(__name__)

# Upper bound on edits per file; each applied edit removes one diagnostic.
MAX_FIXES_PER_FILE = 500


@dataclass(frozen=True, slots=True)
class AppliedFix:
    rule_id: str
    line: int
    description: str


@dataclass(frozen=True, slots=True)
class AutoFixFileResult:
    path: Path
    changed: bool
    diff: str
    applied: tuple[AppliedFix, ...]
    skipped: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class AutoFixResult:
    project_root: Path
    changed_files: tuple[Path, ...]
    file_results: tuple[AutoFixFileResult, ...]

    @property
    def diff(self) -> str:
        chunks = [fr.diff for fr in self.file_results if fr.diff]
        return "\n".join(chunks)

    @property
    def applied_count(self) -> int:
        return sum(len(fr.applied) for fr in self.file_results)


def supported_rule_ids() -> frozenset[str]:
    return fixable_rule_ids()


def select_rule_ids(config: StandardsConfig, rule_ids: Iterable[str] | None = None) -> frozenset[str]:
    """
    Fixable, enabled rules to apply.

    Raises `ValueError` for ids that are unknown or have no fix.
    """

    if rule_ids is None:
        wanted = set(fixable_rule_ids())
    else:
        wanted = {r.strip().upper() for r in rule_ids if r.strip()}
        unknown = sorted(r for r in wanted if find_descriptor(r) is None)
        if unknown:
            raise ValueError(f"Unknown rule id(s): {', '.join(unknown)}")
        unfixable = sorted(wanted - fixable_rule_ids())
        if unfixable:
            raise ValueError(f"No automatic fix for rule(s): {', '.join(unfixable)}")
    return frozenset(r for r in wanted if is_rule_enabled(config, descriptor(r)))


def fix_source(
    ctx: ProjectContext,
    src: SourceFile,
    selected: frozenset[str],
    analyzers: Iterable[BaseAnalyzer],
) -> tuple[SourceFile, list[AppliedFix], list[str]]:
    """
    Apply fixes to one source until none of the selected rules can be fixed further.

    Edits are applied one at a time; the file is re-parsed and re-analyzed
    after every edit so no edit is computed against stale offsets.
    """

    active = list(analyzers)
    applied: list[AppliedFix] = []
    skipped: set[tuple[str, str, int, int]] = set()
    skipped_messages: list[str] = []

    for _ in range(MAX_FIXES_PER_FILE):
        if not src.parse_ok:
            break
        candidate = _next_candidate(ctx, src, selected, active, skipped)
        if candidate is None:
            break
        key = _skip_key(candidate)

        edit = compute_fix(src, candidate, ctx)
        if edit is None:
            skipped.add(key)
            skipped_messages.append(f"{candidate.rule_id}: {candidate.message}")
            continue
        updated = edit.apply(src.source)
        if updated == src.source:
            skipped.add(key)
            continue

        reparsed = load_source_from_text(ctx, src.path, updated.decode("utf-8"), has_bom=src.has_bom)
        if not reparsed.parse_ok:
            logger.warning(
                "Fix for %s in %s would introduce a syntax error (%s); skipped.",
                candidate.rule_id,
                src.relative_path,
                reparsed.parse_error,
            )
            skipped.add(key)
            skipped_messages.append(f"{candidate.rule_id}: {candidate.message}")
            continue

        line = candidate.location.start_line if candidate.location and candidate.location.start_line else 0
        applied.append(AppliedFix(rule_id=candidate.rule_id, line=line, description=edit.description))
        logger.debug("%s:%d applied %s (%s)", src.relative_path, line, candidate.rule_id, edit.description)
        src = reparsed
    else:
        logger.warning("Stopped fixing %s after %d edits.", src.relative_path, MAX_FIXES_PER_FILE)

    return src, applied, skipped_messages


def _skip_key(d: Diagnostic) -> tuple[str, str, int, int]:
    loc = d.location
    line = loc.start_line if loc is not None and loc.start_line is not None else 0
    col = loc.start_col if loc is not None and loc.start_col is not None else 0
    return (d.rule_id, d.message, line, col)


def _next_candidate(
    ctx: ProjectContext,
    src: SourceFile,
    selected: frozenset[str],
    analyzers: list[BaseAnalyzer],
    skipped: set[tuple[str, str, int, int]],
) -> Diagnostic | None:
    diagnostics = finalize(ctx.config, analyze_source(src, ctx, analyzers))
    for d in sorted(diagnostics, key=diagnostic_sort_key):
        if d.rule_id in selected and _skip_key(d) not in skipped:
            return d
    return None


def autofix_file(
    ctx: ProjectContext,
    path: Path,
    selected: frozenset[str],
    analyzers: Iterable[BaseAnalyzer],
    *,
    dry_run: bool,
    backup: bool,
) -> AutoFixFileResult:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return AutoFixFileResult(path=path, changed=False, diff="", applied=())

    has_bom = raw.startswith(codecs.BOM_UTF8)
    try:
        original = raw[len(codecs.BOM_UTF8) :].decode("utf-8") if has_bom else raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("Skipping %s: not valid UTF-8.", path)
        return AutoFixFileResult(path=path, changed=False, diff="", applied=())

    src = load_source_from_text(ctx, path, original, has_bom=has_bom)
    fixed, applied, skipped = fix_source(ctx, src, selected, analyzers)
    updated = fixed.text

    diff = _unified_diff(original, updated, path=path)
    changed = original != updated

    if changed and not dry_run:
        if backup:
            backup_path = path.with_suffix(path.suffix + ".bak")
            if not backup_path.exists():
                backup_path.write_bytes(raw)
        path.write_bytes(encode_source(updated, has_bom=has_bom))

    return AutoFixFileResult(path=path, changed=changed, diff=diff, applied=tuple(applied), skipped=tuple(skipped))


def autofix_project(
    project_root: Path,
    config: StandardsConfig,
    *,
    rule_ids: Iterable[str] | None = None,
    dry_run: bool = False,
    backup: bool = False,
) -> AutoFixResult:
    """
    Explicitly apply automatic fixes across a project.

    Files are processed one after another; fixes within a file are strictly
    serialized with a re-parse between edits.
    """

    root = project_root.resolve()
    selected = select_rule_ids(config, rule_ids)
    paths = discover_files(root, config)
    ctx = build_project_context(root, config, paths)
    analyzers = analyzers_for_rules(selected)

    file_results: list[AutoFixFileResult] = []
    changed: list[Path] = []
    if selected:
        for path in paths:
            res = autofix_file(ctx, path, selected, analyzers, dry_run=dry_run, backup=backup)
            if not res.changed and not res.skipped:
                continue
            file_results.append(res)
            if res.changed:
                changed.append(path)

    return AutoFixResult(project_root=root, changed_files=tuple(changed), file_results=tuple(file_results))


def _unified_diff(before: str, after: str, *, path: Path) -> str:
    if before == after:
        return ""
    before_lines = before.splitlines(keepends=False)
    after_lines = after.splitlines(keepends=False)
    diff = difflib.unified_diff(
        before_lines,
        after_lines,
        fromfile=str(path),
        tofile=str(path),
        lineterm="",
    )
    return "\n".join(diff)
