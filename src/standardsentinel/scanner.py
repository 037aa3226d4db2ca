from __future__ import annotations

import codecs
import logging
import os
from pathlib import Path

from standardsentinel.config import StandardsConfig, file_is_excluded
from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.tree_sitter import TreeSitterError, first_error_node
from standardsentinel.engine.tree_sitter import parse as ts_parse
from standardsentinel.utils import safe_relpath

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".cs"
STANDARDSENTINEL_WORKERS_ENV = "STANDARDSENTINEL_WORKERS"
DEFAULT_MAX_WORKERS = 32


def resolve_worker_count(
    raw_value: str | None,
    *,
    default: int | None = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> int:
    """
    Resolve a safe worker count from an env var-style string.

    - None/""/"auto" fall back to the default (available cores)
    - Values <= 0 fall back to the default
    - Values above `max_workers` are clamped
    """

    cpu = os.cpu_count() or 1
    resolved_default = max(1, default if default is not None else cpu)
    if raw_value is None:
        return min(resolved_default, max_workers)

    normalized = raw_value.strip().lower()
    if not normalized or normalized in {"auto", "default"}:
        return min(resolved_default, max_workers)

    try:
        workers = int(normalized)
    except ValueError:
        return min(resolved_default, max_workers)

    if workers <= 0:
        return min(resolved_default, max_workers)
    return min(workers, max_workers)


def worker_count_from_env(*, default: int | None = None) -> int:
    return resolve_worker_count(os.environ.get(STANDARDSENTINEL_WORKERS_ENV), default=default)


def discover_files(project_root: Path, config: StandardsConfig) -> list[Path]:
    """Enumerate C# sources under `project_root`, skipping build output and generated files."""

    skip_dirs = {d.lower() for d in config.exclude_directories}
    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(project_root, topdown=True):
        dirnames[:] = [d for d in dirnames if d.lower() not in skip_dirs]
        base = Path(dirpath)
        for filename in filenames:
            if not filename.lower().endswith(SOURCE_SUFFIX):
                continue
            if file_is_excluded(filename, config.exclude_patterns):
                logger.debug("Skipping generated file %s", base / filename)
                continue
            files.append(base / filename)
    return sorted(set(files))


def build_project_context(project_root: Path, config: StandardsConfig, files: list[Path]) -> ProjectContext:
    return ProjectContext(project_root=project_root, files=tuple(files), config=config)


def decode_source(raw: bytes) -> tuple[str, bool]:
    has_bom = raw.startswith(codecs.BOM_UTF8)
    if has_bom:
        raw = raw[len(codecs.BOM_UTF8) :]
    return raw.decode("utf-8", errors="replace"), has_bom


def encode_source(text: str, *, has_bom: bool) -> bytes:
    data = text.encode("utf-8")
    return codecs.BOM_UTF8 + data if has_bom else data


def load_source(project: ProjectContext, path: Path) -> SourceFile:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return SourceFile(
            project_root=project.project_root,
            path=path,
            relative_path=safe_relpath(path, project.project_root),
            text="",
            source=b"",
            lines=(),
            parse_ok=False,
            parse_error=f"file could not be read ({exc.strerror or exc})",
        )

    text, has_bom = decode_source(raw)
    return load_source_from_text(project, path, text, has_bom=has_bom)


def load_source_from_text(project: ProjectContext, path: Path, text: str, *, has_bom: bool = False) -> SourceFile:
    source = text.encode("utf-8")
    lines = tuple(line.rstrip("\r") for line in text.split("\n"))
    relative_path = safe_relpath(path, project.project_root)

    try:
        tree = ts_parse(source)
    except TreeSitterError as exc:
        logger.warning("Could not parse %s: %s", relative_path, exc)
        return SourceFile(
            project_root=project.project_root,
            path=path,
            relative_path=relative_path,
            text=text,
            source=source,
            lines=lines,
            parse_ok=False,
            has_bom=has_bom,
            parse_error=str(exc),
        )

    error = first_error_node(tree)
    if error is not None:
        row = error.start_point.row + 1
        reason = f"missing '{error.type}' near line {row}" if error.is_missing else f"syntax error near line {row}"
        logger.debug("Parse errors in %s: %s", relative_path, reason)
        return SourceFile(
            project_root=project.project_root,
            path=path,
            relative_path=relative_path,
            text=text,
            source=source,
            lines=lines,
            tree=tree,
            parse_ok=False,
            has_bom=has_bom,
            parse_error=reason,
            error_byte=error.start_byte,
        )

    return SourceFile(
        project_root=project.project_root,
        path=path,
        relative_path=relative_path,
        text=text,
        source=source,
        lines=lines,
        tree=tree,
        parse_ok=True,
        has_bom=has_bom,
    )
