from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path

from standardsentinel.config import StandardsConfig
from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.types import Diagnostic
from standardsentinel.scanner import load_source


def write_cs(root: Path, relpath: str, content: str) -> Path:
    path = root / relpath
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def make_source(project_ctx: ProjectContext, *, relpath: str, content: str) -> SourceFile:
    path = write_cs(project_ctx.project_root, relpath, content)
    src = load_source(project_ctx, path)
    assert src.parse_ok, src.parse_error
    return src


def with_config(project_ctx: ProjectContext, config: StandardsConfig) -> ProjectContext:
    return replace(project_ctx, config=config)


def rule_ids(diagnostics: Iterable[Diagnostic]) -> list[str]:
    return [d.rule_id for d in diagnostics]


def cs(*lines: str) -> str:
    return "\n".join(lines) + "\n"
