from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Literal

Severity = Literal["error", "warning"]
BuildStatus = Literal["Success", "Failed"]
Category = Literal["infrastructure", "folder-structure", "regions", "documentation", "this-qualifier", "file-organization"]

SEVERITY_LABELS: Mapping[Severity, str] = MappingProxyType({"error": "Error", "warning": "Warning"})


@dataclass(frozen=True, slots=True)
class Location:
    path: Path | None = None
    start_line: int | None = None  # 1-based
    start_col: int | None = None  # 1-based
    end_line: int | None = None  # 1-based
    end_col: int | None = None  # 1-based
    start_byte: int | None = None
    end_byte: int | None = None


@dataclass(frozen=True, slots=True)
class Diagnostic:
    rule_id: str
    severity: Severity
    message: str
    category: Category
    location: Location | None = None
    properties: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


def diagnostic_sort_key(d: Diagnostic) -> tuple[str, str, int, int, str]:
    loc = d.location
    path = loc.path.as_posix() if loc is not None and loc.path is not None else ""
    line = loc.start_line if loc is not None and loc.start_line is not None else 0
    col = loc.start_col if loc is not None and loc.start_col is not None else 0
    return (d.rule_id, path, line, col, d.message)


@dataclass(frozen=True, slots=True)
class RuleGroup:
    rule_id: str
    name: str
    title: str
    diagnostics: tuple[Diagnostic, ...]


@dataclass(frozen=True, slots=True)
class ReportSummary:
    total: int
    critical: int
    warnings: int
    build_status: BuildStatus
    files_scanned: int = 0
    fixable: int = 0


@dataclass(frozen=True, slots=True)
class ViolationReport:
    project_name: str
    timestamp: str
    groups: tuple[RuleGroup, ...]
    summary: ReportSummary

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        return tuple(d for group in self.groups for d in group.diagnostics)


@dataclass(frozen=True, slots=True)
class CodeFixEdit:
    """
    A single replacement of the byte range `[start_byte, end_byte)` in one file.

    Offsets are only valid against the exact source the edit was computed from;
    callers must re-parse before computing the next edit for the same file.
    """

    path: Path
    rule_id: str
    start_byte: int
    end_byte: int
    replacement: str
    description: str

    def apply(self, source: bytes) -> bytes:
        return source[: self.start_byte] + self.replacement.encode("utf-8") + source[self.end_byte :]
