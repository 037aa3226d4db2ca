from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from standardsentinel import __version__
from standardsentinel.engine.types import Diagnostic, ViolationReport
from standardsentinel.rules.catalog import descriptor
from standardsentinel.utils import safe_relpath

REPORT_SCHEMA_VERSION = 1


def render_json(report: ViolationReport, *, project_root: Path | None = None) -> str:
    payload = {
        "schema_version": REPORT_SCHEMA_VERSION,
        "tool": {"name": "StandardSentinel", "version": __version__},
        "project_name": report.project_name,
        "timestamp": report.timestamp,
        "rules": [
            {
                "id": group.rule_id,
                "name": group.name,
                "title": group.title,
                "count": len(group.diagnostics),
                "violations": [_diagnostic_to_dict(d, project_root=project_root) for d in group.diagnostics],
            }
            for group in report.groups
        ],
        "summary": {
            "total_violations": report.summary.total,
            "critical_violations": report.summary.critical,
            "warnings": report.summary.warnings,
            "build_status": report.summary.build_status,
            "files_scanned": report.summary.files_scanned,
            "fixable": report.summary.fixable,
        },
    }
    return json.dumps(payload, indent=2, sort_keys=False)


def _diagnostic_to_dict(d: Diagnostic, *, project_root: Path | None) -> dict[str, Any]:
    loc = None
    if d.location is not None and d.location.path is not None:
        path = d.location.path
        loc = {
            "path": safe_relpath(path, project_root) if project_root is not None else path.as_posix(),
            "start_line": d.location.start_line,
            "start_col": d.location.start_col,
            "end_line": d.location.end_line,
            "end_col": d.location.end_col,
        }

    return {
        "rule_id": d.rule_id,
        "severity": d.severity,
        "category": d.category,
        "message": d.message,
        "fixable": descriptor(d.rule_id).fixable,
        "location": loc,
        "properties": dict(d.properties),
    }
