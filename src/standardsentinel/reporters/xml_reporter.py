from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

from standardsentinel.engine.types import SEVERITY_LABELS, Diagnostic, ViolationReport
from standardsentinel.rules.catalog import descriptor
from standardsentinel.utils import safe_relpath


def render_xml(report: ViolationReport, *, project_root: Path | None = None) -> str:
    root = ET.Element("ValidationReport")
    ET.SubElement(root, "ProjectName").text = report.project_name
    ET.SubElement(root, "Timestamp").text = report.timestamp

    violations = ET.SubElement(root, "Violations")
    for group in report.groups:
        rule = ET.SubElement(
            violations,
            "Rule",
            {
                "Id": group.rule_id,
                "Name": group.name,
                "Title": group.title,
                "Count": str(len(group.diagnostics)),
            },
        )
        for d in group.diagnostics:
            ET.SubElement(rule, "Violation", _violation_attributes(d, project_root=project_root)).text = d.message

    summary = ET.SubElement(root, "Summary")
    ET.SubElement(summary, "TotalViolations").text = str(report.summary.total)
    ET.SubElement(summary, "CriticalViolations").text = str(report.summary.critical)
    ET.SubElement(summary, "Warnings").text = str(report.summary.warnings)
    ET.SubElement(summary, "BuildStatus").text = report.summary.build_status
    ET.SubElement(summary, "FilesScanned").text = str(report.summary.files_scanned)

    ET.indent(root, space="  ")
    return '<?xml version="1.0" encoding="utf-8"?>\n' + ET.tostring(root, encoding="unicode") + "\n"


def _violation_attributes(d: Diagnostic, *, project_root: Path | None) -> dict[str, str]:
    attrs = {"Severity": SEVERITY_LABELS[d.severity]}
    loc = d.location
    if loc is not None and loc.path is not None:
        attrs["File"] = safe_relpath(loc.path, project_root) if project_root is not None else loc.path.as_posix()
    else:
        attrs["File"] = ""
    attrs["Line"] = str(loc.start_line) if loc is not None and loc.start_line is not None else "0"
    attrs["Column"] = str(loc.start_col) if loc is not None and loc.start_col is not None else "0"
    attrs["Fixable"] = "true" if descriptor(d.rule_id).fixable else "false"
    return attrs
