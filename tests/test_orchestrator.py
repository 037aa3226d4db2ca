from __future__ import annotations

import json
import threading
import xml.etree.ElementTree as ET
from pathlib import Path

import pytest
from helpers import cs, rule_ids, write_cs

from standardsentinel.config import StandardsConfig, parse_config_document
from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.orchestrator import ReportWriteError, validate, write_report
from standardsentinel.engine.types import Diagnostic
from standardsentinel.rules.base import AnalyzerMeta, BaseAnalyzer
from standardsentinel.rules.catalog import METHOD_REGIONS


def _undocumented_project(root: Path) -> None:
    write_cs(
        root,
        "Services/OrderService.cs",
        cs(
            "namespace Shop.Services",
            "{",
            "    public class OrderService",
            "    {",
            "        private int count;",
            "",
            "        public void Place()",
            "        {",
            "            count++;",
            "        }",
            "    }",
            "}",
        ),
    )


def test_report_summary_arithmetic(tmp_path: Path) -> None:
    _undocumented_project(tmp_path)
    run = validate(tmp_path, StandardsConfig(), workers=1, timeout=0)
    report = run.report
    summary = report.summary

    assert summary.files_scanned == 1
    assert summary.total == len(report.diagnostics)
    assert summary.total == summary.critical + summary.warnings
    assert summary.critical == sum(1 for d in report.diagnostics if d.severity == "error")
    assert summary.build_status == "Failed"
    assert {"BDD4001", "BDD4004", "BDD5001", "BDD7003"} <= set(rule_ids(report.diagnostics))
    assert [g.rule_id for g in report.groups] == sorted(g.rule_id for g in report.groups)
    assert report.project_name == tmp_path.resolve().name


def test_build_succeeds_when_critical_violations_do_not_fail(tmp_path: Path) -> None:
    _undocumented_project(tmp_path)
    config = parse_config_document({"failOnCritical": False, "projectName": "Shop"})
    report = validate(tmp_path, config, workers=1, timeout=0).report
    assert report.summary.critical > 0
    assert report.summary.build_status == "Success"
    assert report.project_name == "Shop"


def test_disabled_rules_and_sections_are_not_reported(tmp_path: Path) -> None:
    _undocumented_project(tmp_path)
    config = parse_config_document(
        {"rules": {"BDD4001": False}, "xmlDocumentation": {"enabled": False}, "classRegions": {"enabled": False}}
    )
    ids = set(rule_ids(validate(tmp_path, config, workers=1, timeout=0).report.diagnostics))
    assert "BDD4001" not in ids
    assert not any(i.startswith("BDD5") for i in ids)
    assert "BDD4004" not in ids
    assert "BDD7003" in ids


def test_enforcement_level_applies_to_section_rules(tmp_path: Path) -> None:
    _undocumented_project(tmp_path)
    config = parse_config_document({"methodRegions": {"enforcementLevel": "error"}})
    report = validate(tmp_path, config, workers=1, timeout=0).report
    severities = {d.severity for d in report.diagnostics if d.rule_id == "BDD4001"}
    assert severities == {"error"}


def test_enforced_this_qualifier_reports_single_error(tmp_path: Path) -> None:
    write_cs(
        tmp_path,
        "Circle.cs",
        cs(
            "namespace Geometry",
            "{",
            "    public class Circle",
            "    {",
            "        public double Radius { get; set; }",
            "",
            "        public double Diameter()",
            "        {",
            "            return Radius * 2;",
            "        }",
            "    }",
            "}",
        ),
    )
    config = parse_config_document(
        {
            "thisQualifier": {"enforceThisQualifier": True},
            "folderStructure": {"enabled": False},
            "methodRegions": {"enabled": False},
            "classRegions": {"enabled": False},
            "xmlDocumentation": {"enabled": False},
        }
    )
    report = validate(tmp_path, config, workers=1, timeout=0).report

    assert rule_ids(report.diagnostics) == ["BDD7001"]
    d = report.diagnostics[0]
    assert d.severity == "error"
    assert d.location is not None and d.location.path is not None
    assert d.location.path.name == "Circle.cs"
    assert (d.location.start_line, d.location.start_col) == (9, 20)
    assert report.summary.critical == 1
    assert report.summary.build_status == "Failed"


def test_parse_failure_yields_single_diagnostic(tmp_path: Path) -> None:
    write_cs(tmp_path, "Broken.cs", cs("public class Broken", "{", "    public void M( {", "}"))
    report = validate(tmp_path, StandardsConfig(), workers=1, timeout=0).report
    assert rule_ids(report.diagnostics) == ["BDD0001"]
    d = report.diagnostics[0]
    assert d.severity == "warning"
    assert d.message.startswith("Could not parse 'Broken.cs': ")
    assert report.summary.build_status == "Success"


class _ExplodingAnalyzer(BaseAnalyzer):
    meta = AnalyzerMeta(name="Exploding", section=METHOD_REGIONS, rule_ids=("BDD4001",), description="Always fails.")

    def check_file(self, src: SourceFile, ctx: ProjectContext) -> list[Diagnostic]:
        raise RuntimeError("boom")


class _QuietAnalyzer(BaseAnalyzer):
    meta = AnalyzerMeta(name="Quiet", section=METHOD_REGIONS, rule_ids=("BDD4002",), description="Finds nothing.")

    def __init__(self) -> None:
        self.calls = 0

    def check_file(self, src: SourceFile, ctx: ProjectContext) -> list[Diagnostic]:
        self.calls += 1
        return []


def test_analyzer_failure_is_contained(tmp_path: Path) -> None:
    write_cs(tmp_path, "A.cs", "public class A { }\n")
    write_cs(tmp_path, "B.cs", "public class B { }\n")
    quiet = _QuietAnalyzer()

    report = validate(tmp_path, StandardsConfig(), workers=1, timeout=0, analyzers=[_ExplodingAnalyzer(), quiet]).report
    assert rule_ids(report.diagnostics) == ["BDD0002", "BDD0002"]
    assert report.diagnostics[0].message == "Analyzer 'Exploding' failed on this file: RuntimeError: boom"
    assert quiet.calls == 2


def test_slow_file_is_abandoned_after_timeout(tmp_path: Path) -> None:
    release = threading.Event()

    class _SlowAnalyzer(BaseAnalyzer):
        meta = AnalyzerMeta(name="Slow", section=METHOD_REGIONS, rule_ids=("BDD4001",), description="Blocks.")

        def check_file(self, src: SourceFile, ctx: ProjectContext) -> list[Diagnostic]:
            if src.file_name == "Slow.cs":
                release.wait(10)
            return []

    write_cs(tmp_path, "Fast.cs", "public class Fast { }\n")
    write_cs(tmp_path, "Slow.cs", "public class Slow { }\n")
    try:
        run = validate(tmp_path, StandardsConfig(), workers=2, timeout=0.2, analyzers=[_SlowAnalyzer()])
    finally:
        release.set()

    assert [p.name for p in run.timed_out] == ["Slow.cs"]
    assert rule_ids(run.report.diagnostics) == ["BDD0003"]
    assert run.report.diagnostics[0].message == "Analysis of 'Slow.cs' exceeded 0.2 seconds and was abandoned"
    assert run.report.summary.files_scanned == 2


def test_serial_and_parallel_runs_match(tmp_path: Path) -> None:
    for name in ("Alpha", "Beta", "Gamma", "Delta"):
        write_cs(
            tmp_path,
            f"Services/{name}.cs",
            cs(
                f"public class {name}",
                "{",
                "    private int hits;",
                "    public void Touch() { hits++; }",
                "}",
                f"public interface I{name} {{ }}",
            ),
        )

    serial = validate(tmp_path, StandardsConfig(), workers=1, timeout=0).report
    parallel = validate(tmp_path, StandardsConfig(), workers=4).report
    assert serial.diagnostics == parallel.diagnostics
    assert serial.summary == parallel.summary


def test_progress_callback_sees_every_file(tmp_path: Path) -> None:
    for name in ("One", "Two", "Three"):
        write_cs(tmp_path, f"{name}.cs", f"public class {name} {{ }}\n")
    seen: list[str] = []
    validate(tmp_path, StandardsConfig(), workers=2, on_file_done=lambda p: seen.append(p.name))
    assert sorted(seen) == ["One.cs", "Three.cs", "Two.cs"]


def test_empty_project_reports_success(tmp_path: Path) -> None:
    report = validate(tmp_path, StandardsConfig()).report
    assert report.summary.total == 0
    assert report.summary.files_scanned == 0
    assert report.summary.build_status == "Success"


def test_required_folders_reported_once(tmp_path: Path) -> None:
    config = parse_config_document({"folderStructure": {"requiredFolders": ["Contracts"]}})
    report = validate(tmp_path, config).report
    assert rule_ids(report.diagnostics) == ["BDD3004"]


def test_write_report_xml(tmp_path: Path) -> None:
    _undocumented_project(tmp_path)
    run = validate(tmp_path, StandardsConfig(), workers=1, timeout=0)
    target = write_report(run.report, tmp_path / "obj" / "standards-report.xml", project_root=run.project_root)

    text = target.read_text(encoding="utf-8")
    assert text.startswith('<?xml version="1.0" encoding="utf-8"?>')
    root = ET.fromstring(text)
    assert root.tag == "ValidationReport"
    summary = root.find("Summary")
    assert summary is not None
    total = int(summary.findtext("TotalViolations", "0"))
    critical = int(summary.findtext("CriticalViolations", "0"))
    warnings = int(summary.findtext("Warnings", "0"))
    assert total == critical + warnings == run.report.summary.total
    assert summary.findtext("BuildStatus") == "Failed"

    rules = root.findall("Violations/Rule")
    assert sum(int(r.get("Count", "0")) for r in rules) == total
    violation = rules[0].find("Violation")
    assert violation is not None
    assert violation.get("File") == "Services/OrderService.cs"
    assert violation.get("Severity") in {"Error", "Warning"}


def test_write_report_json(tmp_path: Path) -> None:
    _undocumented_project(tmp_path)
    run = validate(tmp_path, StandardsConfig(), workers=1, timeout=0)
    target = write_report(run.report, tmp_path / "report.json", "json", project_root=run.project_root)

    payload = json.loads(target.read_text(encoding="utf-8"))
    assert payload["schema_version"] == 1
    assert payload["summary"]["total_violations"] == run.report.summary.total
    first = payload["rules"][0]["violations"][0]
    assert first["location"]["path"] == "Services/OrderService.cs"
    assert isinstance(first["fixable"], bool)


def test_write_report_failure_raises(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory\n", encoding="utf-8")
    report = validate(tmp_path, StandardsConfig()).report
    with pytest.raises(ReportWriteError):
        write_report(report, blocker / "report.xml")


def test_write_report_rejects_unknown_format(tmp_path: Path) -> None:
    report = validate(tmp_path, StandardsConfig()).report
    with pytest.raises(ValueError):
        write_report(report, tmp_path / "report.txt", "yaml")
