from __future__ import annotations

from helpers import cs, make_source, rule_ids, with_config

from standardsentinel.config import parse_config_document
from standardsentinel.engine.context import ProjectContext
from standardsentinel.engine.syntax import region_pairs
from standardsentinel.rules.regions import ClassRegionAnalyzer, MethodRegionAnalyzer

CALCULATOR = cs(
    "public class Calculator",
    "{",
    "    #region Add",
    "    public int Add(int a, int b)",
    "    {",
    "        return a + b;",
    "    }",
    "    #endregion",
    "",
    "    public int Subtract(int a, int b) => a - b;",
    "",
    "    #region Helpers",
    "    private int Multiply(int a, int b)",
    "    {",
    "        return a * b;",
    "    }",
    "    #endregion",
    "}",
)


def test_method_regions_report_missing_and_misnamed_regions(project_ctx: ProjectContext) -> None:
    src = make_source(project_ctx, relpath="Calculator.cs", content=CALCULATOR)
    diagnostics = MethodRegionAnalyzer().check_file(src, project_ctx)
    assert rule_ids(diagnostics) == ["BDD4001", "BDD4002"]

    missing, misnamed = diagnostics
    assert missing.message == "Method 'Subtract' should be enclosed in a region with format '#region Subtract'"
    assert missing.location is not None and missing.location.start_line == 10
    assert misnamed.message == "Region name 'Helpers' should match the method name 'Multiply'"
    assert misnamed.properties["region"] == "Helpers"


def test_method_regions_use_configured_name_format(project_ctx: ProjectContext) -> None:
    ctx = with_config(project_ctx, parse_config_document({"methodRegions": {"regionNameFormat": "Method {0}"}}))
    src = make_source(
        ctx,
        relpath="Runner.cs",
        content=cs(
            "public class Runner",
            "{",
            "    #region Method Run",
            "    public void Run() { }",
            "    #endregion",
            "    #region Stop",
            "    public void Stop() { }",
            "    #endregion",
            "}",
        ),
    )
    diagnostics = MethodRegionAnalyzer().check_file(src, ctx)
    assert rule_ids(diagnostics) == ["BDD4002"]
    assert diagnostics[0].properties["expected"] == "Method Stop"


def test_region_crossing_method_boundary(project_ctx: ProjectContext) -> None:
    src = make_source(
        project_ctx,
        relpath="Worker.cs",
        content=cs(
            "public class Worker",
            "{",
            "    #region Run",
            "    public void Run()",
            "    {",
            "    #endregion",
            "    }",
            "}",
        ),
    )
    diagnostics = MethodRegionAnalyzer().check_file(src, project_ctx)
    assert rule_ids(diagnostics) == ["BDD4003"]
    assert diagnostics[0].message == "Region 'Run' crosses the boundary of method 'Run'"


def test_interface_and_generated_methods_are_skipped(project_ctx: ProjectContext) -> None:
    src = make_source(
        project_ctx,
        relpath="Contracts/IRunner.cs",
        content=cs(
            "public interface IRunner",
            "{",
            "    void Run();",
            "}",
            "public class Generated",
            "{",
            '    [System.CodeDom.Compiler.GeneratedCode("tool", "1.0")]',
            "    public void Emit() { }",
            "}",
        ),
    )
    assert MethodRegionAnalyzer().check_file(src, project_ctx) == []


def test_region_pairs_ignore_unbalanced_markers() -> None:
    pairs = region_pairs(["#endregion", "#region Outer", "  #region Inner", "  #endregion Inner", "#region Open"])
    assert [(p.name, p.start_row, p.end_row, p.end_name) for p in pairs] == [("Inner", 2, 3, "Inner")]


def test_class_without_regions_reports_one_diagnostic(project_ctx: ProjectContext) -> None:
    src = make_source(
        project_ctx,
        relpath="Bare.cs",
        content=cs(
            "public class Bare",
            "{",
            "    private int count;",
            "    public int Id { get; set; }",
            "    public void Go() { }",
            "}",
        ),
    )
    diagnostics = ClassRegionAnalyzer().check_file(src, project_ctx)
    assert rule_ids(diagnostics) == ["BDD4004"]
    message = diagnostics[0].message
    assert message.startswith("Class 'Bare' region structure is invalid: ")
    assert "missing regions Properties, Construction, Methods" in message
    assert "property 'Id' should be in region 'Properties'" in message
    assert "method 'Go' should be in region 'Methods'" in message
    assert "count" not in message


def test_class_with_complete_region_structure(project_ctx: ProjectContext) -> None:
    src = make_source(
        project_ctx,
        relpath="Account.cs",
        content=cs(
            "public class Account",
            "{",
            "    #region Properties",
            "    public int Id { get; set; }",
            "    #endregion",
            "",
            "    #region Construction",
            "    public Account()",
            "    {",
            "    }",
            "    #endregion",
            "",
            "    #region Methods",
            "    #region Close",
            "    public void Close()",
            "    {",
            "    }",
            "    #endregion Close",
            "    #endregion",
            "}",
        ),
    )
    assert ClassRegionAnalyzer().check_file(src, project_ctx) == []
    assert MethodRegionAnalyzer().check_file(src, project_ctx) == []


def test_member_in_wrong_region_is_reported(project_ctx: ProjectContext) -> None:
    src = make_source(
        project_ctx,
        relpath="Ledger.cs",
        content=cs(
            "public class Ledger",
            "{",
            "    #region Properties",
            "    public void Post() { }",
            "    #endregion",
            "    #region Construction",
            "    #endregion",
            "    #region Methods",
            "    #endregion",
            "}",
        ),
    )
    diagnostics = ClassRegionAnalyzer().check_file(src, project_ctx)
    assert rule_ids(diagnostics) == ["BDD4004"]
    assert diagnostics[0].message.endswith("method 'Post' is in region 'Properties'")


def test_interfaces_and_structs_have_no_class_regions(project_ctx: ProjectContext) -> None:
    src = make_source(
        project_ctx,
        relpath="Contracts/IShape.cs",
        content=cs("public interface IShape { int Sides { get; } }", "public struct Point { public int X; }"),
    )
    assert ClassRegionAnalyzer().check_file(src, project_ctx) == []
