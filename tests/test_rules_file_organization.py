from __future__ import annotations

from helpers import cs, make_source, rule_ids, with_config, write_cs

from standardsentinel.config import ClassFileOrganizationConfig, parse_config_document
from standardsentinel.engine.context import ProjectContext
from standardsentinel.rules.file_organization import FileOrganizationAnalyzer, code_behind_extension


def test_single_matching_class_is_clean(project_ctx: ProjectContext) -> None:
    src = make_source(project_ctx, relpath="Order.cs", content="public class Order { }\n")
    assert FileOrganizationAnalyzer().check_file(src, project_ctx) == []


def test_multiple_classes_reported_once_at_second_class(project_ctx: ProjectContext) -> None:
    src = make_source(
        project_ctx,
        relpath="Order.cs",
        content=cs("public class Order { }", "public class OrderLine { }", "public class OrderNote { }"),
    )
    diagnostics = FileOrganizationAnalyzer().check_file(src, project_ctx)
    assert rule_ids(diagnostics) == ["BDD8001"]
    d = diagnostics[0]
    assert d.message == (
        "File contains multiple classes (Order, OrderLine, OrderNote); each class should be in its own file"
    )
    assert d.location is not None and d.location.start_line == 2


def test_partial_fragments_and_other_kinds_do_not_count(project_ctx: ProjectContext) -> None:
    src = make_source(
        project_ctx,
        relpath="Invoice.cs",
        content=cs(
            "namespace Billing",
            "{",
            "    public partial class Invoice { }",
            "    public partial class Invoice { }",
            "    public enum InvoiceState { Open }",
            "    public interface IInvoice { }",
            "}",
        ),
    )
    assert FileOrganizationAnalyzer().check_file(src, project_ctx) == []


def test_same_name_in_different_namespaces_counts_twice(project_ctx: ProjectContext) -> None:
    src = make_source(
        project_ctx,
        relpath="Item.cs",
        content=cs("namespace A { public class Item { } }", "namespace B { public class Item { } }"),
    )
    assert rule_ids(FileOrganizationAnalyzer().check_file(src, project_ctx)) == ["BDD8001"]


def test_file_name_mismatch(project_ctx: ProjectContext) -> None:
    src = make_source(project_ctx, relpath="Helpers.cs", content="public class StringTools { }\n")
    diagnostics = FileOrganizationAnalyzer().check_file(src, project_ctx)
    assert rule_ids(diagnostics) == ["BDD8002"]
    assert diagnostics[0].message == "File name 'Helpers.cs' does not match class name 'StringTools'"
    assert diagnostics[0].properties["expected"] == "Helpers"


def test_file_name_comparison_is_case_sensitive(project_ctx: ProjectContext) -> None:
    src = make_source(project_ctx, relpath="order.cs", content="public class Order { }\n")
    assert rule_ids(FileOrganizationAnalyzer().check_file(src, project_ctx)) == ["BDD8002"]


def test_partial_class_split_file_names(project_ctx: ProjectContext) -> None:
    src = make_source(project_ctx, relpath="Invoice.Printing.cs", content="public partial class Invoice { }\n")
    assert FileOrganizationAnalyzer().check_file(src, project_ctx) == []


def test_code_behind_file_strips_compound_extension(project_ctx: ProjectContext) -> None:
    root = project_ctx.project_root
    (root / "MainWindow.xaml").write_text("<Window />\n", encoding="utf-8")
    src = make_source(project_ctx, relpath="MainWindow.xaml.cs", content="public partial class MainWindow { }\n")
    assert FileOrganizationAnalyzer().check_file(src, project_ctx) == []


def test_code_behind_requires_markup_sibling(project_ctx: ProjectContext) -> None:
    path = write_cs(project_ctx.project_root, "Settings.xaml.cs", "public class Settings { }\n")
    assert code_behind_extension(path, ClassFileOrganizationConfig().code_behind_extensions) is None
    src = make_source(project_ctx, relpath="Settings.xaml.cs", content="public class Settings { }\n")
    assert rule_ids(FileOrganizationAnalyzer().check_file(src, project_ctx)) == ["BDD8002"]


def test_checks_can_be_switched_off(project_ctx: ProjectContext) -> None:
    ctx = with_config(
        project_ctx,
        parse_config_document({"classFileOrganization": {"oneClassPerFile": False, "filenameMustMatchClass": False}}),
    )
    src = make_source(ctx, relpath="Misc.cs", content=cs("public class A { }", "public class B { }"))
    assert FileOrganizationAnalyzer().check_file(src, ctx) == []


def test_files_without_classes_are_ignored(project_ctx: ProjectContext) -> None:
    src = make_source(project_ctx, relpath="Enums.cs", content="public enum Color { Red }\n")
    assert FileOrganizationAnalyzer().check_file(src, project_ctx) == []
