from __future__ import annotations

import json
from pathlib import Path

from standardsentinel.config import (
    ClassRegionsConfig,
    StandardsConfig,
    file_is_excluded,
    is_rule_enabled,
    load_config,
    parse_config_document,
    resolve_severity,
    with_overrides,
)
from standardsentinel.rules.catalog import descriptor


def _write_config(root: Path, payload: object) -> None:
    (root / "coding-standards.json").write_text(json.dumps(payload), encoding="utf-8")


def test_load_config_defaults_when_document_is_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)
    assert isinstance(config, StandardsConfig)
    assert config.fail_on_critical is True
    assert config.enforce_enhanced_standards is False
    assert config.folder_structure.file_type_to_folder["interface"] == "Contracts"
    assert config.method_regions.region_name_format == "{0}"
    assert config.class_regions.required_regions == ("Properties", "Construction", "Methods")
    assert config.xml_documentation.enforcement_level == "error"
    assert config.this_qualifier.enforcement_level == "warning"
    assert config.analysis_timeout_seconds == 30.0


def test_load_config_returns_fresh_values(tmp_path: Path) -> None:
    assert load_config(tmp_path) is not load_config(tmp_path)


def test_load_config_reads_sections(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        {
            "projectName": "Orders",
            "failOnCritical": False,
            "folderStructure": {
                "requiredFolders": ["Contracts", "Services"],
                "fileTypeToFolderMapping": {"interface": "Abstractions", "AbstractClass": "Abstractions/Base"},
                "infrastructureFolder": "Hosting",
            },
            "methodRegions": {"regionNameFormat": "Method: {0}", "enforcementLevel": "error"},
            "classRegions": {"requiredRegions": ["Methods"]},
            "xmlDocumentation": {"requireExceptionDocumentation": False},
            "thisQualifier": {"enforceThisQualifier": True, "scope": {"methods": False}},
            "classFileOrganization": {"codeBehindExtensions": ["xaml.cs", ".razor.cs"]},
        },
    )

    config = load_config(tmp_path)
    assert config.project_name == "Orders"
    assert config.fail_on_critical is False
    assert config.folder_structure.required_folders == ("Contracts", "Services")
    assert dict(config.folder_structure.file_type_to_folder) == {
        "interface": "Abstractions",
        "abstract_class": "Abstractions/Base",
    }
    assert config.folder_structure.infrastructure_folder == "Hosting"
    assert config.method_regions.expected_name("Run") == "Method: Run"
    assert config.method_regions.enforcement_level == "error"
    assert config.class_regions.required_regions == ("Methods",)
    assert config.xml_documentation.require_exception_documentation is False
    assert config.this_qualifier.enforce_this_qualifier is True
    assert config.this_qualifier.scope.methods is False
    assert config.this_qualifier.scope.properties is True
    assert config.class_file_organization.code_behind_extensions == (".xaml.cs", ".razor.cs")


def test_load_config_accepts_snake_case_keys(tmp_path: Path) -> None:
    _write_config(tmp_path, {"fail_on_critical": False, "method_regions": {"region_name_format": "{0} region"}})
    config = load_config(tmp_path)
    assert config.fail_on_critical is False
    assert config.method_regions.region_name_format == "{0} region"


def test_malformed_document_falls_back_to_defaults(tmp_path: Path) -> None:
    (tmp_path / "coding-standards.json").write_text("{ not json", encoding="utf-8")
    assert load_config(tmp_path) == StandardsConfig()


def test_non_object_document_falls_back_to_defaults(tmp_path: Path) -> None:
    _write_config(tmp_path, ["not", "an", "object"])
    assert load_config(tmp_path) == StandardsConfig()


def test_invalid_section_only_resets_that_section(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        {
            "methodRegions": {"regionNameFormat": "no placeholder"},
            "classRegions": {"requiredRegions": ["Methods"]},
        },
    )
    config = load_config(tmp_path)
    assert config.method_regions.region_name_format == "{0}"
    assert config.class_regions.required_regions == ("Methods",)


def test_explicit_missing_config_path_uses_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path, config_path=tmp_path / "nope.json")
    assert config == StandardsConfig()


def test_document_with_bom_is_read(tmp_path: Path) -> None:
    (tmp_path / "coding-standards.json").write_bytes(b"\xef\xbb\xbf" + b'{"projectName": "Bom"}')
    assert load_config(tmp_path).project_name == "Bom"


def test_rules_accept_bool_string_and_object_settings() -> None:
    config = parse_config_document(
        {"rules": {"BDD4001": False, "bdd7001": "error", "BDD5001": {"enabled": True, "severity": "warn"}}}
    )
    assert is_rule_enabled(config, descriptor("BDD4001")) is False
    assert resolve_severity(config, descriptor("BDD7001")) == "error"
    assert resolve_severity(config, descriptor("BDD5001")) == "warning"


def test_invalid_rule_id_resets_rules_table() -> None:
    config = parse_config_document({"rules": {"not-a-rule": False}})
    assert dict(config.rules) == {}


def test_unknown_member_kind_resets_class_regions() -> None:
    config = parse_config_document({"classRegions": {"regionMemberKinds": {"Methods": ["banana"]}}})
    assert config.class_regions == ClassRegionsConfig()


def test_section_enablement_disables_its_rules() -> None:
    config = parse_config_document({"thisQualifier": {"enabled": False}})
    assert is_rule_enabled(config, descriptor("BDD7002")) is False
    assert is_rule_enabled(config, descriptor("BDD4001")) is True
    assert is_rule_enabled(config, descriptor("BDD0001")) is True


def test_resolve_severity_follows_enforcement_level() -> None:
    config = parse_config_document({"folderStructure": {"enforcementLevel": "error"}})
    assert resolve_severity(config, descriptor("BDD3001")) == "error"
    assert resolve_severity(StandardsConfig(), descriptor("BDD3001")) == "warning"
    assert resolve_severity(StandardsConfig(), descriptor("BDD5001")) == "error"


def test_documentation_mismatch_ignores_enforcement_level() -> None:
    config = parse_config_document({"xmlDocumentation": {"enforcementLevel": "error"}})
    assert resolve_severity(config, descriptor("BDD5004")) == "warning"


def test_enforce_this_qualifier_forces_errors() -> None:
    config = parse_config_document(
        {"thisQualifier": {"enforceThisQualifier": True}, "rules": {"BDD7003": "warning"}}
    )
    assert resolve_severity(config, descriptor("BDD7003")) == "error"
    assert resolve_severity(config, descriptor("BDD8001")) == "warning"


def test_enhanced_standards_force_qualifier_and_organization_errors() -> None:
    config = with_overrides(StandardsConfig(), enforce_enhanced_standards=True)
    assert resolve_severity(config, descriptor("BDD7001")) == "error"
    assert resolve_severity(config, descriptor("BDD8002")) == "error"
    assert resolve_severity(config, descriptor("BDD4001")) == "warning"


def test_with_overrides_without_changes_returns_same_value() -> None:
    config = StandardsConfig()
    assert with_overrides(config) is config
    changed = with_overrides(config, fail_on_critical=False, report_path="out/report.xml")
    assert changed.fail_on_critical is False
    assert changed.report_path == "out/report.xml"
    assert config.fail_on_critical is True


def test_file_is_excluded_is_case_insensitive() -> None:
    patterns = StandardsConfig().exclude_patterns
    assert file_is_excluded("MainWindow.g.cs", patterns)
    assert file_is_excluded("Form1.Designer.cs", patterns)
    assert not file_is_excluded("OrderService.cs", patterns)
