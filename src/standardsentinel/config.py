from __future__ import annotations

import fnmatch
import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, cast

from standardsentinel.engine.types import Severity
from standardsentinel.rules.catalog import (
    CLASS_FILE_ORGANIZATION,
    CLASS_REGIONS,
    FOLDER_STRUCTURE,
    METHOD_REGIONS,
    THIS_QUALIFIER,
    XML_DOCUMENTATION,
    RuleDescriptor,
    is_valid_rule_id,
)

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a section of the coding-standards document is invalid."""


DEFAULT_CONFIG_FILENAME = "coding-standards.json"
DEFAULT_REPORT_PATH = "obj/standards-report.xml"
DEFAULT_ANALYSIS_TIMEOUT_SECONDS = 30.0
DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (
    "*.g.cs",
    "*.g.i.cs",
    "*.designer.cs",
    "*.generated.cs",
    "*.AssemblyAttributes.cs",
    "*.AssemblyInfo.cs",
)
DEFAULT_EXCLUDE_DIRECTORIES: tuple[str, ...] = (
    "bin",
    "obj",
    ".git",
    ".vs",
    ".vscode",
    ".idea",
    "node_modules",
    "packages",
    "TestResults",
)

DECLARATION_KINDS: tuple[str, ...] = ("interface", "abstract_class", "class", "struct", "enum", "record", "delegate")
MEMBER_KIND_NAMES = frozenset(
    {"field", "event", "property", "indexer", "constructor", "destructor", "method", "operator", "type"}
)

_KIND_ALIASES = {
    "interface": "interface",
    "abstractclass": "abstract_class",
    "abstract": "abstract_class",
    "class": "class",
    "struct": "struct",
    "enum": "enum",
    "record": "record",
    "delegate": "delegate",
}

_TOP_LEVEL_KEYS = frozenset(
    {
        "projectName",
        "failOnCritical",
        "enforceEnhancedStandards",
        "reportPath",
        "analysisTimeoutSeconds",
        "excludePatterns",
        "excludeDirectories",
        "rules",
        FOLDER_STRUCTURE,
        METHOD_REGIONS,
        CLASS_REGIONS,
        XML_DOCUMENTATION,
        THIS_QUALIFIER,
        CLASS_FILE_ORGANIZATION,
    }
)


def _default_folder_mapping() -> Mapping[str, str]:
    return MappingProxyType({"interface": "Contracts", "abstract_class": "Contracts"})


def _default_region_member_kinds() -> Mapping[str, frozenset[str]]:
    return MappingProxyType(
        {
            "Fields": frozenset({"field", "event"}),
            "Properties": frozenset({"property", "indexer"}),
            "Construction": frozenset({"constructor", "destructor"}),
            "Methods": frozenset({"method", "operator"}),
        }
    )


@dataclass(frozen=True, slots=True)
class RuleSetting:
    enabled: bool = True
    severity: Severity | None = None


@dataclass(frozen=True, slots=True)
class FolderStructureConfig:
    enabled: bool = True
    enforcement_level: Severity = "warning"
    required_folders: tuple[str, ...] = ()
    file_type_to_folder: Mapping[str, str] = field(default_factory=_default_folder_mapping)
    infrastructure_folder: str = "Bootstrapper"
    infrastructure_patterns: tuple[str, ...] = ("*Bootstrapper.cs", "*Startup.cs")


@dataclass(frozen=True, slots=True)
class MethodRegionsConfig:
    enabled: bool = True
    enforcement_level: Severity = "warning"
    region_name_format: str = "{0}"

    def expected_name(self, method_name: str) -> str:
        return self.region_name_format.replace("{0}", method_name)


@dataclass(frozen=True, slots=True)
class ClassRegionsConfig:
    enabled: bool = True
    enforcement_level: Severity = "warning"
    required_regions: tuple[str, ...] = ("Properties", "Construction", "Methods")
    region_member_kinds: Mapping[str, frozenset[str]] = field(default_factory=_default_region_member_kinds)


@dataclass(frozen=True, slots=True)
class XmlDocumentationConfig:
    enabled: bool = True
    enforcement_level: Severity = "error"
    require_exception_documentation: bool = True


@dataclass(frozen=True, slots=True)
class ThisQualifierScope:
    properties: bool = True
    methods: bool = True
    fields: bool = True


@dataclass(frozen=True, slots=True)
class ThisQualifierConfig:
    enabled: bool = True
    enforcement_level: Severity = "warning"
    enforce_this_qualifier: bool = False
    scope: ThisQualifierScope = field(default_factory=ThisQualifierScope)


@dataclass(frozen=True, slots=True)
class ClassFileOrganizationConfig:
    enabled: bool = True
    enforcement_level: Severity = "warning"
    one_class_per_file: bool = True
    filename_must_match_class: bool = True
    code_behind_extensions: tuple[str, ...] = (".xaml.cs",)


@dataclass(frozen=True, slots=True)
class StandardsConfig:
    project_name: str | None = None
    fail_on_critical: bool = True
    enforce_enhanced_standards: bool = False
    report_path: str | None = None
    analysis_timeout_seconds: float = DEFAULT_ANALYSIS_TIMEOUT_SECONDS
    exclude_patterns: tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    exclude_directories: tuple[str, ...] = DEFAULT_EXCLUDE_DIRECTORIES
    rules: Mapping[str, RuleSetting] = field(default_factory=lambda: MappingProxyType({}))
    folder_structure: FolderStructureConfig = field(default_factory=FolderStructureConfig)
    method_regions: MethodRegionsConfig = field(default_factory=MethodRegionsConfig)
    class_regions: ClassRegionsConfig = field(default_factory=ClassRegionsConfig)
    xml_documentation: XmlDocumentationConfig = field(default_factory=XmlDocumentationConfig)
    this_qualifier: ThisQualifierConfig = field(default_factory=ThisQualifierConfig)
    class_file_organization: ClassFileOrganizationConfig = field(default_factory=ClassFileOrganizationConfig)

    def section(
        self, key: str
    ) -> (
        FolderStructureConfig
        | MethodRegionsConfig
        | ClassRegionsConfig
        | XmlDocumentationConfig
        | ThisQualifierConfig
        | ClassFileOrganizationConfig
    ):
        sections = {
            FOLDER_STRUCTURE: self.folder_structure,
            METHOD_REGIONS: self.method_regions,
            CLASS_REGIONS: self.class_regions,
            XML_DOCUMENTATION: self.xml_documentation,
            THIS_QUALIFIER: self.this_qualifier,
            CLASS_FILE_ORGANIZATION: self.class_file_organization,
        }
        try:
            return sections[key]
        except KeyError:
            raise KeyError(f"Unknown configuration section: {key!r}") from None


def is_rule_enabled(config: StandardsConfig, desc: RuleDescriptor) -> bool:
    setting = config.rules.get(desc.rule_id)
    if setting is not None and not setting.enabled:
        return False
    if desc.section is None:
        return True
    return config.section(desc.section).enabled


def resolve_severity(config: StandardsConfig, desc: RuleDescriptor) -> Severity:
    """
    Resolve the effective severity for a rule.

    Order: descriptor default, then the section's `enforcementLevel`, then a
    per-rule `rules.<id>.severity`, then the build-breaking switches
    (`thisQualifier.enforceThisQualifier`, `enforceEnhancedStandards`).
    """

    severity: Severity = desc.default_severity
    if desc.section is not None and desc.follows_enforcement_level:
        severity = config.section(desc.section).enforcement_level

    setting = config.rules.get(desc.rule_id)
    if setting is not None and setting.severity is not None:
        severity = setting.severity

    if desc.section == THIS_QUALIFIER and config.this_qualifier.enforce_this_qualifier:
        severity = "error"
    if desc.section in {THIS_QUALIFIER, CLASS_FILE_ORGANIZATION} and config.enforce_enhanced_standards:
        severity = "error"
    return severity


def with_overrides(
    config: StandardsConfig,
    *,
    fail_on_critical: bool | None = None,
    enforce_enhanced_standards: bool | None = None,
    report_path: str | None = None,
    project_name: str | None = None,
) -> StandardsConfig:
    """Return a new configuration with invocation-level parameters applied."""

    changes: dict[str, Any] = {}
    if fail_on_critical is not None:
        changes["fail_on_critical"] = fail_on_critical
    if enforce_enhanced_standards is not None:
        changes["enforce_enhanced_standards"] = enforce_enhanced_standards
    if report_path is not None:
        changes["report_path"] = report_path
    if project_name is not None:
        changes["project_name"] = project_name
    if not changes:
        return config
    return replace(config, **changes)


def file_is_excluded(file_name: str, patterns: tuple[str, ...]) -> bool:
    lowered = file_name.lower()
    return any(fnmatch.fnmatchcase(lowered, pattern.lower()) for pattern in patterns)


def load_config(project_dir: Path | str = ".", *, config_path: Path | str | None = None) -> StandardsConfig:
    """
    Load the coding-standards document for a project.

    A missing or malformed document yields the built-in defaults; an invalid
    section is logged and replaced by that section's defaults. Each call
    returns a new value.
    """

    path = Path(config_path) if config_path is not None else Path(project_dir) / DEFAULT_CONFIG_FILENAME
    if not path.exists():
        if config_path is not None:
            logger.warning("Configuration file %s not found; using built-in defaults.", path)
        else:
            logger.debug("No %s in %s; using built-in defaults.", DEFAULT_CONFIG_FILENAME, project_dir)
        return StandardsConfig()

    try:
        data = json.loads(path.read_text(encoding="utf-8-sig"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Could not read configuration %s (%s); using built-in defaults.", path, exc)
        return StandardsConfig()

    if not isinstance(data, dict):
        logger.warning("Configuration %s must be a JSON object; using built-in defaults.", path)
        return StandardsConfig()

    return parse_config_document(data, source=str(path))


def parse_config_document(data: Mapping[str, Any], *, source: str = "<config>") -> StandardsConfig:
    table = _normalize_keys(data)
    for key in table:
        if key not in _TOP_LEVEL_KEYS:
            logger.debug("Ignoring unknown configuration key %r in %s.", key, source)

    defaults = StandardsConfig()
    values: dict[str, Any] = {}

    def parse_or_default(attr: str, key: str, parser: Any) -> None:
        if key not in table:
            return
        try:
            values[attr] = parser(table[key])
        except ConfigError as exc:
            logger.warning("Invalid `%s` in %s: %s Using defaults for it.", key, source, exc)
            values[attr] = getattr(defaults, attr)

    parse_or_default("project_name", "projectName", lambda v: _validate_str(v, field_name="projectName"))
    parse_or_default("fail_on_critical", "failOnCritical", lambda v: _validate_bool(v, field_name="failOnCritical"))
    parse_or_default(
        "enforce_enhanced_standards",
        "enforceEnhancedStandards",
        lambda v: _validate_bool(v, field_name="enforceEnhancedStandards"),
    )
    parse_or_default("report_path", "reportPath", lambda v: _validate_str(v, field_name="reportPath"))
    parse_or_default("analysis_timeout_seconds", "analysisTimeoutSeconds", _parse_timeout)
    parse_or_default(
        "exclude_patterns", "excludePatterns", lambda v: _validate_str_list(v, field_name="excludePatterns")
    )
    parse_or_default(
        "exclude_directories",
        "excludeDirectories",
        lambda v: _validate_str_list(v, field_name="excludeDirectories"),
    )
    parse_or_default("rules", "rules", _parse_rules)
    parse_or_default("folder_structure", FOLDER_STRUCTURE, _parse_folder_structure)
    parse_or_default("method_regions", METHOD_REGIONS, _parse_method_regions)
    parse_or_default("class_regions", CLASS_REGIONS, _parse_class_regions)
    parse_or_default("xml_documentation", XML_DOCUMENTATION, _parse_xml_documentation)
    parse_or_default("this_qualifier", THIS_QUALIFIER, _parse_this_qualifier)
    parse_or_default("class_file_organization", CLASS_FILE_ORGANIZATION, _parse_class_file_organization)

    return replace(defaults, **values)


def _camel_case(key: str) -> str:
    if "_" not in key and "-" not in key:
        return key
    parts = re.split(r"[_-]+", key)
    return parts[0] + "".join(p[:1].upper() + p[1:] for p in parts[1:])


def _normalize_keys(value: Mapping[str, Any]) -> dict[str, Any]:
    # Accept snake_case / kebab-case aliases for the documented camelCase keys.
    return {_camel_case(str(k)): v for k, v in value.items()}


def _section_table(value: Any, *, field_name: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"`{field_name}` must be an object.")
    return _normalize_keys(value)


def _validate_bool(value: Any, *, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"`{field_name}` must be a boolean.")
    return value


def _validate_str(value: Any, *, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"`{field_name}` must be a non-empty string.")
    return value.strip()


def _validate_str_list(value: Any, *, field_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or any(not isinstance(v, str) for v in value):
        raise ConfigError(f"`{field_name}` must be a list of strings.")
    return tuple(v.strip() for v in value if v.strip())


def _validate_severity(value: Any, *, field_name: str) -> Severity:
    if not isinstance(value, str):
        raise ConfigError(f"`{field_name}` must be a string.")
    normalized = value.strip().lower()
    if normalized == "warn":
        normalized = "warning"
    if normalized not in {"error", "warning"}:
        raise ConfigError(f"`{field_name}` must be one of: error, warning.")
    return cast(Severity, normalized)


def _parse_timeout(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError("`analysisTimeoutSeconds` must be a number.")
    if value <= 0:
        raise ConfigError("`analysisTimeoutSeconds` must be greater than 0.")
    return float(value)


def _parse_rules(value: Any) -> Mapping[str, RuleSetting]:
    if not isinstance(value, dict):
        raise ConfigError("`rules` must be an object.")
    out: dict[str, RuleSetting] = {}
    for raw_id, raw_setting in value.items():
        rule_id = str(raw_id).strip().upper()
        if not is_valid_rule_id(rule_id):
            raise ConfigError(f"`rules.{raw_id}` is invalid; expected a rule id like BDD3001.")
        if isinstance(raw_setting, bool):
            out[rule_id] = RuleSetting(enabled=raw_setting)
            continue
        if isinstance(raw_setting, str):
            out[rule_id] = RuleSetting(severity=_validate_severity(raw_setting, field_name=f"rules.{raw_id}"))
            continue
        if not isinstance(raw_setting, dict):
            raise ConfigError(f"`rules.{raw_id}` must be an object, a boolean or a severity string.")
        enabled = _validate_bool(raw_setting.get("enabled", True), field_name=f"rules.{raw_id}.enabled")
        severity_raw = raw_setting.get("severity")
        severity = (
            _validate_severity(severity_raw, field_name=f"rules.{raw_id}.severity") if severity_raw is not None else None
        )
        out[rule_id] = RuleSetting(enabled=enabled, severity=severity)
    return MappingProxyType(out)


def _common(table: dict[str, Any], *, section: str, default_level: Severity) -> tuple[bool, Severity]:
    enabled = _validate_bool(table.get("enabled", True), field_name=f"{section}.enabled")
    level_raw = table.get("enforcementLevel")
    level = (
        _validate_severity(level_raw, field_name=f"{section}.enforcementLevel") if level_raw is not None else default_level
    )
    return enabled, level


def _normalize_kind(value: str, *, field_name: str) -> str:
    key = value.strip().replace("_", "").replace("-", "").lower()
    kind = _KIND_ALIASES.get(key)
    if kind is None:
        raise ConfigError(f"`{field_name}` has unknown declaration kind {value!r}; expected one of: {', '.join(DECLARATION_KINDS)}.")
    return kind


def _parse_folder_structure(value: Any) -> FolderStructureConfig:
    table = _section_table(value, field_name=FOLDER_STRUCTURE)
    defaults = FolderStructureConfig()
    enabled, level = _common(table, section=FOLDER_STRUCTURE, default_level=defaults.enforcement_level)

    mapping: Mapping[str, str] = defaults.file_type_to_folder
    if "fileTypeToFolderMapping" in table:
        raw = table["fileTypeToFolderMapping"]
        if not isinstance(raw, dict):
            raise ConfigError(f"`{FOLDER_STRUCTURE}.fileTypeToFolderMapping` must be an object.")
        parsed: dict[str, str] = {}
        for raw_kind, raw_folder in raw.items():
            field_name = f"{FOLDER_STRUCTURE}.fileTypeToFolderMapping.{raw_kind}"
            parsed[_normalize_kind(str(raw_kind), field_name=field_name)] = _validate_str(raw_folder, field_name=field_name)
        mapping = MappingProxyType(parsed)

    infrastructure_folder = defaults.infrastructure_folder
    if "infrastructureFolder" in table:
        infrastructure_folder = _validate_str(
            table["infrastructureFolder"], field_name=f"{FOLDER_STRUCTURE}.infrastructureFolder"
        )

    patterns = defaults.infrastructure_patterns
    if "infrastructurePatterns" in table:
        patterns = _validate_str_list(
            table["infrastructurePatterns"], field_name=f"{FOLDER_STRUCTURE}.infrastructurePatterns"
        )

    return FolderStructureConfig(
        enabled=enabled,
        enforcement_level=level,
        required_folders=_validate_str_list(table.get("requiredFolders"), field_name=f"{FOLDER_STRUCTURE}.requiredFolders"),
        file_type_to_folder=mapping,
        infrastructure_folder=infrastructure_folder,
        infrastructure_patterns=patterns,
    )


def _parse_method_regions(value: Any) -> MethodRegionsConfig:
    table = _section_table(value, field_name=METHOD_REGIONS)
    defaults = MethodRegionsConfig()
    enabled, level = _common(table, section=METHOD_REGIONS, default_level=defaults.enforcement_level)
    fmt = defaults.region_name_format
    if "regionNameFormat" in table:
        fmt = _validate_str(table["regionNameFormat"], field_name=f"{METHOD_REGIONS}.regionNameFormat")
        if "{0}" not in fmt:
            raise ConfigError(f"`{METHOD_REGIONS}.regionNameFormat` must contain the `{{0}}` placeholder.")
    return MethodRegionsConfig(enabled=enabled, enforcement_level=level, region_name_format=fmt)


def _parse_class_regions(value: Any) -> ClassRegionsConfig:
    table = _section_table(value, field_name=CLASS_REGIONS)
    defaults = ClassRegionsConfig()
    enabled, level = _common(table, section=CLASS_REGIONS, default_level=defaults.enforcement_level)

    required = defaults.required_regions
    if "requiredRegions" in table:
        required = _validate_str_list(table["requiredRegions"], field_name=f"{CLASS_REGIONS}.requiredRegions")

    kinds: dict[str, frozenset[str]] = dict(defaults.region_member_kinds)
    if "regionMemberKinds" in table:
        raw = table["regionMemberKinds"]
        if not isinstance(raw, dict):
            raise ConfigError(f"`{CLASS_REGIONS}.regionMemberKinds` must be an object.")
        for region, raw_kinds in raw.items():
            field_name = f"{CLASS_REGIONS}.regionMemberKinds.{region}"
            parsed = _validate_str_list(raw_kinds, field_name=field_name)
            unknown = sorted(k for k in parsed if k.lower() not in MEMBER_KIND_NAMES)
            if unknown:
                raise ConfigError(f"`{field_name}` has unknown member kinds: {', '.join(unknown)}.")
            kinds[str(region).strip()] = frozenset(k.lower() for k in parsed)

    return ClassRegionsConfig(
        enabled=enabled,
        enforcement_level=level,
        required_regions=required,
        region_member_kinds=MappingProxyType(kinds),
    )


def _parse_xml_documentation(value: Any) -> XmlDocumentationConfig:
    table = _section_table(value, field_name=XML_DOCUMENTATION)
    defaults = XmlDocumentationConfig()
    enabled, level = _common(table, section=XML_DOCUMENTATION, default_level=defaults.enforcement_level)
    require_exceptions = _validate_bool(
        table.get("requireExceptionDocumentation", defaults.require_exception_documentation),
        field_name=f"{XML_DOCUMENTATION}.requireExceptionDocumentation",
    )
    return XmlDocumentationConfig(
        enabled=enabled,
        enforcement_level=level,
        require_exception_documentation=require_exceptions,
    )


def _parse_this_qualifier(value: Any) -> ThisQualifierConfig:
    table = _section_table(value, field_name=THIS_QUALIFIER)
    defaults = ThisQualifierConfig()
    enabled, level = _common(table, section=THIS_QUALIFIER, default_level=defaults.enforcement_level)
    enforce = _validate_bool(
        table.get("enforceThisQualifier", defaults.enforce_this_qualifier),
        field_name=f"{THIS_QUALIFIER}.enforceThisQualifier",
    )

    scope = defaults.scope
    if "scope" in table:
        scope_table = _section_table(table["scope"], field_name=f"{THIS_QUALIFIER}.scope")
        scope = ThisQualifierScope(
            properties=_validate_bool(scope_table.get("properties", True), field_name=f"{THIS_QUALIFIER}.scope.properties"),
            methods=_validate_bool(scope_table.get("methods", True), field_name=f"{THIS_QUALIFIER}.scope.methods"),
            fields=_validate_bool(scope_table.get("fields", True), field_name=f"{THIS_QUALIFIER}.scope.fields"),
        )

    return ThisQualifierConfig(enabled=enabled, enforcement_level=level, enforce_this_qualifier=enforce, scope=scope)


def _parse_class_file_organization(value: Any) -> ClassFileOrganizationConfig:
    table = _section_table(value, field_name=CLASS_FILE_ORGANIZATION)
    defaults = ClassFileOrganizationConfig()
    enabled, level = _common(table, section=CLASS_FILE_ORGANIZATION, default_level=defaults.enforcement_level)

    extensions = defaults.code_behind_extensions
    if "codeBehindExtensions" in table:
        raw = _validate_str_list(table["codeBehindExtensions"], field_name=f"{CLASS_FILE_ORGANIZATION}.codeBehindExtensions")
        extensions = tuple(ext if ext.startswith(".") else f".{ext}" for ext in raw)
        bad = [ext for ext in extensions if ext.count(".") < 2]
        if bad:
            raise ConfigError(
                f"`{CLASS_FILE_ORGANIZATION}.codeBehindExtensions` entries must be compound extensions like .xaml.cs: "
                f"{', '.join(bad)}."
            )

    return ClassFileOrganizationConfig(
        enabled=enabled,
        enforcement_level=level,
        one_class_per_file=_validate_bool(
            table.get("oneClassPerFile", defaults.one_class_per_file),
            field_name=f"{CLASS_FILE_ORGANIZATION}.oneClassPerFile",
        ),
        filename_must_match_class=_validate_bool(
            table.get("filenameMustMatchClass", defaults.filename_must_match_class),
            field_name=f"{CLASS_FILE_ORGANIZATION}.filenameMustMatchClass",
        ),
        code_behind_extensions=extensions,
    )
