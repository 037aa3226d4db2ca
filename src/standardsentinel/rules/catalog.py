from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType

from standardsentinel.engine.types import Category, Severity

_RULE_ID_RE = re.compile(r"^[A-Z]{3}[0-9]{4}$")

# Configuration section keys (JSON document names).
FOLDER_STRUCTURE = "folderStructure"
METHOD_REGIONS = "methodRegions"
CLASS_REGIONS = "classRegions"
XML_DOCUMENTATION = "xmlDocumentation"
THIS_QUALIFIER = "thisQualifier"
CLASS_FILE_ORGANIZATION = "classFileOrganization"


@dataclass(frozen=True, slots=True)
class RuleDescriptor:
    rule_id: str
    name: str
    title: str
    message_template: str
    category: Category
    default_severity: Severity
    section: str | None
    description: str
    follows_enforcement_level: bool = True
    fixable: bool = False

    def format_message(self, **values: object) -> str:
        return self.message_template.format(**values)


_DESCRIPTORS: tuple[RuleDescriptor, ...] = (
    RuleDescriptor(
        rule_id="BDD0001",
        name="ParseFailure",
        title="Source file could not be parsed",
        message_template="Could not parse '{path}': {reason}",
        category="infrastructure",
        default_severity="warning",
        section=None,
        description="The file contains syntax errors or could not be read; no rules were evaluated for it.",
        follows_enforcement_level=False,
    ),
    RuleDescriptor(
        rule_id="BDD0002",
        name="AnalyzerFailure",
        title="Analyzer failed on a file",
        message_template="Analyzer '{analyzer}' failed on this file: {error}",
        category="infrastructure",
        default_severity="warning",
        section=None,
        description="An analyzer raised an unexpected error; other analyzers and files were still evaluated.",
        follows_enforcement_level=False,
    ),
    RuleDescriptor(
        rule_id="BDD0003",
        name="AnalysisTimeout",
        title="File analysis timed out",
        message_template="Analysis of '{path}' exceeded {seconds} seconds and was abandoned",
        category="infrastructure",
        default_severity="warning",
        section=None,
        description="Analysis of the file took longer than `analysisTimeoutSeconds`.",
        follows_enforcement_level=False,
    ),
    RuleDescriptor(
        rule_id="BDD3001",
        name="InterfacePlacement",
        title="Interface should be in the configured folder",
        message_template="Interface '{name}' declaration should be placed in '{folder}' folder",
        category="folder-structure",
        default_severity="warning",
        section=FOLDER_STRUCTURE,
        description="Interfaces must live in the folder mapped to `interface` in `fileTypeToFolderMapping`.",
        fixable=True,
    ),
    RuleDescriptor(
        rule_id="BDD3002",
        name="AbstractClassPlacement",
        title="Abstract class should be in the configured folder",
        message_template="Abstract class '{name}' declaration should be placed in '{folder}' folder",
        category="folder-structure",
        default_severity="warning",
        section=FOLDER_STRUCTURE,
        description="Abstract classes must live in the folder mapped to `abstractClass` in `fileTypeToFolderMapping`.",
        fixable=True,
    ),
    RuleDescriptor(
        rule_id="BDD3003",
        name="InfrastructurePlacement",
        title="Infrastructure file should be in the infrastructure folder",
        message_template="Infrastructure file '{file}' should be placed in '{folder}' folder",
        category="folder-structure",
        default_severity="warning",
        section=FOLDER_STRUCTURE,
        description="Files matching `infrastructurePatterns` (bootstrappers, startup classes) must live in `infrastructureFolder`.",
        fixable=True,
    ),
    RuleDescriptor(
        rule_id="BDD3004",
        name="MissingRequiredFolder",
        title="Required folder is missing",
        message_template="Required folder '{folder}' does not exist in the project",
        category="folder-structure",
        default_severity="warning",
        section=FOLDER_STRUCTURE,
        description="Every entry of `requiredFolders` must exist under the project root.",
    ),
    RuleDescriptor(
        rule_id="BDD3005",
        name="TypePlacement",
        title="Type should be in the configured folder",
        message_template="{kind} '{name}' declaration should be placed in '{folder}' folder",
        category="folder-structure",
        default_severity="warning",
        section=FOLDER_STRUCTURE,
        description="Other declaration kinds mapped in `fileTypeToFolderMapping` (class, struct, enum, record, delegate).",
        fixable=True,
    ),
    RuleDescriptor(
        rule_id="BDD4001",
        name="MethodNotInRegion",
        title="Method should be enclosed in a region",
        message_template="Method '{method}' should be enclosed in a region with format '#region {expected}'",
        category="regions",
        default_severity="warning",
        section=METHOD_REGIONS,
        description="Each method must sit inside a `#region` named after it (see `regionNameFormat`).",
        fixable=True,
    ),
    RuleDescriptor(
        rule_id="BDD4002",
        name="IncorrectRegionNaming",
        title="Region name should match the method name",
        message_template="Region name '{region}' should match the method name '{expected}'",
        category="regions",
        default_severity="warning",
        section=METHOD_REGIONS,
        description="The innermost region around a method must be named exactly after the method.",
        fixable=True,
    ),
    RuleDescriptor(
        rule_id="BDD4003",
        name="RegionBoundaryCrossing",
        title="Region marker crosses a method boundary",
        message_template="Region '{region}' crosses the boundary of method '{method}'",
        category="regions",
        default_severity="warning",
        section=METHOD_REGIONS,
        description="A `#region` / `#endregion` pair has exactly one marker inside the method body.",
    ),
    RuleDescriptor(
        rule_id="BDD4004",
        name="ClassRegionStructure",
        title="Class region structure is incomplete",
        message_template="Class '{name}' region structure is invalid: {problems}",
        category="regions",
        default_severity="warning",
        section=CLASS_REGIONS,
        description="Classes must contain every region in `requiredRegions`, each holding only its member kinds.",
    ),
    RuleDescriptor(
        rule_id="BDD5001",
        name="MissingDocumentation",
        title="Public member is missing XML documentation",
        message_template="Public {kind} '{name}' is missing XML documentation",
        category="documentation",
        default_severity="error",
        section=XML_DOCUMENTATION,
        description="Public types and members require a `///` documentation comment.",
        fixable=True,
    ),
    RuleDescriptor(
        rule_id="BDD5002",
        name="IncompleteDocumentation",
        title="XML documentation is incomplete",
        message_template="XML documentation for '{name}' is incomplete: missing {missing}",
        category="documentation",
        default_severity="error",
        section=XML_DOCUMENTATION,
        description="Documentation must contain a summary, a `<param>` per parameter and `<returns>` for non-void members.",
        fixable=True,
    ),
    RuleDescriptor(
        rule_id="BDD5003",
        name="MissingExceptionDocumentation",
        title="Thrown exception is not documented",
        message_template="XML documentation for '{name}' is missing exception documentation for {exceptions}",
        category="documentation",
        default_severity="error",
        section=XML_DOCUMENTATION,
        description="Every exception type constructed and thrown directly in the body needs an `<exception cref>` entry.",
        fixable=True,
    ),
    RuleDescriptor(
        rule_id="BDD5004",
        name="DocumentationMismatch",
        title="Documented parameters do not match the declaration",
        message_template=(
            "XML documentation parameters for '{name}' do not match the declaration: "
            "documented ({documented}), declared ({declared})"
        ),
        category="documentation",
        default_severity="warning",
        section=XML_DOCUMENTATION,
        description="All parameters are documented but the documented list has extra names or a different order.",
        follows_enforcement_level=False,
    ),
    RuleDescriptor(
        rule_id="BDD7001",
        name="MissingThisQualifierProperty",
        title="Property access should use 'this.'",
        message_template="Property '{name}' should be accessed with the 'this.' qualifier",
        category="this-qualifier",
        default_severity="warning",
        section=THIS_QUALIFIER,
        description="Instance properties of the enclosing type must be accessed as `this.Name`.",
        fixable=True,
    ),
    RuleDescriptor(
        rule_id="BDD7002",
        name="MissingThisQualifierMethod",
        title="Method call should use 'this.'",
        message_template="Method '{name}' should be called with the 'this.' qualifier",
        category="this-qualifier",
        default_severity="warning",
        section=THIS_QUALIFIER,
        description="Instance methods of the enclosing type must be referenced as `this.Name`.",
        fixable=True,
    ),
    RuleDescriptor(
        rule_id="BDD7003",
        name="MissingThisQualifierField",
        title="Field access should use 'this.'",
        message_template="Field '{name}' should be accessed with the 'this.' qualifier",
        category="this-qualifier",
        default_severity="warning",
        section=THIS_QUALIFIER,
        description="Instance fields of the enclosing type must be accessed as `this.name`.",
        fixable=True,
    ),
    RuleDescriptor(
        rule_id="BDD8001",
        name="MultipleClasses",
        title="File declares more than one class",
        message_template="File contains multiple classes ({names}); each class should be in its own file",
        category="file-organization",
        default_severity="warning",
        section=CLASS_FILE_ORGANIZATION,
        description="Each file may declare one top-level class (partial fragments count once).",
    ),
    RuleDescriptor(
        rule_id="BDD8002",
        name="FilenameClassMismatch",
        title="File name does not match the class name",
        message_template="File name '{file}' does not match class name '{name}'",
        category="file-organization",
        default_severity="warning",
        section=CLASS_FILE_ORGANIZATION,
        description="The file's base name must equal its class name; code-behind pairs strip the whole compound extension.",
    ),
)


@lru_cache(maxsize=1)
def _descriptor_map() -> Mapping[str, RuleDescriptor]:
    by_id: dict[str, RuleDescriptor] = {}
    for desc in _DESCRIPTORS:
        if not _RULE_ID_RE.match(desc.rule_id):  # pragma: no cover
            raise RuntimeError(f"Rule id must match {_RULE_ID_RE.pattern}: {desc.rule_id!r}")
        if desc.rule_id in by_id:  # pragma: no cover
            raise RuntimeError(f"Duplicate rule id: {desc.rule_id}")
        by_id[desc.rule_id] = desc
    return MappingProxyType({k: by_id[k] for k in sorted(by_id)})


def all_descriptors() -> tuple[RuleDescriptor, ...]:
    return tuple(_descriptor_map().values())


def descriptor(rule_id: str) -> RuleDescriptor:
    try:
        return _descriptor_map()[rule_id.strip().upper()]
    except KeyError:
        raise KeyError(f"Unknown rule id: {rule_id!r}") from None


def find_descriptor(rule_id: str) -> RuleDescriptor | None:
    return _descriptor_map().get(rule_id.strip().upper())


def descriptors_for_section(section: str) -> tuple[RuleDescriptor, ...]:
    return tuple(d for d in _descriptor_map().values() if d.section == section)


def is_valid_rule_id(value: str) -> bool:
    return bool(_RULE_ID_RE.match(value.strip().upper()))
