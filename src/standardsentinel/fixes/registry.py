from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.types import CodeFixEdit, Diagnostic
from standardsentinel.fixes.base import FixProvider
from standardsentinel.fixes.documentation import add_documentation, complete_documentation
from standardsentinel.fixes.folder_structure import append_folder_to_namespace
from standardsentinel.fixes.regions import rename_enclosing_region, wrap_method_in_region
from standardsentinel.fixes.this_qualifier import qualify_member_access

_PROVIDERS: Mapping[str, FixProvider] = MappingProxyType(
    {
        "BDD3001": append_folder_to_namespace,
        "BDD3002": append_folder_to_namespace,
        "BDD3003": append_folder_to_namespace,
        "BDD3005": append_folder_to_namespace,
        "BDD4001": wrap_method_in_region,
        "BDD4002": rename_enclosing_region,
        "BDD5001": add_documentation,
        "BDD5002": complete_documentation,
        "BDD5003": complete_documentation,
        "BDD7001": qualify_member_access,
        "BDD7002": qualify_member_access,
        "BDD7003": qualify_member_access,
    }
)


def fixable_rule_ids() -> frozenset[str]:
    return frozenset(_PROVIDERS)


def provider_for(rule_id: str) -> FixProvider | None:
    return _PROVIDERS.get(rule_id.strip().upper())


def compute_fix(src: SourceFile, diagnostic: Diagnostic, project: ProjectContext) -> CodeFixEdit | None:
    """Compute the edit for one diagnostic against the exact source it was reported on."""

    provider = provider_for(diagnostic.rule_id)
    if provider is None or not src.parse_ok:
        return None
    return provider(src, diagnostic, project)
