from __future__ import annotations

from collections.abc import Iterable, Mapping
from functools import lru_cache
from types import MappingProxyType

from standardsentinel.rules.base import BaseAnalyzer
from standardsentinel.rules.catalog import descriptor
from standardsentinel.rules.documentation import DocumentationAnalyzer
from standardsentinel.rules.file_organization import FileOrganizationAnalyzer
from standardsentinel.rules.folder_structure import FolderStructureAnalyzer
from standardsentinel.rules.regions import ClassRegionAnalyzer, MethodRegionAnalyzer
from standardsentinel.rules.this_qualifier import ThisQualifierAnalyzer


@lru_cache(maxsize=1)
def builtin_analyzers() -> tuple[BaseAnalyzer, ...]:
    analyzers: list[BaseAnalyzer] = [
        FolderStructureAnalyzer(),
        MethodRegionAnalyzer(),
        ClassRegionAnalyzer(),
        DocumentationAnalyzer(),
        ThisQualifierAnalyzer(),
        FileOrganizationAnalyzer(),
    ]

    owners: dict[str, str] = {}
    for analyzer in analyzers:
        for rule_id in analyzer.meta.rule_ids:
            descriptor(rule_id)  # unknown ids fail loudly here
            if rule_id in owners:  # pragma: no cover
                raise RuntimeError(f"Rule {rule_id} is owned by both {owners[rule_id]} and {analyzer.meta.name}")
            owners[rule_id] = analyzer.meta.name

    return tuple(sorted(analyzers, key=lambda a: a.meta.name))


def all_analyzers() -> tuple[BaseAnalyzer, ...]:
    return builtin_analyzers()


@lru_cache(maxsize=1)
def _analyzer_by_rule_map() -> Mapping[str, BaseAnalyzer]:
    return MappingProxyType({rule_id: a for a in all_analyzers() for rule_id in a.meta.rule_ids})


def analyzer_for_rule(rule_id: str) -> BaseAnalyzer | None:
    return _analyzer_by_rule_map().get(rule_id.strip().upper())


def analyzers_for_rules(rule_ids: Iterable[str]) -> tuple[BaseAnalyzer, ...]:
    """Analyzers owning any of `rule_ids`, in registry order."""

    wanted = {r.strip().upper() for r in rule_ids}
    return tuple(a for a in all_analyzers() if wanted & set(a.meta.rule_ids))
