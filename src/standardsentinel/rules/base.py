from __future__ import annotations

from abc import ABC
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.types import Diagnostic, Location
from standardsentinel.rules.catalog import descriptor


@dataclass(frozen=True, slots=True)
class AnalyzerMeta:
    name: str
    section: str
    rule_ids: tuple[str, ...]
    description: str


class BaseAnalyzer(ABC):
    """
    One independent analysis pass.

    Analyzers are stateless: `check_file` and `check_project` only read their
    inputs and return fresh diagnostics, so one instance can be shared across
    worker threads. Severities are left at the descriptor default and resolved
    against the configuration by the orchestrator.
    """

    meta: AnalyzerMeta

    def check_project(self, ctx: ProjectContext) -> list[Diagnostic]:
        return []

    def check_file(self, src: SourceFile, ctx: ProjectContext) -> list[Diagnostic]:
        return []

    def _diagnostic(
        self,
        rule_id: str,
        *,
        location: Location | None,
        values: Mapping[str, object],
        properties: Mapping[str, str] | None = None,
    ) -> Diagnostic:
        desc = descriptor(rule_id)
        return Diagnostic(
            rule_id=desc.rule_id,
            severity=desc.default_severity,
            message=desc.format_message(**values),
            category=desc.category,
            location=location,
            properties=MappingProxyType(dict(properties or {})),
        )
