from __future__ import annotations

from pathlib import Path

from standardsentinel.config import ClassFileOrganizationConfig
from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.syntax import TypeDeclaration, top_level_types
from standardsentinel.engine.types import Diagnostic
from standardsentinel.rules.base import AnalyzerMeta, BaseAnalyzer
from standardsentinel.rules.catalog import CLASS_FILE_ORGANIZATION


def class_identities(src: SourceFile) -> list[list[TypeDeclaration]]:
    """
    Group top-level class declarations by `(namespace, name, arity)`.

    Groups keep declaration order; partial fragments of one class share a group.
    """

    groups: dict[tuple[str, str, int], list[TypeDeclaration]] = {}
    for decl in top_level_types(src):
        if not decl.is_class:
            continue
        groups.setdefault((decl.namespace, decl.name, decl.arity), []).append(decl)
    return list(groups.values())


def code_behind_extension(path: Path, extensions: tuple[str, ...]) -> str | None:
    """Return the matching compound extension when `path` is a code-behind file with its markup sibling on disk."""

    lowered = path.name.lower()
    for ext in extensions:
        if not lowered.endswith(ext.lower()) or len(lowered) == len(ext):
            continue
        markup = path.with_suffix("")
        if markup.is_file():
            return path.name[: len(path.name) - len(ext)]
    return None


def expected_base_name(path: Path, cfg: ClassFileOrganizationConfig) -> str:
    stem = code_behind_extension(path, cfg.code_behind_extensions)
    if stem is not None:
        return stem
    return path.stem


def name_matches(decl: TypeDeclaration, base_name: str) -> bool:
    if decl.name == base_name:
        return True
    return decl.is_partial and decl.name == base_name.split(".", 1)[0]


class FileOrganizationAnalyzer(BaseAnalyzer):
    meta = AnalyzerMeta(
        name="ClassFileOrganization",
        section=CLASS_FILE_ORGANIZATION,
        rule_ids=("BDD8001", "BDD8002"),
        description="One class per file, named after the class.",
    )

    def check_file(self, src: SourceFile, ctx: ProjectContext) -> list[Diagnostic]:
        cfg = ctx.config.class_file_organization
        identities = class_identities(src)
        if not identities:
            return []

        out: list[Diagnostic] = []
        if cfg.one_class_per_file and len(identities) > 1:
            names = [group[0].name for group in identities]
            second = identities[1][0]
            out.append(
                self._diagnostic(
                    "BDD8001",
                    location=src.node_location(second.name_node if second.name_node is not None else second.node),
                    values={"names": ", ".join(names)},
                    properties={"names": ",".join(names)},
                )
            )

        if cfg.filename_must_match_class:
            base_name = expected_base_name(src.path, cfg)
            declarations = [decl for group in identities for decl in group]
            if not any(name_matches(decl, base_name) for decl in declarations):
                primary = identities[0][0]
                out.append(
                    self._diagnostic(
                        "BDD8002",
                        location=src.node_location(primary.name_node if primary.name_node is not None else primary.node),
                        values={"file": src.file_name, "name": primary.name},
                        properties={"name": primary.name, "expected": base_name},
                    )
                )
        return out
