from __future__ import annotations

import fnmatch
from pathlib import Path

from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.syntax import top_level_types
from standardsentinel.engine.types import Diagnostic, Location
from standardsentinel.rules.base import AnalyzerMeta, BaseAnalyzer
from standardsentinel.rules.catalog import FOLDER_STRUCTURE
from standardsentinel.utils import contains_segments, directory_segments, folder_segments

KIND_LABELS = {
    "interface": "Interface",
    "abstract_class": "Abstract class",
    "class": "Class",
    "struct": "Struct",
    "enum": "Enum",
    "record": "Record",
    "delegate": "Delegate",
}

_KIND_RULES = {"interface": "BDD3001", "abstract_class": "BDD3002"}


def matches_infrastructure_pattern(file_name: str, patterns: tuple[str, ...]) -> bool:
    lowered = file_name.lower()
    return any(fnmatch.fnmatchcase(lowered, pattern.lower()) for pattern in patterns)


def _directory_exists(root: Path, folder: str) -> bool:
    # Segment-by-segment, case-insensitive.
    current = root
    for segment in folder_segments(folder):
        try:
            match = next(
                (child for child in current.iterdir() if child.is_dir() and child.name.lower() == segment),
                None,
            )
        except OSError:
            return False
        if match is None:
            return False
        current = match
    return True


class FolderStructureAnalyzer(BaseAnalyzer):
    meta = AnalyzerMeta(
        name="FolderStructure",
        section=FOLDER_STRUCTURE,
        rule_ids=("BDD3001", "BDD3002", "BDD3003", "BDD3004", "BDD3005"),
        description="Type declarations and infrastructure files must live in their configured folders.",
    )

    def check_file(self, src: SourceFile, ctx: ProjectContext) -> list[Diagnostic]:
        cfg = ctx.config.folder_structure
        dirs = directory_segments(src.relative_path)
        types = top_level_types(src)
        out: list[Diagnostic] = []

        for decl in types:
            folder = cfg.file_type_to_folder.get(decl.kind)
            if not folder or contains_segments(dirs, folder_segments(folder)):
                continue
            anchor = decl.name_node if decl.name_node is not None else decl.node
            out.append(
                self._diagnostic(
                    _KIND_RULES.get(decl.kind, "BDD3005"),
                    location=src.node_location(anchor),
                    values={"kind": KIND_LABELS[decl.kind], "name": decl.name, "folder": folder},
                    properties={"folder": folder, "kind": decl.kind, "name": decl.name},
                )
            )

        if matches_infrastructure_pattern(src.file_name, cfg.infrastructure_patterns):
            folder = cfg.infrastructure_folder
            if not contains_segments(dirs, folder_segments(folder)):
                anchor = types[0].name_node if types and types[0].name_node is not None else None
                location = src.node_location(anchor) if anchor is not None else src.line_location(0)
                out.append(
                    self._diagnostic(
                        "BDD3003",
                        location=location,
                        values={"file": src.file_name, "folder": folder},
                        properties={"folder": folder},
                    )
                )
        return out

    def check_project(self, ctx: ProjectContext) -> list[Diagnostic]:
        out: list[Diagnostic] = []
        for folder in ctx.config.folder_structure.required_folders:
            if _directory_exists(ctx.project_root, folder):
                continue
            out.append(
                self._diagnostic(
                    "BDD3004",
                    location=Location(path=None),
                    values={"folder": folder},
                    properties={"folder": folder},
                )
            )
        return out
