from __future__ import annotations

from typing import TYPE_CHECKING

from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.syntax import NAMESPACE_TYPES, enclosing_namespace, iter_nodes
from standardsentinel.engine.types import CodeFixEdit, Diagnostic
from standardsentinel.utils import folder_segments

if TYPE_CHECKING:
    from tree_sitter import Node


def _namespace_for(src: SourceFile, diagnostic: Diagnostic) -> Node | None:
    if src.tree is None:
        return None
    root = src.tree.root_node
    loc = diagnostic.location
    if loc is not None and loc.start_byte is not None and loc.end_byte is not None:
        node = root.descendant_for_byte_range(loc.start_byte, loc.end_byte)
        if node is not None:
            return enclosing_namespace(node)
    return next((n for n in iter_nodes(root) if n.type in NAMESPACE_TYPES), None)


def append_folder_to_namespace(src: SourceFile, diagnostic: Diagnostic, project: ProjectContext) -> CodeFixEdit | None:
    """
    Append the target folder to the declaring namespace.

    The file itself is not moved; relocating it is left to the caller.
    """

    folder = diagnostic.properties.get("folder", "")
    suffix = ".".join(s for s in folder.replace("\\", "/").split("/") if s and s != ".")
    if not folder_segments(folder) or not suffix:
        return None

    namespace = _namespace_for(src, diagnostic)
    if namespace is None:
        return None
    name = namespace.child_by_field_name("name")
    if name is None:
        return None

    current = "".join(src.node_text(name).split())
    lowered = current.lower()
    if lowered == suffix.lower() or lowered.endswith(f".{suffix.lower()}"):
        return None

    updated = f"{current}.{suffix}"
    return CodeFixEdit(
        path=src.path,
        rule_id=diagnostic.rule_id,
        start_byte=name.start_byte,
        end_byte=name.end_byte,
        replacement=updated,
        description=f"Change namespace '{current}' to '{updated}'",
    )
