from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.types import CodeFixEdit, Diagnostic

if TYPE_CHECKING:
    from tree_sitter import Node

FixProvider = Callable[[SourceFile, Diagnostic, ProjectContext], "CodeFixEdit | None"]


def diagnostic_node(src: SourceFile, diagnostic: Diagnostic) -> Node | None:
    """Smallest syntax node covering the diagnostic's span."""

    loc = diagnostic.location
    if src.tree is None or loc is None or loc.start_byte is None or loc.end_byte is None:
        return None
    return src.tree.root_node.descendant_for_byte_range(loc.start_byte, loc.end_byte)
