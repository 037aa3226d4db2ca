from __future__ import annotations

import re

from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.syntax import (
    doc_comment_for,
    enclosing_of_kind,
    innermost_enclosing,
    line_indent,
    newline_for,
    region_pairs,
    row_span,
)
from standardsentinel.engine.types import CodeFixEdit, Diagnostic
from standardsentinel.fixes.base import diagnostic_node

_REGION_LINE_RE = re.compile(r"^(\s*#\s*region)\b.*$")
_ENDREGION_LINE_RE = re.compile(r"^(\s*#\s*endregion)\b.*$")


def wrap_method_in_region(src: SourceFile, diagnostic: Diagnostic, project: ProjectContext) -> CodeFixEdit | None:
    expected = diagnostic.properties.get("expected", "")
    node = diagnostic_node(src, diagnostic)
    method = enclosing_of_kind(node, {"method_declaration"}) if node is not None else None
    if not expected or method is None:
        return None

    first = method.start_point.row
    last = method.end_point.row
    if src.lines[first][: method.start_point.column].strip():
        return None
    tail = src.source[method.end_byte : row_span(src.source, last, last)[1]]
    if tail.strip():
        return None

    doc = doc_comment_for(src, method)
    if doc is not None:
        first = doc.start_row

    start, end = row_span(src.source, first, last)
    indent = line_indent(src.lines[method.start_point.row])
    nl = newline_for(src.source)
    original = src.source[start:end].decode("utf-8", errors="replace")
    replacement = f"{indent}#region {expected}{nl}{original}{nl}{indent}#endregion {expected}"
    return CodeFixEdit(
        path=src.path,
        rule_id=diagnostic.rule_id,
        start_byte=start,
        end_byte=end,
        replacement=replacement,
        description=f"Wrap method in '#region {expected}'",
    )


def rename_enclosing_region(src: SourceFile, diagnostic: Diagnostic, project: ProjectContext) -> CodeFixEdit | None:
    expected = diagnostic.properties.get("expected", "")
    node = diagnostic_node(src, diagnostic)
    method = enclosing_of_kind(node, {"method_declaration"}) if node is not None else None
    if not expected or method is None:
        return None

    pair = innermost_enclosing(region_pairs(src.lines), method.start_point.row, method.end_point.row)
    if pair is None or pair.name == expected:
        return None

    start, end = row_span(src.source, pair.start_row, pair.end_row)
    nl = newline_for(src.source)
    text = src.source[start:end].decode("utf-8", errors="replace")
    lines = text.split(nl)
    lines[0] = _REGION_LINE_RE.sub(lambda m: f"{m.group(1)} {expected}", lines[0])
    if pair.end_name:
        lines[-1] = _ENDREGION_LINE_RE.sub(lambda m: f"{m.group(1)} {expected}", lines[-1])
    return CodeFixEdit(
        path=src.path,
        rule_id=diagnostic.rule_id,
        start_byte=start,
        end_byte=end,
        replacement=nl.join(lines),
        description=f"Rename region '{pair.name}' to '{expected}'",
    )
