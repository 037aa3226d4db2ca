from __future__ import annotations

import re
from typing import TYPE_CHECKING

from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.syntax import (
    doc_comment_for,
    enclosing_of_kind,
    line_indent,
    member_name,
    newline_for,
    parameter_names,
    returns_value,
    row_span,
)
from standardsentinel.engine.types import CodeFixEdit, Diagnostic
from standardsentinel.fixes.base import diagnostic_node
from standardsentinel.rules.documentation import (
    KIND_LABELS,
    PARAMETERIZED_TYPES,
    THROWING_TYPES,
    simple_type_name,
    thrown_exception_types,
)

if TYPE_CHECKING:
    from tree_sitter import Node

_SUMMARY_RE = re.compile(r"<summary\s*>(.*?)</summary\s*>", re.DOTALL | re.IGNORECASE)
_RETURNS_RE = re.compile(r"<returns\s*>(.*?)</returns\s*>", re.DOTALL | re.IGNORECASE)
_RETURNS_EMPTY_RE = re.compile(r"<returns\s*/>", re.IGNORECASE)
_PARAM_BLOCK_RE = re.compile(
    r"<param\s+name\s*=\s*[\"']([^\"']*)[\"']\s*(?:/>|>(.*?)</param\s*>)",
    re.DOTALL | re.IGNORECASE,
)
_EXCEPTION_BLOCK_RE = re.compile(
    r"<exception\s+cref\s*=\s*[\"']([^\"']*)[\"']\s*(?:/>|>(.*?)</exception\s*>)",
    re.DOTALL | re.IGNORECASE,
)

EXCEPTION_PLACEHOLDER = "TODO: Add description for when this exception is thrown."


def _declaration_for(src: SourceFile, diagnostic: Diagnostic) -> Node | None:
    node = diagnostic_node(src, diagnostic)
    if node is None:
        return None
    return enclosing_of_kind(node, KIND_LABELS)


def _collapse(text: str) -> str:
    return " ".join(text.split())


def _summary_lines(inner: str) -> list[str]:
    lines = [line.strip() for line in inner.strip().split("\n")]
    return [line for line in lines if line]


def _exception_types(src: SourceFile, node: Node, project: ProjectContext) -> list[str]:
    if not project.config.xml_documentation.require_exception_documentation or node.type not in THROWING_TYPES:
        return []
    return thrown_exception_types(src, node)


def render_documentation(
    *,
    summary: list[str],
    params: list[tuple[str, str]],
    returns: str | None,
    exceptions: list[tuple[str, str]],
    extra: list[str],
) -> list[str]:
    """Render documentation content lines (without the `///` prefix)."""

    out = ["<summary>", *summary, "</summary>"]
    out.extend(f'<param name="{name}">{text}</param>' for name, text in params)
    if returns is not None:
        out.append(f"<returns>{returns}</returns>")
    out.extend(f'<exception cref="{cref}">{text}</exception>' for cref, text in exceptions)
    out.extend(extra)
    return out


def _skeleton(src: SourceFile, node: Node, project: ProjectContext) -> list[str]:
    name = member_name(src, node)
    declared = parameter_names(src, node) if node.type in PARAMETERIZED_TYPES else []
    return render_documentation(
        summary=[f"TODO: Add summary for {name}."],
        params=[(p, f"TODO: Add description for {p} parameter.") for p in declared],
        returns="TODO: Add description for return value." if returns_value(src, node) else None,
        exceptions=[(t, EXCEPTION_PLACEHOLDER) for t in _exception_types(src, node, project)],
        extra=[],
    )


def _completed(src: SourceFile, node: Node, project: ProjectContext, text: str) -> list[str]:
    name = member_name(src, node)
    remaining = text

    summary_match = _SUMMARY_RE.search(text)
    summary = _summary_lines(summary_match.group(1)) if summary_match is not None else []
    if not summary:
        summary = [f"TODO: Add summary for {name}."]
    remaining = _SUMMARY_RE.sub("", remaining)

    existing_params: dict[str, str] = {}
    documented_order: list[str] = []
    for match in _PARAM_BLOCK_RE.finditer(text):
        param = match.group(1).strip()
        existing_params.setdefault(param, _collapse(match.group(2) or ""))
        documented_order.append(param)
    remaining = _PARAM_BLOCK_RE.sub("", remaining)

    declared = parameter_names(src, node) if node.type in PARAMETERIZED_TYPES else []
    params = [(p, existing_params.get(p) or f"TODO: Add description for {p} parameter.") for p in declared]
    # Documented names the declaration no longer has are kept, after the declared ones.
    params.extend((p, existing_params[p]) for p in dict.fromkeys(documented_order) if p not in declared)

    returns_match = _RETURNS_RE.search(text)
    returns: str | None = _collapse(returns_match.group(1)) if returns_match is not None else None
    if returns_match is None and _RETURNS_EMPTY_RE.search(text) is not None:
        returns = ""
    if returns is None and returns_value(src, node):
        returns = "TODO: Add description for return value."
    remaining = _RETURNS_EMPTY_RE.sub("", _RETURNS_RE.sub("", remaining))

    exceptions = [(m.group(1).strip(), _collapse(m.group(2) or "")) for m in _EXCEPTION_BLOCK_RE.finditer(text)]
    known = {simple_type_name(cref) for cref, _ in exceptions}
    exceptions.extend((t, EXCEPTION_PLACEHOLDER) for t in _exception_types(src, node, project) if t not in known)
    remaining = _EXCEPTION_BLOCK_RE.sub("", remaining)

    extra = [line.strip() for line in remaining.split("\n") if line.strip()]
    return render_documentation(summary=summary, params=params, returns=returns, exceptions=exceptions, extra=extra)


def _prefixed(lines: list[str], indent: str) -> list[str]:
    return [f"{indent}/// {line}" for line in lines]


def add_documentation(src: SourceFile, diagnostic: Diagnostic, project: ProjectContext) -> CodeFixEdit | None:
    """Insert a documentation skeleton above an undocumented declaration."""

    node = _declaration_for(src, diagnostic)
    if node is None or doc_comment_for(src, node) is not None:
        return None

    row = node.start_point.row
    indent = line_indent(src.lines[row])
    nl = newline_for(src.source)
    start, _ = row_span(src.source, row, row)
    block = nl.join(_prefixed(_skeleton(src, node, project), indent)) + nl
    return CodeFixEdit(
        path=src.path,
        rule_id=diagnostic.rule_id,
        start_byte=start,
        end_byte=start,
        replacement=block,
        description=f"Add XML documentation for '{member_name(src, node)}'",
    )


def complete_documentation(src: SourceFile, diagnostic: Diagnostic, project: ProjectContext) -> CodeFixEdit | None:
    """Rewrite an existing documentation block with its missing parts added."""

    node = _declaration_for(src, diagnostic)
    if node is None:
        return None
    doc = doc_comment_for(src, node)
    if doc is None:
        return None

    indent = line_indent(src.lines[doc.start_row])
    nl = newline_for(src.source)
    start, end = row_span(src.source, doc.start_row, doc.end_row)
    replacement = nl.join(_prefixed(_completed(src, node, project, doc.text), indent))
    if replacement == src.source[start:end].decode("utf-8", errors="replace"):
        return None
    return CodeFixEdit(
        path=src.path,
        rule_id=diagnostic.rule_id,
        start_byte=start,
        end_byte=end,
        replacement=replacement,
        description=f"Complete XML documentation for '{member_name(src, node)}'",
    )
