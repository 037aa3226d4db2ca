from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.syntax import (
    MEMBER_KINDS,
    TYPE_DECLARATION_KINDS,
    all_types,
    body_members,
    doc_comment_for,
    enclosing_type,
    is_generated,
    iter_nodes,
    member_name,
    modifiers,
    parameter_names,
    returns_value,
)
from standardsentinel.engine.types import Diagnostic
from standardsentinel.rules.base import AnalyzerMeta, BaseAnalyzer
from standardsentinel.rules.catalog import XML_DOCUMENTATION

if TYPE_CHECKING:
    from tree_sitter import Node

_SUMMARY_RE = re.compile(r"<summary\s*>(.*?)</summary\s*>", re.DOTALL | re.IGNORECASE)
_PARAM_RE = re.compile(r"<param\s+name\s*=\s*[\"']([^\"']*)[\"']", re.IGNORECASE)
_RETURNS_RE = re.compile(r"<returns\b", re.IGNORECASE)
_EXCEPTION_RE = re.compile(r"<exception\s+cref\s*=\s*[\"']([^\"']*)[\"']", re.IGNORECASE)
_INHERITDOC_RE = re.compile(r"<inheritdoc\b", re.IGNORECASE)

KIND_LABELS = {
    **TYPE_DECLARATION_KINDS,
    "method_declaration": "method",
    "constructor_declaration": "constructor",
    "destructor_declaration": "destructor",
    "property_declaration": "property",
    "indexer_declaration": "indexer",
    "event_declaration": "event",
    "event_field_declaration": "event",
    "field_declaration": "field",
    "operator_declaration": "operator",
    "conversion_operator_declaration": "operator",
}

PARAMETERIZED_TYPES = frozenset(
    {
        "method_declaration",
        "constructor_declaration",
        "indexer_declaration",
        "operator_declaration",
        "conversion_operator_declaration",
        "delegate_declaration",
    }
)
THROWING_TYPES = PARAMETERIZED_TYPES - {"delegate_declaration"} | {"property_declaration", "event_declaration"}

_NON_PUBLIC = frozenset({"private", "protected", "internal"})


@dataclass(frozen=True, slots=True)
class ParsedDoc:
    has_summary: bool
    params: tuple[str, ...]
    has_returns: bool
    exceptions: tuple[str, ...]
    inherits: bool


def parse_doc(text: str) -> ParsedDoc:
    summary = _SUMMARY_RE.search(text)
    return ParsedDoc(
        has_summary=summary is not None and bool(summary.group(1).strip()),
        params=tuple(m.group(1).strip() for m in _PARAM_RE.finditer(text)),
        has_returns=_RETURNS_RE.search(text) is not None,
        exceptions=tuple(simple_type_name(m.group(1)) for m in _EXCEPTION_RE.finditer(text)),
        inherits=_INHERITDOC_RE.search(text) is not None,
    )


def simple_type_name(raw: str) -> str:
    """`T:System.ArgumentNullException` -> `ArgumentNullException`."""

    name = raw.strip()
    if len(name) > 2 and name[1] == ":":
        name = name[2:]
    name = name.split("<", 1)[0].split("{", 1)[0]
    return name.rsplit(".", 1)[-1].strip()


def is_public(src: SourceFile, node: Node) -> bool:
    mods = modifiers(src, node)
    if "public" in mods:
        return True
    owner = enclosing_type(node)
    if owner is not None and owner.type == "interface_declaration":
        return not (mods & _NON_PUBLIC)
    return False


def documentable_declarations(src: SourceFile) -> list[Node]:
    """Types and their direct members, in document order."""

    out: list[Node] = []
    for decl in all_types(src):
        out.append(decl.node)
        out.extend(m for m in body_members(decl.node) if m.type in MEMBER_KINDS)
    out.sort(key=lambda n: n.start_byte)
    return out


def thrown_exception_types(src: SourceFile, node: Node) -> list[str]:
    """
    Exception types constructed and thrown directly (`throw new T(...)`).

    Best-effort: rethrows, thrown variables and factory calls are not resolved.
    """

    seen: list[str] = []
    for child in iter_nodes(node, prune=TYPE_DECLARATION_KINDS):
        if child.type not in {"throw_statement", "throw_expression"}:
            continue
        expr = next((c for c in child.named_children if c.type != "comment"), None)
        if expr is None or expr.type != "object_creation_expression":
            continue
        type_node = expr.child_by_field_name("type")
        if type_node is None:
            continue
        name = simple_type_name(src.node_text(type_node))
        if name and name not in seen:
            seen.append(name)
    return seen


def declaration_anchor(node: Node) -> Node:
    name = node.child_by_field_name("name")
    if name is not None:
        return name
    if node.type in {"field_declaration", "event_field_declaration"}:
        for child in node.named_children:
            if child.type == "variable_declaration":
                declarator = next((c for c in child.named_children if c.type == "variable_declarator"), None)
                if declarator is not None:
                    return declarator
    if node.type == "operator_declaration":
        op = node.child_by_field_name("operator")
        if op is not None:
            return op
    return node


class DocumentationAnalyzer(BaseAnalyzer):
    meta = AnalyzerMeta(
        name="XmlDocumentation",
        section=XML_DOCUMENTATION,
        rule_ids=("BDD5001", "BDD5002", "BDD5003", "BDD5004"),
        description="Public types and members carry complete XML documentation.",
    )

    def check_file(self, src: SourceFile, ctx: ProjectContext) -> list[Diagnostic]:
        cfg = ctx.config.xml_documentation
        out: list[Diagnostic] = []
        for node in documentable_declarations(src):
            if not is_public(src, node) or is_generated(src, node):
                continue
            out.extend(self._check_declaration(src, node, require_exceptions=cfg.require_exception_documentation))
        return out

    def _check_declaration(self, src: SourceFile, node: Node, *, require_exceptions: bool) -> list[Diagnostic]:
        kind = KIND_LABELS[node.type]
        name = member_name(src, node)
        location = src.node_location(declaration_anchor(node))
        properties = {"member": name, "kind": kind}

        doc = doc_comment_for(src, node)
        if doc is None:
            return [self._diagnostic("BDD5001", location=location, values={"kind": kind, "name": name}, properties=properties)]

        parsed = parse_doc(doc.text)
        if parsed.inherits:
            return []

        out: list[Diagnostic] = []
        declared = parameter_names(src, node) if node.type in PARAMETERIZED_TYPES else []
        missing: list[str] = []
        if not parsed.has_summary:
            missing.append("summary")
        missing.extend(f"parameter '{p}'" for p in declared if p not in parsed.params)
        if returns_value(src, node) and not parsed.has_returns:
            missing.append("returns")
        if missing:
            out.append(
                self._diagnostic(
                    "BDD5002",
                    location=location,
                    values={"name": name, "missing": ", ".join(missing)},
                    properties=properties,
                )
            )

        documented = list(parsed.params)
        stale = [p for p in documented if p not in declared]
        all_declared_documented = all(p in documented for p in declared)
        if stale or (all_declared_documented and documented != declared):
            out.append(
                self._diagnostic(
                    "BDD5004",
                    location=location,
                    values={
                        "name": name,
                        "documented": ", ".join(documented) or "none",
                        "declared": ", ".join(declared) or "none",
                    },
                    properties=properties,
                )
            )

        if require_exceptions and node.type in THROWING_TYPES:
            undocumented = [t for t in thrown_exception_types(src, node) if t not in parsed.exceptions]
            if undocumented:
                out.append(
                    self._diagnostic(
                        "BDD5003",
                        location=location,
                        values={"name": name, "exceptions": ", ".join(undocumented)},
                        properties={**properties, "exceptions": ",".join(undocumented)},
                    )
                )
        return out
