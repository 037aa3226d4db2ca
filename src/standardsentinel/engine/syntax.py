"""
Structural helpers over the tree-sitter C# grammar.

Analyzers and fix providers share these so that "what is a top-level type",
"which members does a class body declare" and "which region markers enclose a
line" have exactly one definition.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tree_sitter import Node

    from standardsentinel.engine.context import SourceFile

TYPE_DECLARATION_KINDS = {
    "class_declaration": "class",
    "interface_declaration": "interface",
    "struct_declaration": "struct",
    "record_declaration": "record",
    "record_struct_declaration": "record",
    "enum_declaration": "enum",
    "delegate_declaration": "delegate",
}

MEMBER_KINDS = {
    "field_declaration": "field",
    "event_field_declaration": "event",
    "event_declaration": "event",
    "property_declaration": "property",
    "indexer_declaration": "indexer",
    "constructor_declaration": "constructor",
    "destructor_declaration": "destructor",
    "method_declaration": "method",
    "operator_declaration": "operator",
    "conversion_operator_declaration": "operator",
}

NAMESPACE_TYPES = frozenset({"namespace_declaration", "file_scoped_namespace_declaration"})
PARAMETER_TYPES = frozenset({"parameter", "parameter_array"})
GENERATED_ATTRIBUTES = frozenset({"CompilerGenerated", "GeneratedCode"})

_REGION_RE = re.compile(r"^\s*#\s*region\b(.*)$")
_ENDREGION_RE = re.compile(r"^\s*#\s*endregion\b(.*)$")


@dataclass(frozen=True, slots=True)
class TypeDeclaration:
    node: Node
    kind: str  # interface | abstract_class | class | struct | record | enum | delegate
    name: str
    name_node: Node | None
    namespace: str
    arity: int
    modifiers: frozenset[str]
    parent: TypeDeclaration | None = None

    @property
    def is_partial(self) -> bool:
        return "partial" in self.modifiers

    @property
    def is_class(self) -> bool:
        return self.node.type == "class_declaration"


@dataclass(frozen=True, slots=True)
class RegionPair:
    name: str
    start_row: int  # 0-based row of `#region`
    end_row: int  # 0-based row of `#endregion`
    end_name: str = ""

    def encloses(self, first_row: int, last_row: int) -> bool:
        return self.start_row < first_row and self.end_row > last_row

    def crosses(self, first_row: int, last_row: int) -> bool:
        start_inside = first_row <= self.start_row <= last_row
        end_inside = first_row <= self.end_row <= last_row
        return start_inside != end_inside

    def within(self, first_row: int, last_row: int) -> bool:
        return first_row <= self.start_row and self.end_row <= last_row


@dataclass(frozen=True, slots=True)
class DocComment:
    start_row: int
    end_row: int
    text: str
    style: str = "line"  # line (`///`) | block (`/** */`)


def iter_nodes(node: Node, *, prune: Iterable[str] = ()) -> Iterator[Node]:
    """
    Yield `node` and its descendants in document order.

    Descendants whose type is in `prune` are yielded but not descended into.
    """

    pruned = frozenset(prune)
    stack: list[Node] = [node]
    first = True
    while stack:
        current = stack.pop()
        yield current
        if not first and current.type in pruned:
            continue
        first = False
        stack.extend(reversed(current.children))


def modifiers(src: SourceFile, node: Node) -> frozenset[str]:
    out: set[str] = set()
    for child in node.children:
        if child.type == "modifier":
            out.add(src.node_text(child).strip())
    return frozenset(out)


def name_of(src: SourceFile, node: Node) -> str:
    name = node.child_by_field_name("name")
    if name is not None:
        return src.node_text(name)
    for child in node.named_children:
        if child.type == "identifier":
            return src.node_text(child)
    return ""


def type_parameter_count(node: Node) -> int:
    params = node.child_by_field_name("type_parameters")
    if params is None:
        for child in node.named_children:
            if child.type == "type_parameter_list":
                params = child
                break
    if params is None:
        return 0
    return sum(1 for child in params.named_children if child.type == "type_parameter")


def declaration_kind(src: SourceFile, node: Node) -> str:
    kind = TYPE_DECLARATION_KINDS[node.type]
    if kind == "class" and "abstract" in modifiers(src, node):
        return "abstract_class"
    return kind


def _type_declaration(src: SourceFile, node: Node, namespace: str, parent: TypeDeclaration | None) -> TypeDeclaration:
    name_node = node.child_by_field_name("name")
    return TypeDeclaration(
        node=node,
        kind=declaration_kind(src, node),
        name=name_of(src, node),
        name_node=name_node,
        namespace=namespace,
        arity=type_parameter_count(node),
        modifiers=modifiers(src, node),
        parent=parent,
    )


def _join_namespace(outer: str, inner: str) -> str:
    inner = "".join(inner.split())
    return f"{outer}.{inner}" if outer else inner


def top_level_types(src: SourceFile) -> list[TypeDeclaration]:
    """Type declarations directly under the compilation unit or a namespace."""

    if src.tree is None:
        return []
    out: list[TypeDeclaration] = []
    _collect_top_level(src, src.tree.root_node, "", out)
    return out


def _collect_top_level(src: SourceFile, container: Node, namespace: str, out: list[TypeDeclaration]) -> None:
    current = namespace
    for child in container.named_children:
        if child.type == "namespace_declaration":
            name = child.child_by_field_name("name")
            nested = _join_namespace(namespace, src.node_text(name) if name is not None else "")
            body = child.child_by_field_name("body")
            if body is not None:
                _collect_top_level(src, body, nested, out)
        elif child.type == "file_scoped_namespace_declaration":
            # Older grammars nest the following declarations; newer ones make them siblings.
            name = child.child_by_field_name("name")
            current = _join_namespace(namespace, src.node_text(name) if name is not None else "")
            _collect_top_level(src, child, current, out)
        elif child.type in TYPE_DECLARATION_KINDS:
            out.append(_type_declaration(src, child, current, None))


def all_types(src: SourceFile) -> list[TypeDeclaration]:
    """Every type declaration in the file, nested ones included, in document order."""

    out: list[TypeDeclaration] = []
    pending = top_level_types(src)
    while pending:
        decl = pending.pop()
        out.append(decl)
        for member in body_members(decl.node):
            if member.type in TYPE_DECLARATION_KINDS:
                pending.append(_type_declaration(src, member, decl.namespace, decl))
    out.sort(key=lambda d: d.node.start_byte)
    return out


def body_of(node: Node) -> Node | None:
    body = node.child_by_field_name("body")
    if body is not None:
        return body
    for child in node.named_children:
        if child.type == "declaration_list":
            return child
    return None


def body_members(node: Node) -> list[Node]:
    body = body_of(node)
    if body is None:
        return []
    return [c for c in body.named_children if c.type in MEMBER_KINDS or c.type in TYPE_DECLARATION_KINDS]


def member_kind(node: Node) -> str:
    if node.type in TYPE_DECLARATION_KINDS:
        return "type"
    return MEMBER_KINDS.get(node.type, node.type)


def declarator_names(src: SourceFile, node: Node) -> list[tuple[str, Node]]:
    """Names declared by a field / event-field declaration, with their identifier nodes."""

    out: list[tuple[str, Node]] = []
    for child in node.named_children:
        if child.type != "variable_declaration":
            continue
        for declarator in child.named_children:
            if declarator.type != "variable_declarator":
                continue
            ident = declarator.child_by_field_name("name")
            if ident is None:
                ident = next((c for c in declarator.named_children if c.type == "identifier"), None)
            if ident is not None:
                out.append((src.node_text(ident), ident))
    return out


def member_name(src: SourceFile, node: Node) -> str:
    if node.type in {"field_declaration", "event_field_declaration"}:
        return ", ".join(name for name, _ in declarator_names(src, node))
    if node.type == "indexer_declaration":
        return "this[]"
    if node.type == "operator_declaration":
        op = node.child_by_field_name("operator")
        return f"operator {src.node_text(op)}" if op is not None else "operator"
    if node.type == "conversion_operator_declaration":
        target = node.child_by_field_name("type")
        return f"operator {src.node_text(target)}" if target is not None else "operator"
    if node.type == "destructor_declaration":
        return f"~{name_of(src, node)}"
    return name_of(src, node)


def parameter_list(node: Node) -> Node | None:
    params = node.child_by_field_name("parameters")
    if params is not None:
        return params
    for child in node.named_children:
        if child.type in {"parameter_list", "bracketed_parameter_list"}:
            return child
    return None


def parameter_names(src: SourceFile, node: Node) -> list[str]:
    params = parameter_list(node)
    if params is None:
        return []
    names: list[str] = []
    for child in params.named_children:
        if child.type not in PARAMETER_TYPES:
            continue
        name = child.child_by_field_name("name")
        if name is None:
            idents = [c for c in child.named_children if c.type == "identifier"]
            name = idents[-1] if idents else None
        if name is not None:
            names.append(src.node_text(name))
    return names


def return_type(node: Node) -> Node | None:
    returns = node.child_by_field_name("returns")
    if returns is not None:
        return returns
    return node.child_by_field_name("type")


def returns_value(src: SourceFile, node: Node) -> bool:
    """True for method-like members whose declared return type is not void."""

    if node.type in {"operator_declaration", "conversion_operator_declaration"}:
        return True
    if node.type not in {"method_declaration", "delegate_declaration", "local_function_statement"}:
        return False
    returns = return_type(node)
    if returns is None:
        return False
    return src.node_text(returns).strip() != "void"


def attribute_names(src: SourceFile, node: Node) -> list[str]:
    names: list[str] = []
    for child in node.children:
        if child.type != "attribute_list":
            continue
        for attr in child.named_children:
            if attr.type != "attribute":
                continue
            name = attr.child_by_field_name("name")
            raw = src.node_text(name) if name is not None else src.node_text(attr).split("(", 1)[0]
            simple = raw.strip().rsplit(".", 1)[-1].split("<", 1)[0]
            if simple.endswith("Attribute") and simple != "Attribute":
                simple = simple[: -len("Attribute")]
            names.append(simple)
    return names


def is_generated(src: SourceFile, node: Node) -> bool:
    return any(name in GENERATED_ATTRIBUTES for name in attribute_names(src, node))


def enclosing_type(node: Node) -> Node | None:
    current = node.parent
    while current is not None:
        if current.type in TYPE_DECLARATION_KINDS:
            return current
        current = current.parent
    return None


def enclosing_namespace(node: Node) -> Node | None:
    current = node
    while current.parent is not None:
        current = current.parent
        if current.type in NAMESPACE_TYPES:
            return current
    # File-scoped namespaces may be siblings of the declarations they cover.
    for child in current.named_children:
        if child.type == "file_scoped_namespace_declaration":
            return child
    return None


def region_pairs(lines: Iterable[str]) -> tuple[RegionPair, ...]:
    """
    Pair `#region` / `#endregion` lines with a marker stack.

    A stray `#endregion` with an empty stack and any `#region` left open at end
    of file are ignored.
    """

    stack: list[tuple[int, str]] = []
    pairs: list[RegionPair] = []
    for row, line in enumerate(lines):
        opened = _REGION_RE.match(line)
        if opened is not None:
            stack.append((row, opened.group(1).strip()))
            continue
        closed = _ENDREGION_RE.match(line)
        if closed is not None and stack:
            start_row, name = stack.pop()
            pairs.append(RegionPair(name=name, start_row=start_row, end_row=row, end_name=closed.group(1).strip()))
    pairs.sort(key=lambda p: p.start_row)
    return tuple(pairs)


def innermost_enclosing(pairs: Iterable[RegionPair], first_row: int, last_row: int) -> RegionPair | None:
    best: RegionPair | None = None
    for pair in pairs:
        if pair.encloses(first_row, last_row) and (best is None or pair.start_row > best.start_row):
            best = pair
    return best


def doc_comment_for(src: SourceFile, node: Node) -> DocComment | None:
    """
    Return the documentation comment immediately above a declaration.

    Attributes belong to the declaration node, so the comment sits directly
    above the declaration's first row.
    """

    lines = src.lines
    end = node.start_point.row - 1
    if end < 0:
        return None

    row = end
    while row >= 0 and _is_doc_line(lines[row]):
        row -= 1
    if row < end:
        start = row + 1
        body = "\n".join(lines[r].lstrip()[3:] for r in range(start, end + 1))
        return DocComment(start_row=start, end_row=end, text=body, style="line")

    if lines[end].rstrip().endswith("*/"):
        row = end
        while row >= 0 and "/*" not in lines[row]:
            row -= 1
        if row >= 0 and lines[row].lstrip().startswith("/**") and not lines[row].lstrip().startswith("/**/"):
            raw = "\n".join(lines[row : end + 1])
            inner = raw.split("/**", 1)[1].rsplit("*/", 1)[0]
            cleaned = "\n".join(line.strip().lstrip("*") for line in inner.split("\n"))
            return DocComment(start_row=row, end_row=end, text=cleaned, style="block")
    return None


def _is_doc_line(line: str) -> bool:
    stripped = line.lstrip()
    return stripped.startswith("///") and not stripped.startswith("////")


def line_indent(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def row_offsets(source: bytes) -> list[int]:
    """Byte offset of the start of every row."""

    offsets = [0]
    pos = source.find(b"\n")
    while pos != -1:
        offsets.append(pos + 1)
        pos = source.find(b"\n", pos + 1)
    return offsets


def row_span(source: bytes, first_row: int, last_row: int) -> tuple[int, int]:
    """Byte range covering rows `first_row..last_row`, without the final line break."""

    offsets = row_offsets(source)
    start = offsets[first_row]
    end = offsets[last_row + 1] - 1 if last_row + 1 < len(offsets) else len(source)
    if end > start and source[end - 1 : end] == b"\r":
        end -= 1
    return start, end


def newline_for(source: bytes) -> str:
    return "\r\n" if b"\r\n" in source else "\n"


def enclosing_of_kind(node: Node, kinds: Iterable[str]) -> Node | None:
    """`node` itself or its nearest ancestor whose type is in `kinds`."""

    wanted = frozenset(kinds)
    current: Node | None = node
    while current is not None:
        if current.type in wanted:
            return current
        current = current.parent
    return None
