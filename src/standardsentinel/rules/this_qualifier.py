from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from standardsentinel.config import ThisQualifierScope
from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.syntax import (
    TYPE_DECLARATION_KINDS,
    TypeDeclaration,
    all_types,
    body_members,
    declarator_names,
    modifiers,
    name_of,
)
from standardsentinel.engine.types import Diagnostic
from standardsentinel.rules.base import AnalyzerMeta, BaseAnalyzer
from standardsentinel.rules.catalog import THIS_QUALIFIER

if TYPE_CHECKING:
    from tree_sitter import Node

INSTANCE_TYPES = frozenset({"class_declaration", "struct_declaration", "record_declaration", "record_struct_declaration"})

RULE_BY_KIND = {"property": "BDD7001", "method": "BDD7002", "field": "BDD7003"}

# Wrappers that keep an identifier in a type position.
_TYPE_WRAPPERS = frozenset(
    {
        "generic_name",
        "qualified_name",
        "alias_qualified_name",
        "array_type",
        "nullable_type",
        "pointer_type",
        "ref_type",
        "scoped_type",
        "tuple_type",
        "tuple_element",
        "type_argument_list",
        "function_pointer_type",
    }
)
_TYPE_PARENTS = frozenset(
    {
        "base_list",
        "type_parameter_constraints_clause",
        "type_parameter_constraint",
        "type_constraint",
        "type_parameter",
        "type_parameter_list",
        "attribute",
        "typeof_expression",
        "sizeof_expression",
        "default_expression",
        "type_pattern",
        "explicit_interface_specifier",
    }
)
# Parents whose identifiers are names, never member references.
_NAME_PARENTS = frozenset({"name_colon", "name_equals", "goto_statement", "labeled_statement", "extern_alias_directive"})
_INITIALIZERS = frozenset({"initializer_expression", "with_initializer", "with_initializer_expression"})
_ANONYMOUS_INITIALIZERS = frozenset({"anonymous_object_creation_expression", "with_initializer"})
_STATIC_CAPABLE = frozenset({"local_function_statement", "lambda_expression", "anonymous_method_expression"})

_DECLARING = frozenset(
    {
        "variable_declarator",
        "parameter",
        "parameter_array",
        "implicit_parameter",
        "declaration_expression",
        "catch_declaration",
        "foreach_statement",
        "declaration_pattern",
        "var_pattern",
        "recursive_pattern",
        "single_variable_designation",
        "parenthesized_variable_designation",
        "from_clause",
        "let_clause",
        "join_clause",
        "join_into_clause",
        "query_continuation",
    }
)
# Nodes that open a local scope; their declarations are invisible outside them.
_SCOPES = frozenset(
    {
        "block",
        "switch_section",
        "switch_expression_arm",
        "lambda_expression",
        "anonymous_method_expression",
        "local_function_statement",
        "for_statement",
        "foreach_statement",
        "using_statement",
        "fixed_statement",
        "catch_clause",
        "query_expression",
        "accessor_declaration",
    }
)
_VALUE_ACCESSORS = frozenset({"set", "init", "add", "remove"})
# Parameters and local function names are visible anywhere in their scope.
_EVERYWHERE = -1


@dataclass(frozen=True, slots=True)
class InstanceMembers:
    properties: frozenset[str]
    methods: frozenset[str]
    fields: frozenset[str]
    excluded: frozenset[str]

    def kind_of(self, name: str) -> str | None:
        if name in self.excluded:
            return None
        if name in self.properties:
            return "property"
        if name in self.methods:
            return "method"
        if name in self.fields:
            return "field"
        return None

    def __bool__(self) -> bool:
        return bool(self.properties or self.methods or self.fields)


def _has_static(src: SourceFile, node: Node) -> bool:
    if "static" in modifiers(src, node):
        return True
    return any(child.type == "static" for child in node.children)


def _is_explicit_implementation(node: Node) -> bool:
    return any(child.type == "explicit_interface_specifier" for child in node.children)


def instance_members(src: SourceFile, fragments: list[TypeDeclaration]) -> InstanceMembers:
    """Collect instance properties, methods and fields declared across the given type fragments."""

    props: set[str] = set()
    methods: set[str] = set()
    fields: set[str] = set()
    static_names: set[str] = set()
    type_names: set[str] = {frag.name for frag in fragments}

    for frag in fragments:
        for member in body_members(frag.node):
            if member.type in TYPE_DECLARATION_KINDS:
                type_names.add(name_of(src, member))
                continue
            mods = modifiers(src, member)
            is_static = "static" in mods or "const" in mods
            if member.type == "property_declaration" and not _is_explicit_implementation(member):
                names = [name_of(src, member)]
                target = props
            elif member.type == "method_declaration" and not _is_explicit_implementation(member):
                names = [name_of(src, member)]
                target = methods
            elif member.type == "field_declaration":
                names = [name for name, _ in declarator_names(src, member)]
                target = fields
            else:
                continue
            if is_static:
                static_names.update(names)
            else:
                target.update(names)

    return InstanceMembers(
        properties=frozenset(props),
        methods=frozenset(methods),
        fields=frozenset(fields),
        excluded=frozenset(static_names | type_names),
    )


def instance_bodies(src: SourceFile, member: Node) -> list[Node]:
    """Nodes of a member that execute with an instance receiver."""

    if member.type not in {
        "method_declaration",
        "constructor_declaration",
        "destructor_declaration",
        "property_declaration",
        "indexer_declaration",
        "event_declaration",
    }:
        return []
    if _has_static(src, member):
        return []

    out: list[Node] = []
    body = member.child_by_field_name("body")
    if body is not None:
        out.append(body)
    value = member.child_by_field_name("value")
    if value is not None and value.type == "arrow_expression_clause":
        out.append(value)
    accessors = member.child_by_field_name("accessors")
    if accessors is None:
        accessors = next((c for c in member.named_children if c.type == "accessor_list"), None)
    if accessors is not None:
        out.append(accessors)
    if not out:
        out.extend(c for c in member.named_children if c.type in {"block", "arrow_expression_clause"})
    return out


def _declared_by(src: SourceFile, node: Node) -> list[tuple[str, int]]:
    """`(name, visible_from_byte)` pairs introduced by one declaring node."""

    if node.type not in _DECLARING:
        return []
    if node.type == "implicit_parameter":
        return [(src.node_text(node).strip(), _EVERYWHERE)]
    if node.type == "single_variable_designation":
        return [(src.node_text(node).strip(), node.start_byte)]
    if node.type == "parenthesized_variable_designation":
        return [(src.node_text(c), c.start_byte) for c in node.named_children if c.type == "identifier"]
    if node.type == "foreach_statement":
        left = node.child_by_field_name("left")
        if left is None or left.type != "identifier":
            return []
        right = node.child_by_field_name("right")
        return [(src.node_text(left), right.end_byte if right is not None else left.start_byte)]

    visible_from = _EVERYWHERE if node.type in {"parameter", "parameter_array"} else node.start_byte
    named = node.child_by_field_name("name")
    if named is not None:
        return [(src.node_text(named), visible_from)] if named.type == "identifier" else []
    type_node = node.child_by_field_name("type")
    ident = next((c for c in node.named_children if c.type == "identifier" and c != type_node), None)
    return [(src.node_text(ident), visible_from)] if ident is not None else []


def _accessor_keyword(src: SourceFile, node: Node) -> str:
    name = node.child_by_field_name("name")
    if name is not None:
        return src.node_text(name)
    return next((c.type for c in node.children if c.type in _VALUE_ACCESSORS), "")


def scope_declarations(src: SourceFile, scope: Node) -> list[tuple[str, int]]:
    """
    Locals a scope node declares for its own body.

    Nested scopes are not entered: their declarations only matter to
    identifiers inside them, which reach them as their own ancestors.
    """

    out = _declared_by(src, scope)
    if scope.type == "accessor_declaration" and _accessor_keyword(src, scope) in _VALUE_ACCESSORS:
        out.append(("value", _EVERYWHERE))
    if scope.type == "lambda_expression":
        params = scope.child_by_field_name("parameters")
        if params is not None and params.type == "identifier":
            out.append((src.node_text(params), _EVERYWHERE))

    stack = list(reversed(scope.children))
    while stack:
        node = stack.pop()
        if node.type in TYPE_DECLARATION_KINDS:
            continue
        if node.type in _SCOPES:
            if node.type == "local_function_statement":
                name = node.child_by_field_name("name")
                if name is not None:
                    out.append((src.node_text(name), _EVERYWHERE))
            continue
        out.extend(_declared_by(src, node))
        stack.extend(reversed(node.children))
    return out


class LocalScopes:
    """Resolves whether an identifier inside one member names a local in scope at that point."""

    def __init__(self, src: SourceFile, member: Node) -> None:
        self._src = src
        self._member = member
        self._cache: dict[tuple[int, int, str], list[tuple[str, int]]] = {}

    def _declarations(self, scope: Node) -> list[tuple[str, int]]:
        key = (scope.start_byte, scope.end_byte, scope.type)
        found = self._cache.get(key)
        if found is None:
            found = self._cache[key] = scope_declarations(self._src, scope)
        return found

    def is_local(self, ident: Node) -> bool:
        name = self._src.node_text(ident)
        node = ident.parent
        while node is not None:
            if node.type in _SCOPES or node == self._member:
                for declared, visible_from in self._declarations(node):
                    if declared == name and visible_from <= ident.start_byte:
                        return True
            if node == self._member:
                return False
            node = node.parent
        return False


def _in_type_position(node: Node) -> bool:
    current = node
    parent = node.parent
    saw_type_arguments = False
    while parent is not None and parent.type in _TYPE_WRAPPERS:
        if parent.type in {"qualified_name", "alias_qualified_name", "type_argument_list", "tuple_element"}:
            saw_type_arguments = True
        current, parent = parent, parent.parent
    if saw_type_arguments:
        return True
    if parent is None:
        return False
    if parent.type in _TYPE_PARENTS:
        return True
    for field_name in ("type", "returns"):
        if parent.child_by_field_name(field_name) == current:
            return True
    if parent.type in {"as_expression", "is_expression"} and parent.child_by_field_name("right") == current:
        return True
    return False


def _inside_name_operator(node: Node, stop: Node) -> bool:
    current = node.parent
    while current is not None and current != stop:
        if current.type in {"typeof_expression", "sizeof_expression"}:
            return True
        if current.type == "invocation_expression":
            function = current.child_by_field_name("function")
            if function is not None and function.type == "identifier" and function.text == b"nameof":
                return True
        current = current.parent
    return False


def is_unqualified_reference(node: Node, stop: Node) -> bool:
    """
    True when an identifier is a bare reference rather than a name, a type,
    a qualified member access or an initializer target.
    """

    parent = node.parent
    if parent is None:
        return False
    if parent.type.startswith("preproc") or parent.type in _NAME_PARENTS:
        return False
    if parent.child_by_field_name("name") == node:
        return False
    if parent.type == "assignment_expression" and parent.child_by_field_name("left") == node:
        grand = parent.parent
        if grand is not None and grand.type in _INITIALIZERS:
            return False
    if parent.type in _ANONYMOUS_INITIALIZERS:
        sibling = node.next_sibling
        if sibling is not None and sibling.type == "=":
            return False
    if _in_type_position(node):
        return False
    return not _inside_name_operator(node, stop)


def _walk_instance_scope(src: SourceFile, root: Node) -> Iterator[Node]:
    stack: list[Node] = [root]
    while stack:
        node = stack.pop()
        if node != root:
            if node.type in TYPE_DECLARATION_KINDS:
                continue
            if node.type in _STATIC_CAPABLE and _has_static(src, node):
                continue
        if node.type == "identifier":
            yield node
            continue
        stack.extend(reversed(node.children))


def _scope_allows(scope: ThisQualifierScope, kind: str) -> bool:
    if kind == "property":
        return scope.properties
    if kind == "method":
        return scope.methods
    return scope.fields


def _fragment_key(decl: TypeDeclaration) -> tuple[str, int, str]:
    parent_start = decl.parent.node.start_byte if decl.parent is not None else -1
    return (decl.namespace, parent_start, decl.name)


class ThisQualifierAnalyzer(BaseAnalyzer):
    meta = AnalyzerMeta(
        name="ThisQualifier",
        section=THIS_QUALIFIER,
        rule_ids=("BDD7001", "BDD7002", "BDD7003"),
        description="Instance members of the enclosing type are accessed through `this.`.",
    )

    def check_file(self, src: SourceFile, ctx: ProjectContext) -> list[Diagnostic]:
        scope = ctx.config.this_qualifier.scope
        types = [d for d in all_types(src) if d.node.type in INSTANCE_TYPES]

        fragments: dict[tuple[str, int, str], list[TypeDeclaration]] = {}
        for decl in types:
            fragments.setdefault(_fragment_key(decl), []).append(decl)

        out: list[Diagnostic] = []
        for decl in types:
            members = instance_members(src, fragments[_fragment_key(decl)])
            if not members:
                continue
            for member in body_members(decl.node):
                bodies = instance_bodies(src, member)
                if not bodies:
                    continue
                scopes = LocalScopes(src, member)
                for body in bodies:
                    for ident in _walk_instance_scope(src, body):
                        name = src.node_text(ident)
                        kind = members.kind_of(name)
                        if kind is None or not _scope_allows(scope, kind):
                            continue
                        if not is_unqualified_reference(ident, member) or scopes.is_local(ident):
                            continue
                        out.append(
                            self._diagnostic(
                                RULE_BY_KIND[kind],
                                location=src.node_location(ident),
                                values={"name": name},
                                properties={"member": name, "member_kind": kind},
                            )
                        )
        return out
