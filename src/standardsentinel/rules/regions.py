from __future__ import annotations

from typing import TYPE_CHECKING

from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.syntax import (
    TYPE_DECLARATION_KINDS,
    RegionPair,
    all_types,
    body_members,
    body_of,
    enclosing_type,
    innermost_enclosing,
    is_generated,
    iter_nodes,
    member_kind,
    member_name,
    name_of,
    region_pairs,
)
from standardsentinel.engine.types import Diagnostic
from standardsentinel.rules.base import AnalyzerMeta, BaseAnalyzer
from standardsentinel.rules.catalog import CLASS_REGIONS, METHOD_REGIONS

if TYPE_CHECKING:
    from tree_sitter import Node


class MethodRegionAnalyzer(BaseAnalyzer):
    """
    Every method must sit inside a `#region` named after it.

    At most one diagnostic per method, in priority order: a marker pair
    crossing the method (BDD4003), no enclosing pair (BDD4001), then a wrongly
    named innermost pair (BDD4002).
    """

    meta = AnalyzerMeta(
        name="MethodRegions",
        section=METHOD_REGIONS,
        rule_ids=("BDD4001", "BDD4002", "BDD4003"),
        description="Methods are wrapped in a region named after the method.",
    )

    def check_file(self, src: SourceFile, ctx: ProjectContext) -> list[Diagnostic]:
        if src.tree is None:
            return []
        cfg = ctx.config.method_regions
        pairs = region_pairs(src.lines)
        out: list[Diagnostic] = []

        for node in iter_nodes(src.tree.root_node):
            if node.type != "method_declaration":
                continue
            owner = enclosing_type(node)
            if owner is not None and owner.type == "interface_declaration":
                continue
            if is_generated(src, node):
                continue

            name = name_of(src, node)
            expected = cfg.expected_name(name)
            first, last = node.start_point.row, node.end_point.row
            name_node = node.child_by_field_name("name")
            location = src.node_location(name_node if name_node is not None else node)
            properties = {"method": name, "expected": expected}

            crossing = next((p for p in pairs if p.crosses(first, last)), None)
            if crossing is not None:
                out.append(
                    self._diagnostic(
                        "BDD4003",
                        location=location,
                        values={"region": crossing.name, "method": name},
                        properties=properties,
                    )
                )
                continue

            enclosing = innermost_enclosing(pairs, first, last)
            if enclosing is None:
                out.append(
                    self._diagnostic(
                        "BDD4001",
                        location=location,
                        values={"method": name, "expected": expected},
                        properties=properties,
                    )
                )
            elif enclosing.name != expected:
                out.append(
                    self._diagnostic(
                        "BDD4002",
                        location=location,
                        values={"region": enclosing.name, "expected": expected},
                        properties={**properties, "region": enclosing.name},
                    )
                )
        return out


class ClassRegionAnalyzer(BaseAnalyzer):
    meta = AnalyzerMeta(
        name="ClassRegions",
        section=CLASS_REGIONS,
        rule_ids=("BDD4004",),
        description="Classes contain the required regions, each holding only its member kinds.",
    )

    def check_file(self, src: SourceFile, ctx: ProjectContext) -> list[Diagnostic]:
        cfg = ctx.config.class_regions
        pairs = region_pairs(src.lines)
        kinds_by_region = cfg.region_member_kinds
        types_are_mapped = any("type" in kinds for kinds in kinds_by_region.values())
        out: list[Diagnostic] = []

        for decl in all_types(src):
            if not decl.is_class:
                continue
            body = body_of(decl.node)
            if body is None:
                continue
            members = body_members(decl.node)
            own = _own_regions(pairs, body.start_point.row, body.end_point.row, members)
            present = {p.name for p in own}

            problems: list[str] = []
            missing = [r for r in cfg.required_regions if r not in present]
            if missing:
                problems.append(f"missing regions {', '.join(missing)}")

            for member in members:
                kind = member_kind(member)
                if kind == "type" and not types_are_mapped:
                    continue
                first, last = member.start_point.row, member.end_point.row
                chain = sorted((p for p in own if p.encloses(first, last)), key=lambda p: p.start_row, reverse=True)
                label = f"{kind} '{member_name(src, member)}'"
                known = next((p for p in chain if p.name in kinds_by_region), None)
                if known is not None:
                    if kind not in kinds_by_region[known.name]:
                        problems.append(f"{label} is in region '{known.name}'")
                    continue
                home = next((r for r in cfg.required_regions if kind in kinds_by_region.get(r, frozenset())), None)
                if home is not None:
                    problems.append(f"{label} should be in region '{home}'")

            if not problems:
                continue
            anchor = decl.name_node if decl.name_node is not None else decl.node
            out.append(
                self._diagnostic(
                    "BDD4004",
                    location=src.node_location(anchor),
                    values={"name": decl.name, "problems": "; ".join(problems)},
                    properties={"name": decl.name, "missing": ",".join(missing)},
                )
            )
        return out


def _own_regions(pairs: tuple[RegionPair, ...], first: int, last: int, members: list[Node]) -> list[RegionPair]:
    """Region pairs inside a class body, excluding those inside nested type bodies."""

    nested = [(m.start_point.row, m.end_point.row) for m in members if m.type in TYPE_DECLARATION_KINDS]
    return [
        p
        for p in pairs
        if p.within(first, last) and not any(p.within(n_first, n_last) for n_first, n_last in nested)
    ]
