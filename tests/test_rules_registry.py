from __future__ import annotations

from standardsentinel.rules.catalog import (
    THIS_QUALIFIER,
    all_descriptors,
    descriptor,
    descriptors_for_section,
    find_descriptor,
    is_valid_rule_id,
)
from standardsentinel.rules.registry import all_analyzers, analyzer_for_rule, analyzers_for_rules


def test_every_non_infrastructure_rule_has_one_analyzer() -> None:
    owned = [r for a in all_analyzers() for r in a.meta.rule_ids]
    assert len(owned) == len(set(owned))
    expected = {d.rule_id for d in all_descriptors() if d.category != "infrastructure"}
    assert set(owned) == expected


def test_analyzer_lookup() -> None:
    analyzer = analyzer_for_rule("bdd7002")
    assert analyzer is not None
    assert analyzer.meta.name == "ThisQualifier"
    assert analyzer_for_rule("BDD0001") is None
    names = [a.meta.name for a in analyzers_for_rules(["BDD4001", "BDD4004"])]
    assert names == ["ClassRegions", "MethodRegions"]


def test_catalog_lookup() -> None:
    assert descriptor(" bdd5001 ").name == "MissingDocumentation"
    assert find_descriptor("BDD1234") is None
    assert is_valid_rule_id("bdd3001")
    assert not is_valid_rule_id("BDD30")
    assert descriptor("BDD8001").format_message(names="A, B").startswith("File contains multiple classes (A, B)")


def test_descriptors_for_section() -> None:
    assert [d.rule_id for d in descriptors_for_section(THIS_QUALIFIER)] == ["BDD7001", "BDD7002", "BDD7003"]
    assert descriptors_for_section("unknown") == ()
