from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest


def test_tree_sitter_parser_is_thread_local(monkeypatch) -> None:
    import standardsentinel.engine.tree_sitter as ts

    class DummyParser:
        def __init__(self, language: object) -> None:
            self.language = language

        def parse(self, _source: bytes) -> int:
            return id(self)

    monkeypatch.setattr(ts, "Parser", DummyParser)
    monkeypatch.setattr(ts, "csharp_language", lambda: object())
    monkeypatch.setattr(ts, "_PARSER_LOCAL", threading.local())

    # Same thread should reuse the same Parser instance.
    assert ts.parse(b"class A {}") == ts.parse(b"class B {}")

    barrier = threading.Barrier(2)

    def worker() -> int:
        barrier.wait()
        return int(ts.parse(b"class C {}"))

    with ThreadPoolExecutor(max_workers=2) as executor:
        a, b = list(executor.map(lambda _: worker(), range(2)))

    assert a != b


def test_parser_failures_become_tree_sitter_errors(monkeypatch) -> None:
    import standardsentinel.engine.tree_sitter as ts

    class FailingParser:
        def __init__(self, language: object) -> None:
            self.language = language

        def parse(self, _source: bytes) -> object:
            raise ValueError("bad input")

    monkeypatch.setattr(ts, "Parser", FailingParser)
    monkeypatch.setattr(ts, "csharp_language", lambda: object())
    monkeypatch.setattr(ts, "_PARSER_LOCAL", threading.local())

    with pytest.raises(ts.TreeSitterError):
        ts.parse(b"class A {}")


def test_real_grammar_parses_csharp() -> None:
    from standardsentinel.engine.tree_sitter import first_error_node, parse

    tree = parse(b"namespace N { public class A { public void M() { } } }")
    assert tree.root_node.type == "compilation_unit"
    assert first_error_node(tree) is None
    assert first_error_node(parse(b"public class A { void M( { }")) is not None
