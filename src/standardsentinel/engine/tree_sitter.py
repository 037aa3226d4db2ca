from __future__ import annotations

import threading
from functools import lru_cache

import tree_sitter_c_sharp as tscsharp
from tree_sitter import Language, Node, Parser, Tree


class TreeSitterError(RuntimeError):
    """Raised when tree-sitter cannot load the C# grammar or parse source."""


@lru_cache(maxsize=1)
def csharp_language() -> Language:
    try:
        return Language(tscsharp.language())
    except (TypeError, ValueError) as exc:  # pragma: no cover (depends on installed grammar)
        raise TreeSitterError("tree-sitter C# grammar could not be loaded") from exc


_PARSER_LOCAL = threading.local()


def _get_parser() -> Parser:
    """
    Return a per-thread Parser instance.

    tree-sitter Parser objects are not thread-safe; sharing a single cached
    Parser across threads can lead to crashes or corrupted parse output.
    """

    parser: Parser | None = getattr(_PARSER_LOCAL, "parser", None)
    if parser is None:
        parser = Parser(csharp_language())
        _PARSER_LOCAL.parser = parser
    return parser


def parse(source: bytes) -> Tree:
    try:
        return _get_parser().parse(source)
    except (ValueError, TypeError, RuntimeError) as exc:
        raise TreeSitterError(f"tree-sitter failed to parse source: {exc}") from exc


def first_error_node(tree: Tree) -> Node | None:
    """Return the first ERROR or MISSING node in document order, if any."""

    root = tree.root_node
    if not root.has_error:
        return None
    stack: list[Node] = [root]
    while stack:
        node = stack.pop()
        if node.is_error or node.is_missing:
            return node
        if not node.has_error:
            continue
        stack.extend(reversed(node.children))
    return root
