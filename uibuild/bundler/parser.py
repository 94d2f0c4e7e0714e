"""Tree-sitter parsing for script modules."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

from ..errors import TransformError

_LANGUAGES: Dict[str, Language] = {
    "typescript": Language(tree_sitter_typescript.language_typescript()),
    "tsx": Language(tree_sitter_typescript.language_tsx()),
}

_TSX_SUFFIXES = {".tsx", ".jsx"}


def dialect_for(path: Path | str, lang: Optional[str] = None) -> str:
    """Pick the grammar for a file suffix or an SFC ``lang`` attribute."""
    if lang is not None:
        return "tsx" if lang in {"tsx", "jsx"} else "typescript"
    return "tsx" if Path(path).suffix.lower() in _TSX_SUFFIXES else "typescript"


def parse_source(
    source: bytes, dialect: str, path: Path | str, *, line_offset: int = 0
) -> Tree:
    """Parse ``source`` and raise ``TransformError`` at the first syntax error."""
    parser = Parser(_LANGUAGES[dialect])
    tree = parser.parse(source)
    if tree.root_node.has_error:
        node = _first_error(tree.root_node)
        row, column = node.start_point
        if node.is_missing:
            message = f"Missing {node.type!r}"
        else:
            snippet = source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")
            snippet = " ".join(snippet.split())[:40]
            message = f"Unexpected syntax {snippet!r}" if snippet else "Unexpected syntax"
        raise TransformError(path, message, line=row + 1 + line_offset, column=column + 1)
    return tree


def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8")


def _first_error(root: Node) -> Node:
    node = root
    while True:
        if node.type == "ERROR" or node.is_missing:
            return node
        for child in node.children:
            if child.has_error or child.is_missing:
                node = child
                break
        else:
            return node


__all__ = ["dialect_for", "node_text", "parse_source"]
