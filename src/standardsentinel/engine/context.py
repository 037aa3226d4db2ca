from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from standardsentinel.config import StandardsConfig
from standardsentinel.engine.types import Location


class SyntaxTree(Protocol):
    # tree-sitter Tree exposes `root_node`; we treat nodes structurally.
    root_node: Any


@dataclass(frozen=True, slots=True)
class ProjectContext:
    project_root: Path
    files: tuple[Path, ...]
    config: StandardsConfig


@dataclass(frozen=True, slots=True)
class SourceFile:
    project_root: Path
    path: Path
    relative_path: str
    text: str
    source: bytes
    lines: tuple[str, ...]
    tree: SyntaxTree | None = None
    parse_ok: bool = False
    has_bom: bool = False
    parse_error: str | None = None
    error_byte: int | None = None

    @property
    def file_name(self) -> str:
        return self.path.name

    def node_text(self, node: Any) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def location(self, start_byte: int, end_byte: int | None = None) -> Location:
        """Translate a byte range into 1-based line/character columns."""

        end = start_byte if end_byte is None else end_byte
        start_line, start_col = self._line_col(start_byte)
        end_line, end_col = self._line_col(end)
        return Location(
            path=self.path,
            start_line=start_line,
            start_col=start_col,
            end_line=end_line,
            end_col=end_col,
            start_byte=start_byte,
            end_byte=end,
        )

    def node_location(self, node: Any) -> Location:
        return self.location(node.start_byte, node.end_byte)

    def line_location(self, row: int) -> Location:
        """Location covering 0-based line `row`, without its indentation."""

        line = self.lines[row] if 0 <= row < len(self.lines) else ""
        indent = len(line) - len(line.lstrip())
        return Location(
            path=self.path,
            start_line=row + 1,
            start_col=indent + 1,
            end_line=row + 1,
            end_col=len(line) + 1,
        )

    def _line_col(self, offset: int) -> tuple[int, int]:
        offset = max(0, min(offset, len(self.source)))
        line_start = self.source.rfind(b"\n", 0, offset) + 1
        line = self.source.count(b"\n", 0, offset) + 1
        col = len(self.source[line_start:offset].decode("utf-8", errors="replace")) + 1
        return line, col
