from __future__ import annotations

from standardsentinel.engine.context import ProjectContext, SourceFile
from standardsentinel.engine.types import CodeFixEdit, Diagnostic


def qualify_member_access(src: SourceFile, diagnostic: Diagnostic, project: ProjectContext) -> CodeFixEdit | None:
    """Rewrite a bare `Name` into `this.Name`, leaving surrounding trivia untouched."""

    loc = diagnostic.location
    if loc is None or loc.start_byte is None or loc.end_byte is None:
        return None
    name = diagnostic.properties.get("member", "")
    current = src.source[loc.start_byte : loc.end_byte].decode("utf-8", errors="replace")
    if not name or current != name:
        return None
    return CodeFixEdit(
        path=src.path,
        rule_id=diagnostic.rule_id,
        start_byte=loc.start_byte,
        end_byte=loc.end_byte,
        replacement=f"this.{name}",
        description=f"Qualify '{name}' with 'this.'",
    )
