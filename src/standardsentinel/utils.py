from __future__ import annotations

from pathlib import Path


def safe_relpath(path: Path, root: Path) -> str:
    """
    Return a stable, POSIX-style path for reporting output.

    Prefer a path relative to `root` when possible.
    Fall back to `path.as_posix()` when the path is not under the root, or when
    either path cannot be resolved due to OS errors.
    """

    try:
        resolved_path = path.resolve()
    except OSError:
        resolved_path = path

    try:
        resolved_root = root.resolve()
    except OSError:
        resolved_root = root

    try:
        return resolved_path.relative_to(resolved_root).as_posix()
    except ValueError:
        return path.as_posix()


def directory_segments(relative_path: str) -> tuple[str, ...]:
    """Return the lower-cased directory segments of a relative path (file name excluded)."""

    normalized = relative_path.replace("\\", "/").strip("/")
    parts = [p for p in normalized.split("/") if p and p != "."]
    return tuple(p.lower() for p in parts[:-1])


def contains_segments(haystack: tuple[str, ...], needle: tuple[str, ...]) -> bool:
    if not needle:
        return True
    width = len(needle)
    for idx in range(len(haystack) - width + 1):
        if haystack[idx : idx + width] == needle:
            return True
    return False


def folder_segments(folder: str) -> tuple[str, ...]:
    normalized = folder.replace("\\", "/").strip("/")
    return tuple(p.lower() for p in normalized.split("/") if p and p != ".")
