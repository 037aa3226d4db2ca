from __future__ import annotations

from pathlib import Path

from standardsentinel.utils import contains_segments, directory_segments, folder_segments, safe_relpath


def test_safe_relpath_returns_relative_path_when_under_root(tmp_path: Path) -> None:
    root = tmp_path
    path = tmp_path / "Services" / "OrderService.cs"
    assert safe_relpath(path, root) == "Services/OrderService.cs"


def test_safe_relpath_falls_back_when_not_under_root(tmp_path: Path) -> None:
    root = tmp_path
    path = Path("foo/Bar.cs")
    assert safe_relpath(path, root) == "foo/Bar.cs"


def test_safe_relpath_handles_resolve_oserror(tmp_path: Path, monkeypatch) -> None:
    root = tmp_path
    path = tmp_path / "Services" / "OrderService.cs"

    def _boom(self: Path, strict: bool = False) -> Path:
        raise OSError("boom")

    monkeypatch.setattr(type(root), "resolve", _boom)
    assert safe_relpath(path, root) == "Services/OrderService.cs"


def test_directory_segments_drop_file_name_and_lowercase() -> None:
    assert directory_segments("src\\Shop/Contracts/IOrder.cs") == ("src", "shop", "contracts")
    assert directory_segments("IOrder.cs") == ()


def test_contains_segments_matches_consecutive_runs() -> None:
    haystack = ("src", "shop", "contracts", "v1")
    assert contains_segments(haystack, folder_segments("Shop/Contracts"))
    assert contains_segments(haystack, ())
    assert not contains_segments(haystack, folder_segments("src/contracts"))
