from __future__ import annotations

import os

from standardsentinel.scanner import resolve_worker_count, worker_count_from_env


def test_resolve_worker_count_default_uses_cpu_count(monkeypatch) -> None:
    monkeypatch.setattr(os, "cpu_count", lambda: 4)
    assert resolve_worker_count(None) == 4


def test_resolve_worker_count_default_is_clamped_to_max(monkeypatch) -> None:
    monkeypatch.setattr(os, "cpu_count", lambda: 64)
    assert resolve_worker_count(None) == 32


def test_resolve_worker_count_respects_default_param(monkeypatch) -> None:
    monkeypatch.setattr(os, "cpu_count", lambda: 64)
    assert resolve_worker_count(None, default=3) == 3


def test_resolve_worker_count_ignores_invalid_values(monkeypatch) -> None:
    monkeypatch.setattr(os, "cpu_count", lambda: 2)
    assert resolve_worker_count("auto") == 2
    assert resolve_worker_count("zero") == 2
    assert resolve_worker_count("-1") == 2
    assert resolve_worker_count("6") == 6


def test_worker_count_from_env(monkeypatch) -> None:
    monkeypatch.setenv("STANDARDSENTINEL_WORKERS", "5")
    assert worker_count_from_env() == 5
