"""Shared fixtures for CLI tests."""

from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in list(os.environ):
        if name.startswith(("IMPACT_", "GITHUB_")):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Export a complete set of catalog API credentials."""
    monkeypatch.setenv("IMPACT_API_BASE_URL", "https://catalog.example.com")
    monkeypatch.setenv("IMPACT_API_CLIENT_ID", "client")
    monkeypatch.setenv("IMPACT_API_CLIENT_SECRET", "secret")
