"""Shared fixtures for impact_engine tests.

CI runners export ``GITHUB_*`` variables that :class:`Settings` reads.
Clear them (and any ``IMPACT_*`` overrides) so tests see a clean slate.
"""

from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in list(os.environ):
        if name.startswith(("IMPACT_", "GITHUB_")):
            monkeypatch.delenv(name, raising=False)
    # Keep a stray .env in the working directory from leaking in.
    monkeypatch.chdir(tmp_path)
