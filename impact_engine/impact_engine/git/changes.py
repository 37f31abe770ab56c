"""Discover which files a CI run should analyse.

Three sources are supported, tried in this order by the pipeline:

1. an explicit delimited list (e.g. the output of a changed-files action);
2. the ``commits[].added/modified/removed`` lists of a push event payload;
3. ``git diff`` between the pull request's base and head revisions.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class PullRequestContext(BaseModel):
    """The parts of a ``pull_request`` event the analysis needs."""

    number: int
    base_sha: str | None = None
    head_sha: str | None = None


def _dedupe(paths: list[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for path in paths:
        if path not in seen:
            seen.add(path)
            unique.append(path)
    return unique


def parse_changed_files_list(text: str | None, separator: str = ",") -> list[str]:
    """Split a delimited list of paths, trimming blanks and duplicates."""
    if not text:
        return []
    return _dedupe([part.strip() for part in text.split(separator) if part.strip()])


def load_event(event_path: Path | None) -> dict[str, Any]:
    """Read the CI event payload, returning ``{}`` if absent or unreadable."""
    if event_path is None:
        return {}
    try:
        data = json.loads(event_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Could not read event payload %s: %s", event_path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def changed_files_from_event(payload: dict[str, Any]) -> list[str] | None:
    """Return the union of files touched by the commits in a push payload.

    Returns ``None`` when the payload carries no commit list (e.g. a
    ``pull_request`` event), so the caller can fall back to git.
    """
    commits = payload.get("commits")
    if not isinstance(commits, list):
        return None

    paths: list[str] = []
    for commit in commits:
        if not isinstance(commit, dict):
            continue
        for key in ("added", "modified", "removed"):
            files = commit.get(key)
            if isinstance(files, list):
                paths.extend(f for f in files if isinstance(f, str) and f)
    return _dedupe(paths)


def pull_request_context(payload: dict[str, Any]) -> PullRequestContext | None:
    """Extract PR number and base/head SHAs, or ``None`` outside a PR."""
    pr = payload.get("pull_request")
    if not isinstance(pr, dict) or not isinstance(pr.get("number", payload.get("number")), int):
        return None
    base = pr.get("base") if isinstance(pr.get("base"), dict) else {}
    head = pr.get("head") if isinstance(pr.get("head"), dict) else {}
    return PullRequestContext(
        number=pr.get("number", payload.get("number")),
        base_sha=base.get("sha"),
        head_sha=head.get("sha"),
    )
