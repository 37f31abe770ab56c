"""Git integration for change detection and content retrieval."""

from __future__ import annotations

from impact_engine.git.changes import (
    PullRequestContext,
    changed_files_from_event,
    load_event,
    parse_changed_files_list,
    pull_request_context,
)
from impact_engine.git.git_client import (
    ChangedFile,
    ChangeStatus,
    GitClientError,
    GitContentReader,
    get_changed_files,
    get_file_at_commit,
    require_revisions,
)

__all__ = [
    "ChangedFile",
    "ChangeStatus",
    "GitClientError",
    "GitContentReader",
    "PullRequestContext",
    "changed_files_from_event",
    "get_changed_files",
    "get_file_at_commit",
    "load_event",
    "parse_changed_files_list",
    "pull_request_context",
    "require_revisions",
]
