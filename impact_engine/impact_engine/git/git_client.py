"""Thin git client for listing changed model files and reading old revisions.

All interaction with the ``git`` binary is done through :func:`subprocess.run`
with explicit timeouts and structured error handling so that callers receive
:class:`GitClientError` exceptions with descriptive messages rather than raw
subprocess failures.
"""

from __future__ import annotations

import logging
import re
import subprocess
from enum import Enum
from pathlib import Path

from pydantic import BaseModel

from impact_engine.errors import ImpactAnalysisError

logger = logging.getLogger(__name__)

_SUBPROCESS_TIMEOUT = 30  # seconds

MODEL_FILE_GLOBS = ("*.sql", "*.yml", "*.yaml")

# ---------------------------------------------------------------------------
# Git ref validation
# ---------------------------------------------------------------------------

_GIT_SHA_RE = re.compile(r"^[0-9a-fA-F]{4,40}$")
_GIT_REF_RE = re.compile(r"^[a-zA-Z0-9_./@~^{}\-]+$")

# `git show` reports a path missing at a revision with one of these.
_MISSING_PATH_MARKERS = (
    "does not exist in",
    "exists on disk, but not in",
    "Path '",
)


def _validate_git_ref(ref: str) -> None:
    """Validate a git ref or SHA to prevent command injection.

    Raises
    ------
    ValueError
        If *ref* is empty or contains characters outside the safe set.
    """
    if not ref:
        raise ValueError("Git ref cannot be empty")
    if ref.startswith("-"):
        raise ValueError(f"Invalid git ref: {ref!r}")
    if not (_GIT_SHA_RE.match(ref) or _GIT_REF_RE.match(ref)):
        raise ValueError(f"Invalid git ref: {ref!r}")


# ---------------------------------------------------------------------------
# Public types
# ---------------------------------------------------------------------------


class ChangeStatus(str, Enum):
    """Classification of a file-level change between two commits."""

    ADDED = "A"
    MODIFIED = "M"
    DELETED = "D"


class ChangedFile(BaseModel):
    """A single file that differs between two git revisions."""

    path: str
    status: ChangeStatus


class GitClientError(ImpactAnalysisError):
    """Raised when a git operation fails or the repository is invalid."""


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _run_git(
    cmd: list[str],
    repo_path: Path,
) -> subprocess.CompletedProcess[str]:
    """Execute a git command and return the completed process.

    Raises
    ------
    GitClientError
        On non-zero exit, timeout, or if the process cannot be started.
    """
    try:
        return subprocess.run(
            cmd,
            cwd=repo_path,
            capture_output=True,
            text=True,
            check=True,
            timeout=_SUBPROCESS_TIMEOUT,
        )
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        raise GitClientError(f"git command failed: {' '.join(cmd)}\nExit code {exc.returncode}: {stderr}") from exc
    except subprocess.TimeoutExpired as exc:
        raise GitClientError(f"git command timed out after {_SUBPROCESS_TIMEOUT}s: {' '.join(cmd)}") from exc
    except FileNotFoundError as exc:
        raise GitClientError("git executable not found. Ensure git is installed and on PATH.") from exc


# Anything that is not A or D maps to MODIFIED (covers R, C, T, etc.).
_STATUS_MAP: dict[str, ChangeStatus] = {
    "A": ChangeStatus.ADDED,
    "D": ChangeStatus.DELETED,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def require_revisions(repo_path: Path, *revisions: str) -> None:
    """Check that every revision is a commit present in the local clone.

    CI checkouts are often shallow, so the pull request's base commit may
    be missing even though the event payload names it.

    Raises
    ------
    GitClientError
        If *repo_path* is not a directory or a revision cannot be resolved.
    """
    if not repo_path.is_dir():
        raise GitClientError(f"Repository path does not exist: {repo_path}")
    for revision in revisions:
        _validate_git_ref(revision)
        try:
            _run_git(["git", "cat-file", "-e", f"{revision}^{{commit}}"], repo_path)
        except GitClientError as exc:
            raise GitClientError(
                f"Revision {revision} is not available in {repo_path}; fetch more history or pass the changed files"
            ) from exc


def get_changed_files(
    repo_path: Path,
    base_sha: str,
    target_sha: str,
) -> list[ChangedFile]:
    """Return model files (SQL and YAML) changed between two revisions.

    The returned list is sorted by file path for deterministic ordering.
    Renames are reported under their new path.
    """
    _validate_git_ref(base_sha)
    _validate_git_ref(target_sha)

    result = _run_git(
        ["git", "diff", "--name-status", base_sha, target_sha, "--", *MODEL_FILE_GLOBS],
        repo_path,
    )

    changed: list[ChangedFile] = []
    for line in result.stdout.strip().splitlines():
        if not line:
            continue
        parts = line.split("\t")
        if len(parts) < 2:
            logger.warning("Skipping unparseable diff line: %s", line)
            continue
        raw_status, file_path = parts[0], parts[-1]
        # Renames/copies carry a similarity score, e.g. "R100".
        status = _STATUS_MAP.get(raw_status[0], ChangeStatus.MODIFIED)
        changed.append(ChangedFile(path=file_path, status=status))

    changed.sort(key=lambda f: f.path)
    return changed


def get_file_at_commit(
    repo_path: Path,
    sha: str,
    file_path: str,
) -> str | None:
    """Return the contents of *file_path* as it existed at *sha*.

    Returns ``None`` when the path does not exist at that revision (file
    added later or deleted).

    Raises
    ------
    GitClientError
        If git fails for any other reason.
    """
    _validate_git_ref(sha)

    try:
        result = _run_git(["git", "show", f"{sha}:{file_path}"], repo_path)
    except GitClientError as exc:
        if any(marker in str(exc) for marker in _MISSING_PATH_MARKERS):
            return None
        raise
    return result.stdout


class GitContentReader:
    """``(revision, path) -> text | None`` adapter over :func:`get_file_at_commit`.

    Git failures other than a missing path are logged and reported as
    ``None`` so that one unreadable file does not stop the run.
    """

    def __init__(self, repo_path: Path) -> None:
        self._repo_path = repo_path

    def __call__(self, revision: str, path: str) -> str | None:
        try:
            return get_file_at_commit(self._repo_path, revision, path)
        except (GitClientError, ValueError) as exc:
            logger.error("Could not read %s at %s: %s", path, revision, exc)
            return None
