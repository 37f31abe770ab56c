"""Publish a rendered report to GitHub.

Three sinks are supported:

* a pull request comment, posted through the GitHub REST API;
* the job summary file named by ``GITHUB_STEP_SUMMARY``;
* the step outputs file named by ``GITHUB_OUTPUT``.

INVARIANT: publishing never fails the run.  Every sink logs its own
failure and reports it through its return value.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 30.0
_GITHUB_ACCEPT = "application/vnd.github.v3+json"


class GitHubPublisher:
    """Post issue comments on pull requests.

    Parameters
    ----------
    token:
        GitHub token with permission to comment on pull requests.
    api_url:
        Root of the GitHub REST API (GitHub Enterprise hosts differ).
    http_client:
        Optional ``httpx.AsyncClient`` for testing.  A default client
        is created if not provided.
    """

    def __init__(
        self,
        token: str,
        *,
        api_url: str = "https://api.github.com",
        timeout: float = _TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": _GITHUB_ACCEPT,
        }
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._owns_client = http_client is None

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> GitHubPublisher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def post_comment(self, repository: str, pr_number: int, body: str) -> bool:
        """Create a comment on pull request *pr_number* of ``owner/repo``.

        Returns
        -------
        bool
            ``True`` when GitHub accepted the comment.
        """
        if repository.count("/") != 1:
            logger.error("Invalid repository %r; expected 'owner/repo'", repository)
            return False

        url = f"{self._api_url}/repos/{repository}/issues/{pr_number}/comments"
        try:
            response = await self._client.post(url, json={"body": body}, headers=self._headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Failed to create comment on %s#%d: HTTP %d %s",
                repository,
                pr_number,
                exc.response.status_code,
                exc.response.text[:500],
            )
            return False
        except httpx.RequestError as exc:
            logger.error("Failed to create comment on %s#%d: %s", repository, pr_number, exc)
            return False

        logger.info("Posted impact report to %s#%d", repository, pr_number)
        return True


def write_step_summary(path: Path | None, markdown: str) -> bool:
    """Append *markdown* to the job summary file, if one is configured."""
    if path is None:
        logger.debug("No step summary file configured; skipping")
        return False
    try:
        with path.open("a", encoding="utf-8") as fh:
            fh.write(markdown)
            if not markdown.endswith("\n"):
                fh.write("\n")
    except OSError as exc:
        logger.error("Could not write step summary to %s: %s", path, exc)
        return False
    return True


def write_output(path: Path | None, name: str, value: str) -> bool:
    """Append a multi-line ``name`` output to the step outputs file.

    Uses the ``name<<DELIMITER`` form with a random delimiter that cannot
    collide with a line of *value*.
    """
    if path is None:
        logger.debug("No step output file configured; skipping output %s", name)
        return False
    delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
    while delimiter in value:
        delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
    try:
        with path.open("a", encoding="utf-8") as fh:
            fh.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
    except OSError as exc:
        logger.error("Could not write output %s to %s: %s", name, path, exc)
        return False
    return True
