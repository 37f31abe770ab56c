"""Orchestrate one impact analysis run.

The pipeline is deliberately thin: every step delegates to a component that
can be tested on its own.  Collaborators that talk to the outside world
(catalog, lineage, source control, GitHub) are passed in so that tests can
substitute fakes or ``httpx.MockTransport``-backed clients.
"""

from __future__ import annotations

import logging
from typing import Any

from impact_engine.clients.catalog import CatalogClient
from impact_engine.clients.lineage import LineageClient
from impact_engine.columns.aggregator import ColumnDiffAggregator, ContentGetter
from impact_engine.config import Settings
from impact_engine.errors import CatalogUnavailableError
from impact_engine.git.changes import (
    changed_files_from_event,
    load_event,
    parse_changed_files_list,
    pull_request_context,
)
from impact_engine.git.git_client import GitClientError, get_changed_files, require_revisions
from impact_engine.graph.matching import TaskMatcher, extract_model_names
from impact_engine.graph.walker import CachingLineageSource, ImpactGraphWalker, LineageSource
from impact_engine.models.catalog import CatalogTask
from impact_engine.models.report import ImpactReport
from impact_engine.report.assembler import assemble_report
from impact_engine.report.markdown import render_markdown, render_unavailable
from impact_engine.report.publisher import GitHubPublisher, write_output, write_step_summary

logger = logging.getLogger(__name__)

DEFAULT_HEAD_REV = "HEAD"


# ---------------------------------------------------------------------------
# Client construction
# ---------------------------------------------------------------------------


def create_clients(settings: Settings) -> tuple[CatalogClient, LineageClient]:
    """Build catalog and lineage clients from validated *settings*.

    Raises
    ------
    ConfigurationError
        If the API URL or credentials are missing.
    """
    base_url, client_id, secret = settings.api_credentials()

    catalog = CatalogClient(
        base_url,
        client_id,
        secret,
        timeout=settings.request_timeout,
        page_limit=settings.catalog_page_limit,
        max_pages=settings.catalog_max_pages,
    )
    lineage = LineageClient(
        base_url,
        client_id,
        secret,
        timeout=settings.request_timeout,
    )
    return catalog, lineage


# ---------------------------------------------------------------------------
# Revisions and changed files
# ---------------------------------------------------------------------------


def resolve_revisions(settings: Settings, event: dict[str, Any]) -> tuple[str | None, str]:
    """Return ``(base, head)``; explicit settings win over the event payload."""
    pr = pull_request_context(event)
    base = settings.base_sha or (pr.base_sha if pr else None)
    head = settings.head_sha or (pr.head_sha if pr else None) or DEFAULT_HEAD_REV
    return base, head


def discover_changed_files(
    settings: Settings,
    event: dict[str, Any],
    notes: list[str] | None = None,
) -> list[str]:
    """Return the changed files from the first source that provides them.

    Sources are tried in order: the explicit list setting, the commits of
    the event payload, then ``git diff`` between the base and head revisions.
    A git failure (e.g. a shallow clone without the base commit) yields
    ``[]`` and, when *notes* is given, a remark explaining why.
    """
    if settings.changed_files_list:
        files = parse_changed_files_list(settings.changed_files_list, settings.changed_files_separator)
        logger.info("Using %d changed file(s) from the explicit list", len(files))
        return files

    from_event = changed_files_from_event(event)
    if from_event is not None:
        logger.info("Using %d changed file(s) from the event payload", len(from_event))
        return from_event

    base, head = resolve_revisions(settings, event)
    if base is None:
        logger.warning("No changed-files list, push commits or base revision available")
        return []

    try:
        require_revisions(settings.repo_path, base, head)
        changed = get_changed_files(settings.repo_path, base, head)
    except (GitClientError, ValueError) as exc:
        logger.error("Could not list changed files with git: %s", exc)
        if notes is not None:
            notes.append(f"Changed files could not be determined from git: {str(exc).splitlines()[0]}")
        return []
    logger.info("Using %d changed file(s) from git diff %s..%s", len(changed), base, head)
    return [f.path for f in changed]


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


async def run_impact_analysis(
    settings: Settings,
    *,
    catalog: CatalogClient,
    lineage: LineageSource,
    get_content: ContentGetter,
    changed_files: list[str] | None = None,
    event: dict[str, Any] | None = None,
) -> ImpactReport:
    """Run the analysis and return the assembled report.

    Parameters
    ----------
    settings:
        Validated settings; credentials are checked before any network call.
    catalog:
        Catalog client used for the startup reachability check and task resolution.
    lineage:
        Source of downstream edges.  Wrapped in a per-run cache so the
        per-task breakdown does not repeat lookups.
    get_content:
        ``(revision, path) -> text | None`` used for column diffs.
    changed_files:
        Overrides change discovery when given.
    event:
        CI event payload; read from ``settings.github_event_path`` when
        omitted.

    Raises
    ------
    ConfigurationError
        If credentials are missing.
    CatalogUnavailableError
        If the catalog does not answer the startup reachability check.
    """
    settings.require_credentials()
    if event is None:
        event = load_event(settings.github_event_path)

    if not await catalog.ping():
        raise CatalogUnavailableError(f"Catalog API at {settings.api_base_url} is unreachable")

    notes: list[str] = []
    if changed_files is None:
        changed_files = discover_changed_files(settings, event, notes)
    if not changed_files:
        notes.append("No changed files were found.")

    changed_models = extract_model_names(changed_files)
    logger.info("Found %d changed file(s), %d dbt model(s)", len(changed_files), len(changed_models))

    matched: list[CatalogTask] = []
    if changed_models:
        matcher = TaskMatcher(changed_files, settings.match_mode)
        logger.info("Matching %d model name(s) in %s mode", len(matcher.model_names), matcher.mode.value)
        matched = await catalog.resolve(matcher)
    elif changed_files:
        notes.append("No dbt models (.sql files) were changed.")

    walker = ImpactGraphWalker(
        CachingLineageSource(lineage),
        identity_key=settings.identity_key,
        max_depth=settings.max_depth,
        max_records=settings.max_records,
        concurrency=settings.lineage_concurrency,
    )
    traversal = await walker.walk(matched)
    per_task = await walker.walk_per_seed(matched)

    base, head = resolve_revisions(settings, event)
    if base is None and changed_files:
        notes.append("No base revision was available; every column is reported as added.")
    aggregator = ColumnDiffAggregator(get_content, base, head, dialect=settings.sql_dialect)
    column_diffs = aggregator.aggregate(changed_files)

    return assemble_report(
        changed_models,
        matched,
        traversal,
        column_diffs,
        per_task=per_task,
        notes=notes,
    )


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


async def _publish(
    markdown: str,
    report_json: str | None,
    settings: Settings,
    event: dict[str, Any],
    publisher: GitHubPublisher | None,
) -> None:
    write_step_summary(settings.step_summary_path, markdown)
    write_output(settings.output_path, "impact_markdown", markdown)
    if report_json is not None:
        write_output(settings.output_path, "impact_json", report_json)

    pr = pull_request_context(event)
    if pr is None:
        logger.info("Not a pull request; skipping PR comment")
        return
    token = settings.github_token
    repository = settings.github_repository
    if token is None or repository is None:
        logger.warning("GitHub token or repository not configured; skipping PR comment")
        return

    owns_publisher = publisher is None
    if publisher is None:
        publisher = GitHubPublisher(
            token.get_secret_value(),
            api_url=settings.github_api_url,
            timeout=settings.request_timeout,
        )
    try:
        await publisher.post_comment(repository, pr.number, markdown)
    finally:
        if owns_publisher:
            await publisher.close()


async def publish_report(
    report: ImpactReport,
    settings: Settings,
    *,
    event: dict[str, Any] | None = None,
    publisher: GitHubPublisher | None = None,
) -> str:
    """Render *report* and send it to every configured sink.

    Returns the rendered Markdown.
    """
    if event is None:
        event = load_event(settings.github_event_path)
    markdown = render_markdown(report, link_base_url=settings.link_base_url)
    await _publish(markdown, report.model_dump_json(), settings, event, publisher)
    return markdown


async def publish_unavailable(
    reason: str,
    settings: Settings,
    *,
    event: dict[str, Any] | None = None,
    publisher: GitHubPublisher | None = None,
) -> str:
    """Publish the "No impact analysis possible" comment."""
    if event is None:
        event = load_event(settings.github_event_path)
    markdown = render_unavailable(reason)
    await _publish(markdown, None, settings, event, publisher)
    return markdown
