"""Impact analysis CLI application -- Typer-based CI and developer interface.

Provides commands for the full pull request analysis, a downstream lineage
lookup for a single catalog task, and a local column diff between two git
revisions.  Human-readable output goes to *stderr* via Rich; machine-readable
output (``--json``) goes to *stdout* so that pipelines can compose cleanly.

Exit codes: ``0`` success (including degraded reports), ``2`` configuration
error, ``3`` unrecoverable error.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from cli.display import display_column_diffs, display_downstream_tree, display_report_summary
from impact_engine.columns import ColumnDiffAggregator
from impact_engine.config import Settings, load_settings
from impact_engine.errors import CatalogUnavailableError, ConfigurationError, ImpactAnalysisError
from impact_engine.git import GitContentReader
from impact_engine.graph import ImpactGraphWalker, MatchMode
from impact_engine.logging_config import configure_logging
from impact_engine.models import CatalogTask, IdentityKey, ImpactReport, TraversalResult
from impact_engine.pipeline import create_clients, publish_report, publish_unavailable, run_impact_analysis

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="impact-analysis",
    help="Downstream impact analysis for dbt pull requests.",
    no_args_is_help=True,
)
console = Console(stderr=True)

EXIT_CONFIG_ERROR = 2
EXIT_FAILURE = 3

# Mutable global options populated by the Typer callback.
_json_output: bool = False


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of human-readable output.",
    ),
) -> None:
    """Global options applied to every command."""
    global _json_output  # noqa: PLW0603
    _json_output = json_mode


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings_or_exit(**overrides: Any) -> Settings:
    """Load settings and configure logging, exiting with code 2 on invalid values."""
    try:
        settings = load_settings(**overrides)
    except ValidationError as exc:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(exc))}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from exc
    configure_logging(settings.debug, settings.structured_logging)
    return settings


def _write_json(text: str) -> None:
    sys.stdout.write(text.strip() + "\n")


async def _analyze(settings: Settings, publish: bool) -> ImpactReport:
    catalog, lineage = create_clients(settings)
    async with catalog, lineage:
        report = await run_impact_analysis(
            settings,
            catalog=catalog,
            lineage=lineage,
            get_content=GitContentReader(settings.repo_path),
        )
    if publish:
        await publish_report(report, settings)
    return report


async def _downstream(settings: Settings, task_name: str) -> tuple[list[CatalogTask], TraversalResult]:
    catalog, lineage = create_clients(settings)
    async with catalog, lineage:
        if not await catalog.ping():
            raise CatalogUnavailableError(f"Catalog API at {settings.api_base_url} is unreachable")
        tasks = await catalog.resolve(lambda task: task.name == task_name)
        if not tasks:
            return tasks, TraversalResult()
        walker = ImpactGraphWalker(
            lineage,
            identity_key=settings.identity_key,
            max_depth=settings.max_depth,
            max_records=settings.max_records,
            concurrency=settings.lineage_concurrency,
        )
        return tasks, await walker.walk(tasks)


# ---------------------------------------------------------------------------
# analyze
# ---------------------------------------------------------------------------


@app.command()
def analyze(
    changed_files: str | None = typer.Option(
        None,
        "--changed-files",
        "-f",
        help="Delimited list of changed files.  Defaults to the CI event or git diff.",
    ),
    repo: Path | None = typer.Option(
        None,
        "--repo",
        help="Path to the git repository holding the dbt project.",
        exists=True,
        file_okay=False,
        resolve_path=True,
    ),
    base: str | None = typer.Option(None, "--base", help="Base revision for column diffs."),
    head: str | None = typer.Option(None, "--head", help="Head revision for column diffs."),
    match_mode: MatchMode | None = typer.Option(
        None,
        "--match-mode",
        help="loose: match tasks by name; strict: by name and dbt project directory.",
    ),
    identity_key: IdentityKey | None = typer.Option(
        None,
        "--identity-key",
        help="Fields that identify an asset when deduplicating impacts.",
    ),
    max_depth: int | None = typer.Option(None, "--max-depth", min=1, help="Maximum lineage hops."),
    max_records: int | None = typer.Option(None, "--max-records", min=1, help="Maximum impacted assets."),
    publish: bool = typer.Option(
        True,
        "--publish/--no-publish",
        help="Post the PR comment and write the job summary and step outputs.",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """Analyse the downstream impact of the dbt models changed in a pull request."""
    settings = _load_settings_or_exit(
        changed_files_list=changed_files,
        repo_path=repo,
        base_sha=base,
        head_sha=head,
        match_mode=match_mode,
        identity_key=identity_key,
        max_depth=max_depth,
        max_records=max_records,
        debug=debug or None,
    )

    try:
        report = asyncio.run(_analyze(settings, publish))
    except ConfigurationError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        if publish:
            asyncio.run(publish_unavailable(str(exc), settings))
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from exc
    except CatalogUnavailableError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        if publish:
            asyncio.run(publish_unavailable(str(exc), settings))
        raise typer.Exit(code=EXIT_FAILURE) from exc
    except Exception as exc:
        console.print(f"[red]Impact analysis failed: {escape(str(exc))}[/red]")
        if publish:
            asyncio.run(publish_unavailable(f"Impact analysis failed: {exc}", settings))
        raise typer.Exit(code=EXIT_FAILURE) from exc

    if _json_output:
        _write_json(report.model_dump_json(indent=2))
    else:
        display_report_summary(console, report)


# ---------------------------------------------------------------------------
# lineage
# ---------------------------------------------------------------------------


@app.command()
def lineage(
    task: str = typer.Option(..., "--task", "-t", help="Catalog task name to trace downstream."),
    identity_key: IdentityKey | None = typer.Option(None, "--identity-key", help="Deduplication key."),
    max_depth: int | None = typer.Option(None, "--max-depth", min=1, help="Maximum lineage hops."),
) -> None:
    """Display the downstream lineage of one catalog task."""
    settings = _load_settings_or_exit(identity_key=identity_key, max_depth=max_depth)

    try:
        tasks, result = asyncio.run(_downstream(settings, task))
    except ConfigurationError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from exc
    except ImpactAnalysisError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=EXIT_FAILURE) from exc

    if not tasks:
        console.print(f"[red]Task '{escape(task)}' not found in catalog.[/red]")
        raise typer.Exit(code=EXIT_FAILURE)

    if _json_output:
        _write_json(result.model_dump_json(indent=2))
    else:
        display_downstream_tree(console, task, result)


# ---------------------------------------------------------------------------
# columns
# ---------------------------------------------------------------------------


@app.command()
def columns(
    paths: list[str] = typer.Argument(..., help="Repository-relative model files to compare."),
    repo: Path = typer.Option(
        Path("."),
        "--repo",
        help="Path to the git repository.",
        exists=True,
        file_okay=False,
        resolve_path=True,
    ),
    base: str | None = typer.Option(None, "--base", help="Base revision.  Omit to treat files as new."),
    head: str = typer.Option("HEAD", "--head", help="Head revision."),
    dialect: str | None = typer.Option(None, "--dialect", help="sqlglot dialect for SQL models."),
) -> None:
    """Show column-level changes of model files between two revisions.

    Needs only git; the catalog API is not contacted.
    """
    settings = _load_settings_or_exit(repo_path=repo, sql_dialect=dialect)

    aggregator = ColumnDiffAggregator(
        GitContentReader(settings.repo_path),
        base,
        head,
        dialect=settings.sql_dialect,
    )
    diffs = aggregator.aggregate(paths)

    if _json_output:
        _write_json(json.dumps([d.model_dump(mode="json") for d in diffs], indent=2))
    else:
        display_column_diffs(console, diffs)
