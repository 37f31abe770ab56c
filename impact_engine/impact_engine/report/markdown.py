"""Render an :class:`ImpactReport` as GitHub-flavoured Markdown.

The same text is used for the pull request comment, the job summary and
the ``impact_markdown`` step output.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import PurePosixPath

from impact_engine.models.columns import ColumnDiff
from impact_engine.models.lineage import ImpactRecord
from impact_engine.models.report import ImpactReport

TITLE = "## Impact Analysis Report"

_SQL_SUFFIXES = frozenset({".sql"})
_YAML_SUFFIXES = frozenset({".yml", ".yaml"})


def _asset_label(record: ImpactRecord, link_base_url: str | None) -> str:
    name = record.name or record.identity.label()
    if link_base_url and record.identity.asset_id:
        return f"[{name}]({link_base_url}/{record.identity.asset_id})"
    return name


def _record_list(
    records: Sequence[ImpactRecord],
    link_base_url: str | None,
    empty: str | None = None,
) -> list[str]:
    if not records:
        return [empty] if empty else []
    lines = []
    for record in records:
        label = _asset_label(record, link_base_url)
        if record.connection_name:
            label += f" ({record.connection_name})"
        lines.append(f"- {label}")
    return lines


def _names(values: Sequence[str]) -> str:
    return ", ".join(f"`{v}`" for v in values)


def _column_section(heading: str, diffs: Sequence[ColumnDiff]) -> list[str]:
    added = sum(len(d.added) for d in diffs)
    removed = sum(len(d.removed) for d in diffs)
    modified = sum(len(d.modified) for d in diffs)
    lines = [
        "",
        f"### {heading}",
        f"Added: {added} columns",
        f"Removed: {removed} columns",
        f"Modified: {modified} columns",
    ]
    if diffs:
        lines.append("")
    for diff in diffs:
        parts = []
        if diff.added:
            parts.append(f"added {_names(diff.added_names)}")
        if diff.removed:
            parts.append(f"removed {_names(diff.removed_names)}")
        if diff.modified:
            parts.append(f"modified {_names(diff.modified_names)}")
        lines.append(f"- `{diff.file}`: {'; '.join(parts)}")
    return lines


def _split_by_kind(diffs: Sequence[ColumnDiff]) -> tuple[list[ColumnDiff], list[ColumnDiff]]:
    sql: list[ColumnDiff] = []
    yml: list[ColumnDiff] = []
    for diff in diffs:
        suffix = PurePosixPath(diff.file).suffix.lower()
        if suffix in _SQL_SUFFIXES:
            sql.append(diff)
        elif suffix in _YAML_SUFFIXES:
            yml.append(diff)
    return sql, yml


def render_markdown(report: ImpactReport, link_base_url: str | None = None) -> str:
    """Render *report* as Markdown.

    Parameters
    ----------
    report:
        The assembled report.
    link_base_url:
        When set, impacted assets with an ``asset_id`` are rendered as links
        to ``{link_base_url}/{asset_id}``.
    """
    link_base = link_base_url.rstrip("/") if link_base_url else None
    lines: list[str] = [TITLE, ""]

    lines.append(f"**Changed Models:** {len(report.changed_models)}")
    lines.append(f"**Matched Tasks:** {len(report.matched_tasks)}")
    lines.append(f"**Total Potential Impact:** {report.total_impacted} downstream items")

    if report.changed_models and not report.matched_tasks:
        lines.extend(["", "No catalog tasks matched the changed models."])

    for task in report.matched_tasks:
        lines.extend(
            [
                "",
                "### Matched Task",
                f"- Task: {task.name}",
                f"  - ID: {task.task_id or 'Unknown'}",
                f"  - Connection: {task.connection_name or task.connection_id or 'Unknown'}",
                f"  - Asset: {task.asset_id or 'Unknown'}",
            ]
        )

    for impact in report.task_impacts:
        lines.extend(["", f"## Impacts for Task: {impact.task.name}"])
        lines.append(f"### Directly Impacted ({len(impact.direct)})")
        lines.extend(_record_list(impact.direct, link_base, "No direct impacts found"))
        lines.extend(["", f"### Indirectly Impacted ({len(impact.indirect)})"])
        lines.extend(_record_list(impact.indirect, link_base, "No indirect impacts found"))

    lines.extend(
        [
            "",
            "## Combined Impact Summary",
            f"**Total Direct Impacts:** {len(report.direct_impacts)}",
            f"**Total Indirect Impacts:** {len(report.indirect_impacts)}",
            "",
            f"### Unique Directly Impacted Models ({len(report.direct_impacts)})",
        ]
    )
    lines.extend(_record_list(report.direct_impacts, link_base, "No direct impacts found"))
    lines.extend(["", f"### Unique Indirectly Impacted Models ({len(report.indirect_impacts)})"])
    lines.extend(_record_list(report.indirect_impacts, link_base, "No indirect impacts found"))

    sql_diffs, yml_diffs = _split_by_kind(report.column_diffs)
    lines.extend(_column_section("SQL Column Changes", sql_diffs))
    lines.extend(_column_section("YML Column Changes", yml_diffs))

    if report.warnings:
        lines.extend(["", "### Warnings"])
        lines.extend(f"- :warning: {w.message}" for w in report.warnings)

    if report.notes:
        lines.extend(["", "### Notes"])
        lines.extend(f"- {note}" for note in report.notes)

    return "\n".join(lines) + "\n"


def render_unavailable(reason: str) -> str:
    """Render the comment posted when the analysis could not run at all."""
    return f"{TITLE}\n\nNo impact analysis possible: {reason}\n"
