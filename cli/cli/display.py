"""Rich output formatting for the impact analysis CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that machine-readable output on *stdout* is never
polluted with human-readable decoration.
"""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from impact_engine.models import (
    ColumnDiff,
    ImpactClassification,
    ImpactRecord,
    ImpactReport,
    TraversalResult,
)

_CLASSIFICATION_COLOURS: dict[ImpactClassification, str] = {
    ImpactClassification.DIRECT: "red",
    ImpactClassification.INDIRECT: "yellow",
}


def _coloured_classification(classification: ImpactClassification) -> str:
    """Return a Rich markup string with the classification colour-coded."""
    colour = _CLASSIFICATION_COLOURS.get(classification, "white")
    return f"[{colour}]{classification.value}[/{colour}]"


# ---------------------------------------------------------------------------
# Impact report
# ---------------------------------------------------------------------------


def display_impact_table(console: Console, records: Sequence[ImpactRecord], title: str = "Impacted Assets") -> None:
    """Render impacted assets as a table ordered direct first, then by depth."""
    if not records:
        console.print("[dim]No downstream impacts found.[/dim]")
        return

    table = Table(title=title, show_lines=False)
    table.add_column("Asset", style="bold")
    table.add_column("Connection")
    table.add_column("Impact")
    table.add_column("Depth", justify="right")
    table.add_column("Via")

    for record in sorted(records, key=lambda r: (r.depth, r.name)):
        table.add_row(
            record.name or record.identity.label(),
            record.connection_name or "-",
            _coloured_classification(record.classification),
            str(record.depth),
            record.source or "-",
        )
    console.print(table)


def display_report_summary(console: Console, report: ImpactReport) -> None:
    """Render an overview panel, the impact table and column changes.

    Parameters
    ----------
    console:
        Rich console to write to (typically stderr).
    report:
        The assembled report.
    """
    header_lines = [
        f"[bold]Changed models:[/bold]  {len(report.changed_models)}",
        f"[bold]Matched tasks:[/bold]   {len(report.matched_tasks)}",
        f"[bold]Direct:[/bold]          {len(report.direct_impacts)}",
        f"[bold]Indirect:[/bold]        {len(report.indirect_impacts)}",
        f"[bold]Column changes:[/bold]  {len(report.column_diffs)} file(s)",
    ]
    console.print(Panel("\n".join(header_lines), title="Impact Analysis", border_style="blue"))

    display_impact_table(console, [*report.direct_impacts, *report.indirect_impacts])

    if report.column_diffs:
        display_column_diffs(console, report.column_diffs)

    for warning in report.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning.message}")
    for note in report.notes:
        console.print(f"[dim]{note}[/dim]")


# ---------------------------------------------------------------------------
# Lineage
# ---------------------------------------------------------------------------


def display_downstream_tree(console: Console, task_name: str, result: TraversalResult) -> None:
    """Render the direct and indirect impacts of one task as a tree."""
    tree = Tree(f"[bold yellow]{task_name}[/bold yellow]", guide_style="dim")

    if result.direct:
        direct_branch = tree.add("[bold red]direct[/bold red]")
        for record in result.direct:
            direct_branch.add(f"[red]{record.name}[/red]")
    else:
        tree.add("[dim]no direct impacts[/dim]")

    if result.indirect:
        indirect_branch = tree.add("[bold yellow]indirect[/bold yellow]")
        for record in sorted(result.indirect, key=lambda r: r.depth):
            indirect_branch.add(f"[yellow]{record.name}[/yellow] [dim](depth {record.depth})[/dim]")
    else:
        tree.add("[dim]no indirect impacts[/dim]")

    console.print(Panel(tree, title="Downstream Lineage", border_style="yellow"))
    summary = f"[bold]{len(result.direct)}[/bold] direct, [bold]{len(result.indirect)}[/bold] indirect"
    if result.truncated:
        summary += " [yellow](partial)[/yellow]"
    console.print(summary)

    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning.message}")


# ---------------------------------------------------------------------------
# Column changes
# ---------------------------------------------------------------------------


def display_column_diffs(console: Console, diffs: Sequence[ColumnDiff]) -> None:
    """Render one row per changed column."""
    if not diffs:
        console.print("[dim]No column changes detected.[/dim]")
        return

    table = Table(title="Column Changes")
    table.add_column("File", style="bold")
    table.add_column("Column")
    table.add_column("Change")

    for diff in diffs:
        for name in diff.added_names:
            table.add_row(diff.file, name, "[green]added[/green]")
        for name in diff.removed_names:
            table.add_row(diff.file, name, "[red]removed[/red]")
        for name in diff.modified_names:
            table.add_row(diff.file, name, "[yellow]modified[/yellow]")
    console.print(table)
