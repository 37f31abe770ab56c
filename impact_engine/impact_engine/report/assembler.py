"""Merge the outputs of one run into an immutable :class:`ImpactReport`."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from impact_engine.models.catalog import CatalogTask
from impact_engine.models.columns import ColumnDiff
from impact_engine.models.lineage import TraversalResult
from impact_engine.models.report import ImpactReport, TaskImpact


def _task_impacts(
    matched_tasks: Sequence[CatalogTask],
    per_task: Mapping[str, TraversalResult] | None,
) -> tuple[TaskImpact, ...]:
    if per_task is None:
        return ()
    impacts: list[TaskImpact] = []
    seen: set[str] = set()
    for task in matched_tasks:
        # Tasks sharing a name were walked together.
        if task.name in seen:
            continue
        seen.add(task.name)
        result = per_task.get(task.name)
        impacts.append(
            TaskImpact(
                task=task,
                direct=tuple(result.direct) if result else (),
                indirect=tuple(result.indirect) if result else (),
            )
        )
    return tuple(impacts)


def assemble_report(
    changed_models: Sequence[str],
    matched_tasks: Sequence[CatalogTask],
    traversal: TraversalResult,
    column_diffs: Sequence[ColumnDiff],
    per_task: Mapping[str, TraversalResult] | None = None,
    notes: Iterable[str] = (),
) -> ImpactReport:
    """Build the final report.

    Pure function: performs no I/O and copies every input into the frozen
    report, so later changes to the arguments are not observed.

    Parameters
    ----------
    changed_models:
        Model names derived from the changed files.
    matched_tasks:
        Catalog tasks that seeded the walk.
    traversal:
        Result of the global walk over all seeds.  Its warnings become
        report warnings.
    column_diffs:
        Non-empty per-file column diffs.
    per_task:
        Optional per-seed walks keyed by task name, for the per-task sections.
    notes:
        Free-form remarks (e.g. why a step was skipped).
    """
    return ImpactReport(
        changed_models=tuple(changed_models),
        matched_tasks=tuple(matched_tasks),
        task_impacts=_task_impacts(matched_tasks, per_task),
        direct_impacts=tuple(traversal.direct),
        indirect_impacts=tuple(traversal.indirect),
        column_diffs=tuple(column_diffs),
        warnings=tuple(traversal.warnings),
        notes=tuple(notes),
    )
