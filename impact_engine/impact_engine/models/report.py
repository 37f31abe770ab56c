"""The structured report handed to renderers and publishers."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from impact_engine.models.catalog import CatalogTask
from impact_engine.models.columns import ColumnDiff
from impact_engine.models.lineage import ImpactRecord, TraversalLimitExceeded


class TaskImpact(BaseModel):
    """Direct and indirect impacts reachable from one matched task."""

    model_config = ConfigDict(frozen=True)

    task: CatalogTask
    direct: tuple[ImpactRecord, ...] = ()
    indirect: tuple[ImpactRecord, ...] = ()


class ImpactReport(BaseModel):
    """Top-level result of one analysis run.  Immutable after assembly."""

    model_config = ConfigDict(frozen=True)

    changed_models: tuple[str, ...] = ()
    matched_tasks: tuple[CatalogTask, ...] = ()
    task_impacts: tuple[TaskImpact, ...] = ()
    direct_impacts: tuple[ImpactRecord, ...] = ()
    indirect_impacts: tuple[ImpactRecord, ...] = ()
    column_diffs: tuple[ColumnDiff, ...] = ()
    warnings: tuple[TraversalLimitExceeded, ...] = ()
    notes: tuple[str, ...] = Field(default=(), description="Free-form remarks shown at the end of the report.")

    @property
    def total_impacted(self) -> int:
        return len(self.direct_impacts) + len(self.indirect_impacts)
