"""Domain models for the impact engine."""

from impact_engine.models.catalog import AssetIdentity, CatalogTask, IdentityKey
from impact_engine.models.columns import ColumnDescriptor, ColumnDiff, ColumnModification
from impact_engine.models.lineage import (
    FlowDirection,
    ImpactClassification,
    ImpactRecord,
    LineageEdge,
    TraversalLimitExceeded,
    TraversalResult,
)
from impact_engine.models.report import ImpactReport, TaskImpact

__all__ = [
    "AssetIdentity",
    "CatalogTask",
    "ColumnDescriptor",
    "ColumnDiff",
    "ColumnModification",
    "FlowDirection",
    "IdentityKey",
    "ImpactClassification",
    "ImpactRecord",
    "ImpactReport",
    "LineageEdge",
    "TaskImpact",
    "TraversalLimitExceeded",
    "TraversalResult",
]
