"""Lineage edge and impact record models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from impact_engine.models.catalog import AssetIdentity


class FlowDirection(str, Enum):
    """Direction of a lineage edge relative to the queried asset."""

    UPSTREAM = "upstream"
    DOWNSTREAM = "downstream"
    SELF = "self"


class LineageEdge(BaseModel):
    """A single neighbour returned by the lineage service."""

    model_config = ConfigDict(frozen=True)

    target: AssetIdentity
    name: str = ""
    connection_name: str = ""
    flow: FlowDirection


class ImpactClassification(str, Enum):
    """Whether an impacted asset is one hop away or further."""

    DIRECT = "direct"
    INDIRECT = "indirect"


class ImpactRecord(BaseModel):
    """A downstream asset discovered during a traversal."""

    model_config = ConfigDict(frozen=True)

    identity: AssetIdentity
    name: str = ""
    connection_name: str = ""
    depth: int = Field(..., ge=1, description="Number of lineage hops from the seed.")
    classification: ImpactClassification
    source: str = Field(default="", description="Seed task whose walk first discovered the record.")


class TraversalLimitExceeded(BaseModel):
    """Non-fatal warning emitted when a traversal ceiling is hit."""

    model_config = ConfigDict(frozen=True)

    limit: str = Field(..., description="Which ceiling was hit: 'max_depth' or 'max_records'.")
    threshold: int
    message: str


class TraversalResult(BaseModel):
    """Outcome of one walker run.

    ``direct`` and ``indirect`` never share an identity and neither contains
    duplicates under the identity key the walker was configured with.
    """

    direct: list[ImpactRecord] = Field(default_factory=list)
    indirect: list[ImpactRecord] = Field(default_factory=list)
    warnings: list[TraversalLimitExceeded] = Field(default_factory=list)
    expanded_count: int = Field(default=0, description="Number of lineage lookups performed.")
    dropped_duplicates: int = 0

    @property
    def total(self) -> int:
        return len(self.direct) + len(self.indirect)

    @property
    def truncated(self) -> bool:
        return bool(self.warnings)
