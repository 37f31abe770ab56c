"""Lineage client: immediate downstream neighbours of an asset."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from impact_engine.clients.base import ApiClient
from impact_engine.models.catalog import AssetIdentity, IdentityKey
from impact_engine.models.lineage import FlowDirection, LineageEdge

logger = logging.getLogger(__name__)

LINEAGE_PATH = "/api/lineage/entities/linked/"


class _LineageRow(BaseModel):
    """Wire shape of one row of the linked-entities reply."""

    model_config = ConfigDict(extra="ignore")

    asset_id: str | int | None = None
    connection_id: str | int | None = None
    entity: str | int | None = None
    name: str | None = None
    asset_name: str | None = None
    connection_name: str | None = None
    flow: FlowDirection

    def to_edge(self) -> LineageEdge:
        name = self.name or ""
        return LineageEdge(
            target=AssetIdentity(
                asset_id=self.asset_id,
                connection_id=self.connection_id,
                entity=self.entity,
                name=name,
                asset_name=self.asset_name or name,
            ),
            name=name,
            connection_name=self.connection_name or "",
            flow=self.flow,
        )


def parse_downstream(rows: list[Any], identity: AssetIdentity) -> list[LineageEdge]:
    """Validate raw rows and keep the downstream, non-self edges.

    Rows that fail validation are dropped individually.
    """
    edges: list[LineageEdge] = []
    for row in rows:
        try:
            edge = _LineageRow.model_validate(row).to_edge()
        except ValidationError:
            logger.warning("Skipping malformed lineage row for %s: %.200r", identity.label(), row)
            continue
        if edge.flow is not FlowDirection.DOWNSTREAM:
            continue
        if _is_self_edge(edge, identity):
            continue
        edges.append(edge)
    return edges


def _is_self_edge(edge: LineageEdge, identity: AssetIdentity) -> bool:
    if identity.name and edge.name == identity.name:
        return True
    if not identity.asset_id:
        return False
    return edge.target.key(IdentityKey.ASSET) == identity.key(IdentityKey.ASSET)


class LineageClient(ApiClient):
    """Fetch linked entities from the lineage service."""

    async def get_downstream(self, identity: AssetIdentity) -> list[LineageEdge]:
        """Return the downstream edges of *identity*.

        An error or malformed reply yields ``[]``, which the walker cannot
        tell apart from a true leaf.
        """
        payload = {
            "asset_id": identity.asset_id,
            "connection_id": identity.connection_id,
            "entity": identity.entity,
        }
        rows = await self._post_rows(LINEAGE_PATH, payload)
        if rows is None:
            logger.error("Lineage lookup failed for %s; treating as leaf", identity.label())
            return []
        return parse_downstream(rows, identity)
