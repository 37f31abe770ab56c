"""HTTP clients for the data catalog and lineage services."""

from __future__ import annotations

from impact_engine.clients.base import ApiClient
from impact_engine.clients.catalog import CatalogClient
from impact_engine.clients.lineage import LineageClient

__all__ = [
    "ApiClient",
    "CatalogClient",
    "LineageClient",
]
