"""Catalog-side identity models.

An :class:`AssetIdentity` is the unit of deduplication for the impact graph
walker.  Which of its fields define "the same asset" is selected by an
:class:`IdentityKey` so that callers can switch between the canonical
``(asset_id, connection_id, entity)`` triple and the name-based alternative.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IdentityKey(str, Enum):
    """Which fields of an :class:`AssetIdentity` define equality."""

    ASSET = "asset"  # (asset_id, connection_id, entity)
    NAME = "name"  # (name, connection_id, asset_name)


class AssetIdentity(BaseModel):
    """Immutable reference to a catalogued asset."""

    model_config = ConfigDict(frozen=True)

    asset_id: str = Field(default="", description="Catalog asset identifier.")
    connection_id: str = Field(default="", description="Connection the asset belongs to.")
    entity: str = Field(
        default="",
        description="Disambiguates a specific task or table within the connection.",
    )
    name: str = Field(default="", description="Display name, used by the NAME identity key.")
    asset_name: str = Field(default="", description="Asset name, used by the NAME identity key.")

    @field_validator("asset_id", "connection_id", "entity", "name", "asset_name", mode="before")
    @classmethod
    def _coerce_to_str(cls, v: object) -> str:
        # The catalog returns ids as ints or strings depending on the endpoint.
        if v is None:
            return ""
        return str(v)

    def key(self, strategy: IdentityKey = IdentityKey.ASSET) -> tuple[str, str, str]:
        """Return the hashable deduplication key for *strategy*."""
        if strategy is IdentityKey.NAME:
            return (self.name, self.connection_id, self.asset_name)
        return (self.asset_id, self.connection_id, self.entity)

    def label(self) -> str:
        """Human-readable label for logs."""
        return self.name or self.entity or self.asset_id or "<unknown>"


class CatalogTask(BaseModel):
    """A named pipeline entry returned by the catalog service."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    connection_type: str = ""
    connection_id: str = ""
    connection_name: str = ""
    asset_id: str = ""
    task_id: str = ""
    job: str | None = None

    @field_validator("connection_type", "connection_id", "connection_name", "asset_id", "task_id", mode="before")
    @classmethod
    def _coerce_to_str(cls, v: object) -> str:
        if v is None:
            return ""
        return str(v)

    @property
    def identity(self) -> AssetIdentity:
        """Seed identity for the walker; the task id acts as the entity."""
        return AssetIdentity(
            asset_id=self.asset_id,
            connection_id=self.connection_id,
            entity=self.task_id,
            name=self.name,
            asset_name=self.name,
        )
