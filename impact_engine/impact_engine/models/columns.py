"""Column-level schema models for before/after comparison of model files."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ColumnDescriptor(BaseModel):
    """A declared or selected column.

    Add/remove comparisons use ``name`` only.  A column present on both sides
    counts as modified when its ``attributes`` differ structurally.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    attributes: dict[str, Any] = Field(default_factory=dict)


class ColumnModification(BaseModel):
    """A column present before and after whose attributes changed."""

    model_config = ConfigDict(frozen=True)

    name: str
    before: ColumnDescriptor
    after: ColumnDescriptor


class ColumnDiff(BaseModel):
    """Column changes detected in a single model file."""

    model_config = ConfigDict(frozen=True)

    file: str = ""
    added: list[ColumnDescriptor] = Field(default_factory=list)
    removed: list[ColumnDescriptor] = Field(default_factory=list)
    modified: list[ColumnModification] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.modified)

    @property
    def added_names(self) -> list[str]:
        return [c.name for c in self.added]

    @property
    def removed_names(self) -> list[str]:
        return [c.name for c in self.removed]

    @property
    def modified_names(self) -> list[str]:
        return [m.name for m in self.modified]
