"""Set-based comparison of two column lists."""

from __future__ import annotations

from collections.abc import Sequence

from impact_engine.models.columns import ColumnDescriptor, ColumnDiff, ColumnModification


def _by_name(columns: Sequence[ColumnDescriptor] | None) -> dict[str, ColumnDescriptor]:
    indexed: dict[str, ColumnDescriptor] = {}
    for column in columns or ():
        indexed.setdefault(column.name, column)
    return indexed


def diff_columns(
    before: Sequence[ColumnDescriptor] | None,
    after: Sequence[ColumnDescriptor] | None,
    *,
    file: str = "",
) -> ColumnDiff:
    """Compare two column lists.

    Column order is irrelevant.  ``added`` and ``removed`` are decided by
    name; a column on both sides is ``modified`` when its attributes are not
    structurally equal.  ``None`` on either side means "no columns".  Every
    output list is sorted by column name.
    """
    old = _by_name(before)
    new = _by_name(after)

    added = [new[name] for name in sorted(new.keys() - old.keys())]
    removed = [old[name] for name in sorted(old.keys() - new.keys())]
    modified = [
        ColumnModification(name=name, before=old[name], after=new[name])
        for name in sorted(old.keys() & new.keys())
        if old[name].attributes != new[name].attributes
    ]
    return ColumnDiff(file=file, added=added, removed=removed, modified=modified)
