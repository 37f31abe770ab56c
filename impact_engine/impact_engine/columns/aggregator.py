"""Per-file column diffs between the base and head revisions of a PR."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from impact_engine.columns.differ import diff_columns
from impact_engine.columns.extractors import extract_columns, is_supported
from impact_engine.errors import ColumnParseError
from impact_engine.models.columns import ColumnDiff

logger = logging.getLogger(__name__)

ContentGetter = Callable[[str, str], str | None]


class ColumnDiffAggregator:
    """Compute a :class:`ColumnDiff` for every changed model file.

    Parameters
    ----------
    get_content:
        ``(revision, path) -> text | None``; ``None`` means the path does not
        exist at that revision.
    base_rev:
        Revision holding the "before" content.  When ``None`` every file is
        treated as newly added.
    head_rev:
        Revision holding the "after" content.
    dialect:
        sqlglot dialect passed to the SQL extractor.
    """

    def __init__(
        self,
        get_content: ContentGetter,
        base_rev: str | None,
        head_rev: str,
        *,
        dialect: str | None = None,
    ) -> None:
        self._get_content = get_content
        self._base_rev = base_rev
        self._head_rev = head_rev
        self._dialect = dialect

    def diff_file(self, path: str) -> ColumnDiff | None:
        """Return the column diff for *path*, or ``None`` if it is skipped.

        Files are skipped when the extension is unsupported, the file no
        longer exists at head, or either side fails to parse.
        """
        if not is_supported(path):
            return None

        after_text = self._get_content(self._head_rev, path)
        if after_text is None:
            logger.info("Skipping %s: deleted at %s", path, self._head_rev)
            return None
        before_text = self._get_content(self._base_rev, path) if self._base_rev else None

        try:
            after = extract_columns(after_text, path, dialect=self._dialect)
            before = extract_columns(before_text, path, dialect=self._dialect) if before_text is not None else []
        except ColumnParseError as exc:
            logger.error("Skipping column diff for %s: %s", path, exc)
            return None

        return diff_columns(before, after, file=path)

    def aggregate(self, paths: Iterable[str]) -> list[ColumnDiff]:
        """Return the non-empty column diffs for *paths*, in input order."""
        diffs: list[ColumnDiff] = []
        seen: set[str] = set()
        for path in paths:
            if path in seen:
                continue
            seen.add(path)
            try:
                diff = self.diff_file(path)
            except Exception as exc:  # noqa: BLE001
                logger.error("Error processing %s: %s", path, exc)
                continue
            if diff is not None and diff.has_changes:
                diffs.append(diff)
        logger.info("Column changes detected in %d file(s)", len(diffs))
        return diffs
