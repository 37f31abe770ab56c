"""Match changed model files against catalog tasks.

A task is relevant when it is a dbt task whose name equals the basename
(without extension) of a changed ``.sql`` file.  Strict mode additionally
requires the task's job to appear as a directory segment of that file's
path, which disambiguates identically named models in different projects.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from enum import Enum
from pathlib import PurePosixPath

from impact_engine.models.catalog import CatalogTask

logger = logging.getLogger(__name__)

DBT_CONNECTION_TYPE = "dbt"
MODEL_EXTENSIONS = frozenset({".sql"})

TaskPredicate = Callable[[CatalogTask], bool]


class MatchMode(str, Enum):
    """How strictly catalog tasks are matched to changed files."""

    LOOSE = "loose"  # name only
    STRICT = "strict"  # name and job


def _model_name(path: str) -> str:
    return PurePosixPath(path.replace("\\", "/")).stem


def extract_model_names(paths: Iterable[str]) -> list[str]:
    """Return model names for the SQL files in *paths*.

    Names are deduplicated, preserving the order of first appearance.
    """
    names: list[str] = []
    seen: set[str] = set()
    for path in paths:
        if not path or PurePosixPath(path).suffix.lower() not in MODEL_EXTENSIONS:
            continue
        name = _model_name(path)
        if name and name not in seen:
            seen.add(name)
            names.append(name)
    return names


class TaskMatcher:
    """Relevance predicate built from the set of changed file paths.

    Parameters
    ----------
    paths:
        Repository-relative paths of changed files.
    mode:
        :attr:`MatchMode.LOOSE` matches on name alone; :attr:`MatchMode.STRICT`
        matches on the ``(name, job)`` pair.
    """

    def __init__(self, paths: Iterable[str], mode: MatchMode = MatchMode.LOOSE) -> None:
        self._mode = mode
        self._segments: dict[str, set[str]] = {}
        for path in paths:
            if not path or PurePosixPath(path).suffix.lower() not in MODEL_EXTENSIONS:
                continue
            posix = PurePosixPath(path.replace("\\", "/"))
            self._segments.setdefault(posix.stem, set()).update(posix.parent.parts)

    @property
    def mode(self) -> MatchMode:
        return self._mode

    @property
    def model_names(self) -> set[str]:
        return set(self._segments)

    def __call__(self, task: CatalogTask) -> bool:
        if task.connection_type != DBT_CONNECTION_TYPE:
            return False
        if task.name not in self._segments:
            return False
        if self._mode is MatchMode.STRICT:
            return bool(task.job) and task.job in self._segments[task.name]
        return True


def match_tasks(tasks: Iterable[CatalogTask], predicate: TaskPredicate) -> list[CatalogTask]:
    """Filter *tasks* through *predicate*, dropping repeated task ids."""
    matched: list[CatalogTask] = []
    seen: set[tuple[str, str, str]] = set()
    for task in tasks:
        if not predicate(task):
            continue
        key = (task.asset_id, task.connection_id, task.task_id)
        if key in seen:
            logger.debug("Skipping duplicate catalog task %s", task.name)
            continue
        seen.add(key)
        matched.append(task)
    return matched
