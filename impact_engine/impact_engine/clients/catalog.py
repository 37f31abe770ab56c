"""Catalog client: list pipeline tasks and resolve changed models to them."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from impact_engine.clients.base import ApiClient
from impact_engine.graph.matching import TaskPredicate, match_tasks
from impact_engine.models.catalog import CatalogTask

logger = logging.getLogger(__name__)

TASK_PATH = "/api/pipeline/task/"


def _task_query(page: int, page_limit: int) -> dict[str, Any]:
    return {
        "chartType": 0,
        "search": {},
        "page": page,
        "pageLimit": page_limit,
        "sortBy": "name",
        "orderBy": "asc",
        "date_filter": {"days": "All", "selected": "All"},
        "chart_filter": {},
        "is_chart": True,
    }


class CatalogClient(ApiClient):
    """Read-only access to the catalog's pipeline task listing.

    Parameters
    ----------
    page_limit:
        Rows requested per page.
    max_pages:
        Upper bound on pages fetched by :meth:`list_tasks`.
    """

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        *,
        timeout: float = 30.0,
        page_limit: int = 100,
        max_pages: int = 50,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(base_url, client_id, client_secret, timeout=timeout, http_client=http_client)
        self._page_limit = page_limit
        self._max_pages = max_pages

    async def ping(self) -> bool:
        """Return ``True`` if the task endpoint answers with a well-formed reply."""
        rows = await self._post_rows(TASK_PATH, _task_query(0, 1))
        return rows is not None

    async def list_tasks(self) -> list[CatalogTask]:
        """Return every task in the catalog, best effort.

        Pages are fetched until one comes back short or ``max_pages`` is
        reached.  A failed page ends the listing; rows that do not validate
        as :class:`CatalogTask` are skipped.
        """
        tasks: list[CatalogTask] = []
        for page in range(self._max_pages):
            rows = await self._post_rows(TASK_PATH, _task_query(page, self._page_limit))
            if rows is None:
                if page == 0:
                    logger.error("Could not list catalog tasks; continuing with none")
                else:
                    logger.warning("Catalog listing stopped at page %d after an error", page)
                break

            for row in rows:
                try:
                    tasks.append(CatalogTask.model_validate(row))
                except ValidationError:
                    logger.warning("Skipping malformed catalog task row: %.200r", row)

            if len(rows) < self._page_limit:
                break
        else:
            logger.warning("Catalog listing truncated at %d pages", self._max_pages)

        logger.info("Fetched %d catalog tasks", len(tasks))
        return tasks

    async def resolve(self, predicate: TaskPredicate) -> list[CatalogTask]:
        """Return the tasks accepted by *predicate*."""
        matched = match_tasks(await self.list_tasks(), predicate)
        logger.info("Matched %d catalog task(s) to changed models", len(matched))
        return matched
