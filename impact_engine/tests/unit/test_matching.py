"""Unit tests for impact_engine.graph.matching."""

from __future__ import annotations

from impact_engine.graph.matching import MatchMode, TaskMatcher, extract_model_names, match_tasks
from impact_engine.models.catalog import CatalogTask


def _make_task(
    name: str,
    *,
    connection_type: str = "dbt",
    job: str | None = None,
    task_id: str = "1",
) -> CatalogTask:
    return CatalogTask(
        name=name,
        connection_type=connection_type,
        connection_id="c1",
        asset_id=f"asset-{name}",
        task_id=task_id,
        job=job,
    )


class TestExtractModelNames:
    def test_sql_basenames_only(self) -> None:
        paths = ["models/customer.sql", "models/schema.yml", "README.md", "models/staging/orders.SQL"]
        assert extract_model_names(paths) == ["customer", "orders"]

    def test_dedupes_preserving_order(self) -> None:
        paths = ["a/orders.sql", "b/customer.sql", "c/orders.sql"]
        assert extract_model_names(paths) == ["orders", "customer"]

    def test_ignores_empty_entries(self) -> None:
        assert extract_model_names(["", "x.sql"]) == ["x"]

    def test_windows_separators(self) -> None:
        assert extract_model_names(["models\\marts\\customer.sql"]) == ["customer"]


class TestTaskMatcher:
    def test_loose_matches_dbt_by_name(self) -> None:
        matcher = TaskMatcher(["models/customer.sql"])
        assert matcher(_make_task("customer")) is True
        assert matcher(_make_task("orders")) is False

    def test_non_dbt_rejected(self) -> None:
        matcher = TaskMatcher(["models/customer.sql"])
        assert matcher(_make_task("customer", connection_type="snowflake")) is False

    def test_strict_requires_job_segment(self) -> None:
        matcher = TaskMatcher(["snowflake_deployment/models/customer.sql"], MatchMode.STRICT)
        assert matcher(_make_task("customer", job="snowflake_deployment")) is True
        assert matcher(_make_task("customer", job="other_project")) is False
        assert matcher(_make_task("customer")) is False

    def test_strict_with_same_name_in_two_projects(self) -> None:
        matcher = TaskMatcher(["proj_a/customer.sql", "proj_b/customer.sql"], MatchMode.STRICT)
        assert matcher(_make_task("customer", job="proj_a")) is True
        assert matcher(_make_task("customer", job="proj_b")) is True
        assert matcher(_make_task("customer", job="proj_c")) is False

    def test_model_names_and_mode(self) -> None:
        matcher = TaskMatcher(["x/a.sql", "x/b.yml"], MatchMode.STRICT)
        assert matcher.model_names == {"a"}
        assert matcher.mode is MatchMode.STRICT


class TestMatchTasks:
    def test_custom_predicate(self) -> None:
        tasks = [_make_task("a"), _make_task("b")]
        assert [t.name for t in match_tasks(tasks, lambda t: t.name == "b")] == ["b"]

    def test_drops_duplicate_task_ids(self) -> None:
        tasks = [_make_task("a", task_id="1"), _make_task("a", task_id="1"), _make_task("a", task_id="2")]
        matched = match_tasks(tasks, TaskMatcher(["a.sql"]))
        assert [t.task_id for t in matched] == ["1", "2"]
