"""Unit tests for impact_engine.columns.aggregator."""

from __future__ import annotations

from impact_engine.columns.aggregator import ColumnDiffAggregator

BASE = "base123"
HEAD = "head456"


def _make_getter(files: dict[tuple[str, str], str], calls: list[tuple[str, str]] | None = None):
    def get_content(revision: str, path: str) -> str | None:
        if calls is not None:
            calls.append((revision, path))
        return files.get((revision, path))

    return get_content


class TestColumnDiffAggregator:
    def test_sql_column_added(self) -> None:
        files = {
            (BASE, "models/customer.sql"): "SELECT id, name FROM customers",
            (HEAD, "models/customer.sql"): "SELECT id, name, email FROM customers",
        }
        diffs = ColumnDiffAggregator(_make_getter(files), BASE, HEAD).aggregate(["models/customer.sql"])

        assert len(diffs) == 1
        assert diffs[0].file == "models/customer.sql"
        assert diffs[0].added_names == ["email"]

    def test_new_file_reports_all_columns_added(self) -> None:
        files = {(HEAD, "models/new.sql"): "select a, b from t"}
        diffs = ColumnDiffAggregator(_make_getter(files), BASE, HEAD).aggregate(["models/new.sql"])
        assert diffs[0].added_names == ["a", "b"]

    def test_no_base_revision_reports_all_added(self) -> None:
        calls: list[tuple[str, str]] = []
        files = {(HEAD, "m.sql"): "select a from t"}
        diffs = ColumnDiffAggregator(_make_getter(files, calls), None, HEAD).aggregate(["m.sql"])

        assert diffs[0].added_names == ["a"]
        assert calls == [(HEAD, "m.sql")]

    def test_deleted_file_skipped(self) -> None:
        files = {(BASE, "models/old.sql"): "select a from t"}
        assert ColumnDiffAggregator(_make_getter(files), BASE, HEAD).aggregate(["models/old.sql"]) == []

    def test_unchanged_file_omitted(self) -> None:
        text = "select a from t"
        files = {(BASE, "m.sql"): text, (HEAD, "m.sql"): text}
        assert ColumnDiffAggregator(_make_getter(files), BASE, HEAD).aggregate(["m.sql"]) == []

    def test_unsupported_extension_never_fetched(self) -> None:
        calls: list[tuple[str, str]] = []
        ColumnDiffAggregator(_make_getter({}, calls), BASE, HEAD).aggregate(["README.md"])
        assert calls == []

    def test_malformed_yaml_skipped_others_kept(self) -> None:
        files = {
            (HEAD, "models/bad.yml"): "models: [\n  - name: x\n    columns: {",
            (HEAD, "models/schema.yml"): "models:\n  - name: m\n    columns:\n      - name: id\n",
        }
        diffs = ColumnDiffAggregator(_make_getter(files), BASE, HEAD).aggregate(
            ["models/bad.yml", "models/schema.yml"],
        )
        assert [d.file for d in diffs] == ["models/schema.yml"]

    def test_content_error_skips_file(self) -> None:
        def get_content(revision: str, path: str) -> str | None:
            if path == "boom.sql":
                raise OSError("disk on fire")
            return "select a from t" if revision == HEAD else None

        diffs = ColumnDiffAggregator(get_content, BASE, HEAD).aggregate(["boom.sql", "ok.sql"])
        assert [d.file for d in diffs] == ["ok.sql"]

    def test_duplicate_paths_processed_once(self) -> None:
        calls: list[tuple[str, str]] = []
        files = {(HEAD, "m.sql"): "select a from t"}
        diffs = ColumnDiffAggregator(_make_getter(files, calls), BASE, HEAD).aggregate(["m.sql", "m.sql"])

        assert len(diffs) == 1
        assert calls.count((HEAD, "m.sql")) == 1

    def test_yaml_attribute_change_is_modification(self) -> None:
        before = "models:\n  - name: m\n    columns:\n      - name: id\n        tests: [unique]\n"
        after = "models:\n  - name: m\n    columns:\n      - name: id\n        tests: [unique, not_null]\n"
        files = {(BASE, "schema.yaml"): before, (HEAD, "schema.yaml"): after}
        diffs = ColumnDiffAggregator(_make_getter(files), BASE, HEAD).aggregate(["schema.yaml"])

        assert diffs[0].modified_names == ["id"]
        assert diffs[0].added == []
