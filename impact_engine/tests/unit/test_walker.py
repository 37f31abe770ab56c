"""Unit tests for impact_engine.graph.walker."""

from __future__ import annotations

import asyncio

import pytest
from impact_engine.graph.walker import CachingLineageSource, ImpactGraphWalker
from impact_engine.models.catalog import AssetIdentity, CatalogTask, IdentityKey
from impact_engine.models.lineage import FlowDirection, ImpactClassification, LineageEdge

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_identity(name: str, *, asset_id: str | None = None, connection_id: str = "c1") -> AssetIdentity:
    return AssetIdentity(
        asset_id=asset_id if asset_id is not None else f"asset-{name}",
        connection_id=connection_id,
        entity=name,
        name=name,
        asset_name=name,
    )


def _make_edge(name: str, **kwargs: str) -> LineageEdge:
    return LineageEdge(
        target=_make_identity(name, **kwargs),
        name=name,
        connection_name="warehouse",
        flow=FlowDirection.DOWNSTREAM,
    )


def _seed(name: str) -> tuple[str, AssetIdentity]:
    return (name, _make_identity(name))


class FakeLineage:
    """In-memory lineage graph keyed by asset name."""

    def __init__(
        self,
        graph: dict[str, list[str]],
        *,
        failing: set[str] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.graph = graph
        self.failing = failing or set()
        self.delays = delays or {}
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_downstream(self, identity: AssetIdentity) -> list[LineageEdge]:
        self.calls.append(identity.name)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(identity.name, 0))
            if identity.name in self.failing:
                raise RuntimeError(f"lineage service exploded for {identity.name}")
            return [_make_edge(child) for child in self.graph.get(identity.name, [])]
        finally:
            self.in_flight -= 1


def _names(records) -> set[str]:
    return {r.name for r in records}


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestClassification:
    @pytest.mark.asyncio
    async def test_direct_and_indirect_split(self) -> None:
        lineage = FakeLineage({"A": ["B", "C"], "B": ["D"]})
        result = await ImpactGraphWalker(lineage).walk([_seed("A")])

        assert _names(result.direct) == {"B", "C"}
        assert _names(result.indirect) == {"D"}
        assert all(r.classification is ImpactClassification.DIRECT for r in result.direct)
        assert all(r.classification is ImpactClassification.INDIRECT for r in result.indirect)

    @pytest.mark.asyncio
    async def test_depths_recorded(self) -> None:
        lineage = FakeLineage({"A": ["B"], "B": ["C"], "C": ["D"]})
        result = await ImpactGraphWalker(lineage).walk([_seed("A")])

        depths = {r.name: r.depth for r in [*result.direct, *result.indirect]}
        assert depths == {"B": 1, "C": 2, "D": 3}

    @pytest.mark.asyncio
    async def test_source_is_seed_name(self) -> None:
        lineage = FakeLineage({"A": ["B"], "B": ["C"], "S": ["T"]})
        result = await ImpactGraphWalker(lineage).walk([_seed("A"), _seed("S")])

        sources = {r.name: r.source for r in [*result.direct, *result.indirect]}
        assert sources == {"B": "A", "C": "A", "T": "S"}

    @pytest.mark.asyncio
    async def test_leaf_seed_yields_empty_result(self) -> None:
        result = await ImpactGraphWalker(FakeLineage({})).walk([_seed("A")])
        assert result.direct == []
        assert result.indirect == []
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_no_seeds(self) -> None:
        lineage = FakeLineage({"A": ["B"]})
        result = await ImpactGraphWalker(lineage).walk([])
        assert result.total == 0
        assert lineage.calls == []

    @pytest.mark.asyncio
    async def test_accepts_catalog_tasks(self) -> None:
        task = CatalogTask(
            name="A",
            connection_type="dbt",
            connection_id="c1",
            asset_id="asset-A",
            task_id="A",
        )
        lineage = FakeLineage({"A": ["B"]})
        result = await ImpactGraphWalker(lineage).walk([task])
        assert _names(result.direct) == {"B"}
        assert result.direct[0].source == "A"


# ---------------------------------------------------------------------------
# Deduplication and precedence
# ---------------------------------------------------------------------------


class TestDeduplication:
    @pytest.mark.asyncio
    async def test_diamond_reported_once(self) -> None:
        lineage = FakeLineage({"A": ["B", "C"], "B": ["D"], "C": ["D"]})
        result = await ImpactGraphWalker(lineage).walk([_seed("A")])

        assert [r.name for r in result.indirect] == ["D"]
        assert result.dropped_duplicates == 1
        assert lineage.calls.count("D") == 1

    @pytest.mark.asyncio
    async def test_direct_takes_precedence_within_seed(self) -> None:
        # B is both one hop (A->B) and two hops (A->C->B) away.
        lineage = FakeLineage({"A": ["B", "C"], "C": ["B"]})
        result = await ImpactGraphWalker(lineage).walk([_seed("A")])

        assert _names(result.direct) == {"B", "C"}
        assert result.indirect == []

    @pytest.mark.asyncio
    async def test_direct_takes_precedence_across_seeds(self) -> None:
        # X is direct for A and indirect for S.
        lineage = FakeLineage({"A": ["X"], "S": ["Y"], "Y": ["X"]})
        result = await ImpactGraphWalker(lineage).walk([_seed("S"), _seed("A")])

        assert _names(result.direct) == {"X", "Y"}
        assert result.indirect == []

    @pytest.mark.asyncio
    async def test_no_identity_in_both_sets(self) -> None:
        lineage = FakeLineage(
            {"A": ["B", "C"], "B": ["C", "D"], "C": ["D", "E"], "D": ["B"], "E": ["A"]},
        )
        result = await ImpactGraphWalker(lineage).walk([_seed("A")])

        direct_keys = [r.identity.key() for r in result.direct]
        indirect_keys = [r.identity.key() for r in result.indirect]
        assert len(direct_keys) == len(set(direct_keys))
        assert len(indirect_keys) == len(set(indirect_keys))
        assert not set(direct_keys) & set(indirect_keys)

    @pytest.mark.asyncio
    async def test_duplicate_seeds_expanded_once(self) -> None:
        lineage = FakeLineage({"A": ["B"]})
        result = await ImpactGraphWalker(lineage).walk([_seed("A"), _seed("A")])

        assert lineage.calls == ["A", "B"]
        assert _names(result.direct) == {"B"}

    @pytest.mark.asyncio
    async def test_name_identity_key(self) -> None:
        # Same name/connection/asset_name, different asset ids.
        class TwinLineage:
            async def get_downstream(self, identity: AssetIdentity) -> list[LineageEdge]:
                if identity.name != "A":
                    return []
                return [_make_edge("orders", asset_id="1"), _make_edge("orders", asset_id="2")]

        by_asset = await ImpactGraphWalker(TwinLineage()).walk([_seed("A")])
        by_name = await ImpactGraphWalker(TwinLineage(), identity_key=IdentityKey.NAME).walk([_seed("A")])

        assert len(by_asset.direct) == 2
        assert len(by_name.direct) == 1

    @pytest.mark.asyncio
    async def test_idempotent(self) -> None:
        graph = {"A": ["B", "C"], "B": ["D", "E"], "C": ["E"], "E": ["F"]}
        walker = ImpactGraphWalker(FakeLineage(graph))

        first = await walker.walk([_seed("A")])
        second = await walker.walk([_seed("A")])

        assert first.direct == second.direct
        assert first.indirect == second.indirect


# ---------------------------------------------------------------------------
# Termination
# ---------------------------------------------------------------------------


class TestTermination:
    @pytest.mark.asyncio
    async def test_two_node_cycle(self) -> None:
        lineage = FakeLineage({"A": ["B"], "B": ["A"]})
        result = await ImpactGraphWalker(lineage).walk([_seed("A")])

        assert _names(result.direct) == {"B"}
        assert _names(result.indirect) == {"A"}
        assert lineage.calls == ["A", "B"]
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_self_loop(self) -> None:
        lineage = FakeLineage({"A": ["B"], "B": ["B"]})
        result = await ImpactGraphWalker(lineage).walk([_seed("A")])

        assert _names(result.direct) == {"B"}
        assert result.indirect == []
        assert lineage.calls.count("B") == 1

    @pytest.mark.asyncio
    async def test_max_depth_warning(self) -> None:
        lineage = FakeLineage({"A": ["B"], "B": ["C"], "C": ["D"]})
        result = await ImpactGraphWalker(lineage, max_depth=1).walk([_seed("A")])

        assert _names(result.direct) == {"B"}
        assert result.indirect == []
        assert [w.limit for w in result.warnings] == ["max_depth"]
        assert result.truncated is True
        assert "B" not in lineage.calls

    @pytest.mark.asyncio
    async def test_max_depth_not_reached(self) -> None:
        lineage = FakeLineage({"A": ["B"], "B": ["C"]})
        result = await ImpactGraphWalker(lineage, max_depth=3).walk([_seed("A")])

        assert _names(result.indirect) == {"C"}
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_no_record_deeper_than_max_depth(self) -> None:
        chain = {str(i): [str(i + 1)] for i in range(20)}
        result = await ImpactGraphWalker(FakeLineage(chain), max_depth=5).walk([_seed("0")])

        assert max(r.depth for r in result.indirect) == 5
        assert result.warnings[0].threshold == 5

    @pytest.mark.asyncio
    async def test_max_records(self) -> None:
        lineage = FakeLineage({"A": ["B", "C", "D"], "B": ["E"]})
        result = await ImpactGraphWalker(lineage, max_records=2).walk([_seed("A")])

        assert result.total == 2
        assert [w.limit for w in result.warnings] == ["max_records"]

    @pytest.mark.asyncio
    async def test_max_records_counts_indirect(self) -> None:
        lineage = FakeLineage({"A": ["B"], "B": ["C", "D", "E"]})
        result = await ImpactGraphWalker(lineage, max_records=3).walk([_seed("A")])

        assert len(result.direct) == 1
        assert len(result.indirect) == 2
        assert result.warnings[0].limit == "max_records"

    def test_rejects_invalid_limits(self) -> None:
        with pytest.raises(ValueError, match="max_depth"):
            ImpactGraphWalker(FakeLineage({}), max_depth=0)
        with pytest.raises(ValueError, match="max_records"):
            ImpactGraphWalker(FakeLineage({}), max_records=0)
        with pytest.raises(ValueError, match="concurrency"):
            ImpactGraphWalker(FakeLineage({}), concurrency=0)


# ---------------------------------------------------------------------------
# Failures and concurrency
# ---------------------------------------------------------------------------


class TestFailuresAndConcurrency:
    @pytest.mark.asyncio
    async def test_seed_lookup_failure_yields_empty(self) -> None:
        lineage = FakeLineage({"A": ["B"]}, failing={"A"})
        result = await ImpactGraphWalker(lineage).walk([_seed("A")])

        assert result.direct == []
        assert result.indirect == []

    @pytest.mark.asyncio
    async def test_failed_node_treated_as_leaf(self) -> None:
        lineage = FakeLineage({"A": ["B", "C"], "B": ["X"], "C": ["E"]}, failing={"B"})
        result = await ImpactGraphWalker(lineage).walk([_seed("A")])

        assert _names(result.direct) == {"B", "C"}
        assert _names(result.indirect) == {"E"}

    @pytest.mark.asyncio
    async def test_concurrency_bound(self) -> None:
        graph = {"A": [f"n{i}" for i in range(10)]}
        delays = {f"n{i}": 0.01 for i in range(10)}
        lineage = FakeLineage(graph, delays=delays)
        await ImpactGraphWalker(lineage, concurrency=3).walk([_seed("A")])

        assert lineage.max_in_flight <= 3

    @pytest.mark.asyncio
    async def test_result_independent_of_completion_order(self) -> None:
        graph = {"A": ["B", "C"], "B": ["D"], "C": ["D", "E"]}
        fast = await ImpactGraphWalker(FakeLineage(graph)).walk([_seed("A")])
        # B answers last, so C's discovery of D completes first.
        slow_b = FakeLineage(graph, delays={"B": 0.02})
        slow = await ImpactGraphWalker(slow_b, concurrency=4).walk([_seed("A")])

        assert slow.direct == fast.direct
        assert slow.indirect == fast.indirect
        assert {r.name: r.source for r in slow.indirect} == {"D": "A", "E": "A"}


# ---------------------------------------------------------------------------
# Per-seed walks and caching
# ---------------------------------------------------------------------------


class TestPerSeedAndCaching:
    @pytest.mark.asyncio
    async def test_walk_per_seed_isolated(self) -> None:
        lineage = FakeLineage({"A": ["X"], "S": ["Y"], "Y": ["X"]})
        results = await ImpactGraphWalker(lineage).walk_per_seed([_seed("A"), _seed("S")])

        assert set(results) == {"A", "S"}
        assert _names(results["A"].direct) == {"X"}
        assert _names(results["S"].direct) == {"Y"}
        assert _names(results["S"].indirect) == {"X"}

    @pytest.mark.asyncio
    async def test_caching_source_reuses_responses(self) -> None:
        inner = FakeLineage({"A": ["B"], "B": ["C"]})
        walker = ImpactGraphWalker(CachingLineageSource(inner))

        await walker.walk([_seed("A")])
        await walker.walk_per_seed([_seed("A")])

        assert inner.calls == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_caching_source_returns_copies(self) -> None:
        cache = CachingLineageSource(FakeLineage({"A": ["B"]}))
        first = await cache.get_downstream(_make_identity("A"))
        first.clear()
        second = await cache.get_downstream(_make_identity("A"))
        assert [e.name for e in second] == ["B"]
