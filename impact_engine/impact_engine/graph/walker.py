"""Bounded breadth-first walk of the downstream lineage graph.

The lineage graph lives in an external service, is not guaranteed to be
acyclic and may answer any single lookup with an error.  The walker
therefore:

* expands each identity at most once (the visited check happens before a
  lookup is scheduled, so cycles terminate);
* classifies depth-1 discoveries as ``direct`` and everything deeper as
  ``indirect``, with ``direct`` taking precedence for identities reachable
  both ways;
* treats a failed lookup as a leaf and carries on with its siblings;
* stops at configurable depth and record ceilings, returning the partial
  result together with a :class:`TraversalLimitExceeded` warning.

Each BFS level is fetched concurrently (bounded by a semaphore) and merged
in frontier order once the whole level has returned, so the outcome does not
depend on the order in which responses arrive.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from impact_engine.models.catalog import AssetIdentity, CatalogTask, IdentityKey
from impact_engine.models.lineage import (
    ImpactClassification,
    ImpactRecord,
    LineageEdge,
    TraversalLimitExceeded,
    TraversalResult,
)

logger = logging.getLogger(__name__)

Seed = tuple[str, AssetIdentity]
IdentityTuple = tuple[str, str, str]


class LineageSource(Protocol):
    """Anything that can list the downstream neighbours of an asset."""

    async def get_downstream(self, identity: AssetIdentity) -> list[LineageEdge]: ...


class CachingLineageSource:
    """Memoise lookups of another :class:`LineageSource` for one run.

    Keyed by the canonical asset triple, so repeated walks over the same
    seeds (e.g. the per-task breakdown after the global walk) reuse the
    responses of the first walk instead of calling the service again.
    """

    def __init__(self, inner: LineageSource) -> None:
        self._inner = inner
        self._cache: dict[IdentityTuple, list[LineageEdge]] = {}

    async def get_downstream(self, identity: AssetIdentity) -> list[LineageEdge]:
        key = identity.key(IdentityKey.ASSET)
        if key not in self._cache:
            self._cache[key] = list(await self._inner.get_downstream(identity))
        return list(self._cache[key])


def _normalise_seeds(seeds: Sequence[CatalogTask | Seed]) -> list[Seed]:
    normalised: list[Seed] = []
    for seed in seeds:
        if isinstance(seed, CatalogTask):
            normalised.append((seed.name, seed.identity))
        else:
            normalised.append(seed)
    return normalised


class ImpactGraphWalker:
    """Expand the downstream impact of a set of seed assets.

    Parameters
    ----------
    lineage:
        Source of downstream edges, usually a
        :class:`~impact_engine.clients.lineage.LineageClient`.
    identity_key:
        Which :class:`AssetIdentity` fields define "the same asset".
    max_depth:
        Records deeper than this are never created.
    max_records:
        Upper bound on ``len(direct) + len(indirect)``.
    concurrency:
        Maximum number of simultaneous lineage lookups.
    """

    def __init__(
        self,
        lineage: LineageSource,
        *,
        identity_key: IdentityKey = IdentityKey.ASSET,
        max_depth: int = 50,
        max_records: int = 10_000,
        concurrency: int = 4,
    ) -> None:
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        if max_records < 1:
            raise ValueError("max_records must be at least 1")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._lineage = lineage
        self._identity_key = identity_key
        self._max_depth = max_depth
        self._max_records = max_records
        self._concurrency = concurrency

    @property
    def identity_key(self) -> IdentityKey:
        return self._identity_key

    # -- Public API ------------------------------------------------------------

    async def walk(self, seeds: Sequence[CatalogTask | Seed]) -> TraversalResult:
        """Walk downstream from all *seeds* with one shared visited set.

        Parameters
        ----------
        seeds:
            Matched catalog tasks, or ``(name, identity)`` pairs.

        Returns
        -------
        TraversalResult
            Direct and indirect records, deduplicated across every seed.
        """
        seed_list = _normalise_seeds(seeds)
        semaphore = asyncio.Semaphore(self._concurrency)
        key_of = self._key

        direct: dict[IdentityTuple, ImpactRecord] = {}
        indirect: dict[IdentityTuple, ImpactRecord] = {}
        expanded: set[IdentityTuple] = set()
        warnings: list[TraversalLimitExceeded] = []
        dropped = 0
        lookups = 0

        # Level 1: every downstream edge of a seed is a direct impact.
        seed_frontier: list[Seed] = []
        for name, identity in seed_list:
            key = key_of(identity)
            if key in expanded:
                continue
            expanded.add(key)
            seed_frontier.append((name, identity))

        responses = await asyncio.gather(*(self._fetch(identity, semaphore) for _, identity in seed_frontier))
        lookups += len(seed_frontier)

        frontier: list[ImpactRecord] = []
        full = False
        for (name, _identity), edges in zip(seed_frontier, responses):
            for edge in edges:
                key = key_of(edge.target)
                if key in direct:
                    dropped += 1
                    continue
                if len(direct) >= self._max_records:
                    full = True
                    break
                record = self._record(edge, 1, ImpactClassification.DIRECT, name)
                direct[key] = record
                frontier.append(record)
            if full:
                break

        # Levels 2..max_depth: anything not already direct is indirect.
        depth = 1
        while frontier and not full:
            pending: list[ImpactRecord] = []
            for record in frontier:
                key = key_of(record.identity)
                if key in expanded:
                    continue
                expanded.add(key)
                pending.append(record)
            if not pending:
                break

            if depth >= self._max_depth:
                warnings.append(
                    TraversalLimitExceeded(
                        limit="max_depth",
                        threshold=self._max_depth,
                        message=(
                            f"Traversal stopped at depth {depth}; "
                            f"{len(pending)} asset(s) were not expanded."
                        ),
                    )
                )
                break

            responses = await asyncio.gather(*(self._fetch(r.identity, semaphore) for r in pending))
            lookups += len(pending)

            next_frontier: list[ImpactRecord] = []
            for parent, edges in zip(pending, responses):
                for edge in edges:
                    key = key_of(edge.target)
                    if key in direct or key in indirect:
                        dropped += 1
                        continue
                    if len(direct) + len(indirect) >= self._max_records:
                        full = True
                        break
                    record = self._record(edge, depth + 1, ImpactClassification.INDIRECT, parent.source)
                    indirect[key] = record
                    next_frontier.append(record)
                if full:
                    break
            frontier = next_frontier
            depth += 1

        if full:
            warnings.append(
                TraversalLimitExceeded(
                    limit="max_records",
                    threshold=self._max_records,
                    message=f"Traversal stopped after collecting {self._max_records} impacted asset(s).",
                )
            )

        for warning in warnings:
            logger.warning("Traversal limit exceeded (%s): %s", warning.limit, warning.message)
        if dropped:
            logger.debug("Dropped %d duplicate lineage discoveries", dropped)
        logger.info(
            "Walked %d seed(s): %d direct, %d indirect, %d lookup(s)",
            len(seed_list),
            len(direct),
            len(indirect),
            lookups,
        )

        return TraversalResult(
            direct=list(direct.values()),
            indirect=list(indirect.values()),
            warnings=warnings,
            expanded_count=lookups,
            dropped_duplicates=dropped,
        )

    async def walk_per_seed(self, seeds: Sequence[CatalogTask | Seed]) -> dict[str, TraversalResult]:
        """Walk each seed in isolation, keyed by seed name.

        Seeds sharing a name are walked together.
        """
        grouped: dict[str, list[Seed]] = {}
        for name, identity in _normalise_seeds(seeds):
            grouped.setdefault(name, []).append((name, identity))

        results: dict[str, TraversalResult] = {}
        for name, group in grouped.items():
            results[name] = await self.walk(group)
        return results

    # -- Internal helpers --------------------------------------------------------

    def _key(self, identity: AssetIdentity) -> IdentityTuple:
        return identity.key(self._identity_key)

    @staticmethod
    def _record(
        edge: LineageEdge,
        depth: int,
        classification: ImpactClassification,
        source: str,
    ) -> ImpactRecord:
        return ImpactRecord(
            identity=edge.target,
            name=edge.name or edge.target.label(),
            connection_name=edge.connection_name,
            depth=depth,
            classification=classification,
            source=source,
        )

    async def _fetch(self, identity: AssetIdentity, semaphore: asyncio.Semaphore) -> list[LineageEdge]:
        """Look up *identity*, converting any failure into "no edges"."""
        async with semaphore:
            try:
                return list(await self._lineage.get_downstream(identity))
            except Exception as exc:  # noqa: BLE001
                logger.error("Lineage lookup for %s raised %s; treating as leaf", identity.label(), exc)
                return []
