"""Public operations of the synchronizer.

TradeSyncService is what the HTTP layer and scripts call: single-pair
sync, multi-pair sync, intersection only, and the combined
update-then-intersect job with its plan/start/done progress events.
"""

from __future__ import annotations

from tradesync.logging import get_logger
from tradesync.models import IntersectionResult, MultiSyncResult, PairPlan, SyncResult
from tradesync.progress import safe_publish
from tradesync.sync.coordinator import MultiPairCoordinator
from tradesync.sync.intersection import IntersectionEngine, validate_pair_count
from tradesync.sync.orchestrator import PairSyncOrchestrator

logger = get_logger(__name__)


class TradeSyncService:
    """Facade over orchestrator, coordinator and intersection engine."""

    def __init__(
        self,
        orchestrator: PairSyncOrchestrator,
        coordinator: MultiPairCoordinator,
        intersection: IntersectionEngine,
    ) -> None:
        self._orchestrator = orchestrator
        self._coordinator = coordinator
        self._intersection = intersection

    @property
    def orchestrator(self) -> PairSyncOrchestrator:
        return self._orchestrator

    async def sync_pair(self, pair_id: str, job_id: str | None = None) -> SyncResult:
        return await self._orchestrator.run(pair_id, job_id)

    async def sync_pairs(
        self, pair_ids: list[str], job_id: str | None = None
    ) -> MultiSyncResult:
        return await self._coordinator.run(pair_ids, job_id)

    def compute_intersection(self, pair_ids: list[str]) -> IntersectionResult:
        return self._intersection.compute(pair_ids)

    def plan(self, pair_ids: list[str]) -> list[PairPlan]:
        return [self._orchestrator.plan(pair_id) for pair_id in pair_ids]

    async def update_and_intersect(
        self, pair_ids: list[str], job_id: str | None = None
    ) -> tuple[MultiSyncResult, IntersectionResult]:
        """Sync every pair, then intersect their wallet sets.

        Publishes ``plan`` and ``start`` before the first pair and ``done``
        after the intersection.
        """
        validate_pair_count(pair_ids)
        publisher = self._orchestrator.publisher
        events = self._orchestrator.events

        await safe_publish(publisher, job_id, events.plan(self.plan(pair_ids)))
        await safe_publish(publisher, job_id, events.start(pair_ids))

        summary = await self._coordinator.run(pair_ids, job_id)
        intersection = self._intersection.compute(pair_ids)

        await safe_publish(publisher, job_id, events.done(summary, intersection))
        logger.info(
            "update_and_intersect_done",
            job_id=job_id,
            total_added=summary.total_added,
            common=len(intersection.common),
        )
        return summary, intersection
