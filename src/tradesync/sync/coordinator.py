"""Sequential multi-pair synchronization.

Pairs are processed strictly one after another, never concurrently, with
a pacing delay between them to bound load on the upstream API.
"""

import asyncio

from tradesync.exceptions import InvalidInputError
from tradesync.logging import get_logger
from tradesync.models import MultiSyncResult
from tradesync.storage.files import validate_pair_id
from tradesync.sync.orchestrator import PairSyncOrchestrator

logger = get_logger(__name__)


class MultiPairCoordinator:
    """Runs PairSyncOrchestrator over a list of pairs.

    A failing pair yields a ``failed`` result and the job moves on; every
    pair's pair-start/pair-done events are emitted before the next pair
    starts.
    """

    def __init__(self, orchestrator: PairSyncOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def run(self, pair_ids: list[str], job_id: str | None = None) -> MultiSyncResult:
        if not pair_ids:
            raise InvalidInputError("at least one pair id is required")
        for pair_id in pair_ids:
            validate_pair_id(pair_id)
        # Pacing is fixed for the whole job; invalid limits fail before any fetch
        pair_delay_ms = self._orchestrator.limits().pair_delay_ms

        summary = MultiSyncResult()
        for i, pair_id in enumerate(pair_ids, 1):
            if i > 1:
                await asyncio.sleep(pair_delay_ms / 1000)

            logger.info("syncing_pair", pair_id=pair_id, progress=f"{i}/{len(pair_ids)}")
            summary.results.append(await self._orchestrator.run(pair_id, job_id))

        logger.info(
            "multi_pair_sync_done",
            pairs=len(pair_ids),
            failed=sum(1 for r in summary.results if r.failed),
            total_added=summary.total_added,
        )
        return summary
