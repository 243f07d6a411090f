"""Progress publishing contract and event construction.

Progress is observability only: publishers are injected into the sync
components, and a publish that fails or has no subscriber never affects
the synchronization result.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from tradesync.logging import get_logger
from tradesync.models import (
    IntersectionResult,
    MultiSyncResult,
    PairPlan,
    StopReason,
    SyncResult,
)

logger = get_logger(__name__)


class ProgressPublisher(ABC):
    """Sink for structured progress events keyed by job id."""

    @abstractmethod
    async def publish(self, job_id: str, event: dict) -> None:
        """Deliver event to current subscribers of job_id, if any."""
        ...


class NullPublisher(ProgressPublisher):
    """Publisher that drops every event."""

    async def publish(self, job_id: str, event: dict) -> None:
        return None


async def safe_publish(
    publisher: ProgressPublisher, job_id: str | None, event: dict
) -> None:
    """Publish without ever raising; a None job_id publishes nothing."""
    if not job_id:
        return
    try:
        await publisher.publish(job_id, event)
    except Exception as e:
        logger.warning(
            "progress_publish_failed",
            job_id=job_id,
            event_type=event.get("type"),
            error=str(e),
        )


class ProgressEvents:
    """Builds progress event dicts.

    Every event carries ``type``, ``timestamp`` (epoch seconds) and ``at``,
    the same instant rendered in the configured display timezone.
    """

    def __init__(
        self,
        utc_offset_hours: int = 8,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._tz = timezone(timedelta(hours=utc_offset_hours))
        self._clock = clock

    def format_time(self, ts: int | None) -> str | None:
        if not ts:
            return None
        return datetime.fromtimestamp(ts, tz=self._tz).strftime("%Y-%m-%d %H:%M:%S")

    def _event(self, event_type: str, **fields: object) -> dict:
        now = int(self._clock())
        return {"type": event_type, "timestamp": now, "at": self.format_time(now), **fields}

    def plan(self, plans: list[PairPlan]) -> dict:
        return self._event(
            "plan",
            message="job plan",
            total_pages=sum(p.page_limit for p in plans),
            pair_count=len(plans),
            pairs=[
                {**p.to_dict(), "boundary_time_str": self.format_time(p.boundary_time)}
                for p in plans
            ],
        )

    def start(self, pair_ids: list[str]) -> dict:
        return self._event("start", message="sync started", pairs=list(pair_ids))

    def pair_start(self, pair_id: str) -> dict:
        return self._event("pair-start", message="pair started", pair_id=pair_id)

    def page(
        self,
        pair_id: str,
        page: int,
        page_limit: int,
        got: int,
        fresh: int,
        hit_boundary: bool,
        last_tx_time: int | None,
        next_to_time: int | None,
        accumulated: int,
    ) -> dict:
        if got == 0:
            message = "page empty, stopping pagination"
        elif hit_boundary:
            message = "reached previous boundary, stopping pagination"
        else:
            message = "page fetched"
        return self._event(
            "page",
            message=message,
            pair_id=pair_id,
            page=page,
            got=got,
            fresh=fresh,
            hit_boundary=hit_boundary,
            last_tx_time=last_tx_time,
            last_tx_time_str=self.format_time(last_tx_time),
            next_to_time=next_to_time,
            accumulated=accumulated,
            progress=f"{page}/{page_limit}",
            progress_pct=round(page / page_limit * 100) if page_limit else 100,
        )

    def error(self, pair_id: str, error: str, page: int | None = None) -> dict:
        fields: dict[str, object] = {"pair_id": pair_id, "error": error}
        if page is not None:
            fields["page"] = page
            message = "page request failed"
        else:
            message = "pair processing failed"
        return self._event("error", message=message, **fields)

    def pair_done(self, result: SyncResult) -> dict:
        return self._event(
            "pair-done",
            message="pair finished",
            **result.to_dict(),
            stop_reason_text=StopReason(result.stop_reason).description,
        )

    def done(
        self, summary: MultiSyncResult, intersection: IntersectionResult | None = None
    ) -> dict:
        fields: dict[str, object] = {"total_added": summary.total_added}
        if intersection is not None:
            fields["per_pair"] = [
                {"pair_id": p.pair_id, "unique_wallets": p.unique_wallets}
                for p in intersection.per_pair
            ]
            fields["common_count"] = len(intersection.common)
            fields["common_sample"] = list(intersection.common[:10])
        return self._event("done", message="job finished", **fields)
