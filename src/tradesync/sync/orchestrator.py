"""Single-pair incremental synchronization.

Walks a pair's trade history BACKWARD from now, one page at a time, until
the stop policy halts the run; then merges the fresh records into the
stored history and advances the watermark.

Failure policy: a failed page request stops the run with reason
``error`` (whatever was fetched before it is still merged); any other
exception is converted into a ``failed`` result. run() never raises, so a
multi-pair job always moves on to the next pair.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from tradesync.client.client import TradeClient
from tradesync.config import RuntimeConfig, SyncLimits, SyncSettings, resolve_limits
from tradesync.exceptions import FetchError
from tradesync.logging import get_logger, pair_context
from tradesync.models import PairPlan, StopReason, SyncResult, TradeRecord, parse_tx_time
from tradesync.progress import NullPublisher, ProgressEvents, ProgressPublisher, safe_publish
from tradesync.storage.files import validate_pair_id
from tradesync.storage.history import HistoryStore
from tradesync.storage.watermark import WatermarkStore
from tradesync.sync.policy import StopPolicy

logger = get_logger(__name__)


class PairSyncOrchestrator:
    """Drives fetch -> stop policy -> merge -> watermark for one pair.

    Args:
        client: Paged trade source.
        history: Per-pair history store.
        watermarks: Per-pair watermark store.
        settings: Sync defaults; overridden by ``runtime_config``.
        publisher: Progress sink, defaults to dropping events.
        events: Progress event builder.
        clock: Returns the current epoch time in seconds (initial cursor).
    """

    def __init__(
        self,
        client: TradeClient,
        history: HistoryStore,
        watermarks: WatermarkStore,
        settings: SyncSettings,
        publisher: ProgressPublisher | None = None,
        events: ProgressEvents | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._history = history
        self._watermarks = watermarks
        self._settings = settings
        self._publisher = publisher or NullPublisher()
        self._events = events or ProgressEvents(settings.display_utc_offset_hours)
        self._clock = clock
        self._runtime_config = RuntimeConfig()

    @property
    def runtime_config(self) -> RuntimeConfig:
        return self._runtime_config

    @runtime_config.setter
    def runtime_config(self, config: RuntimeConfig) -> None:
        """Validate and install a runtime overlay; used from the next run on."""
        resolve_limits(self._settings, config)
        self._runtime_config = config
        logger.info("runtime_config_applied", **config.set_fields())

    @property
    def publisher(self) -> ProgressPublisher:
        return self._publisher

    @property
    def events(self) -> ProgressEvents:
        return self._events

    def limits(self) -> SyncLimits:
        """Effective limits for a run starting now."""
        return resolve_limits(self._settings, self._runtime_config)

    def plan(self, pair_id: str) -> PairPlan:
        """Page budget and boundary a run of this pair would use."""
        mark = self._watermarks.read(pair_id)
        return PairPlan(
            pair_id=pair_id,
            page_limit=self.limits().page_limit(mark.is_first_run),
            is_first_run=mark.is_first_run,
            boundary_time=mark.last_fetched_time or None,
        )

    async def run(self, pair_id: str, job_id: str | None = None) -> SyncResult:
        """Synchronize one pair. Never raises; failures become ``failed`` results."""
        with pair_context(pair_id, job_id):
            await safe_publish(self._publisher, job_id, self._events.pair_start(pair_id))
            try:
                result = await self._sync(pair_id, job_id)
            except Exception as e:
                logger.error("pair_sync_failed", error=str(e), exc_info=True)
                result = SyncResult(
                    pair_id=pair_id,
                    pages_used=0,
                    stop_reason=StopReason.FAILED,
                    error=str(e),
                )
                await safe_publish(
                    self._publisher, job_id, self._events.error(pair_id, str(e))
                )

            await safe_publish(self._publisher, job_id, self._events.pair_done(result))
            return result

    async def _sync(self, pair_id: str, job_id: str | None) -> SyncResult:
        validate_pair_id(pair_id)
        limits = self.limits()
        mark = self._watermarks.read(pair_id)
        existing = self._history.load(pair_id)

        page_limit = limits.page_limit(mark.is_first_run)
        policy = StopPolicy(mark.last_fetched_time, limits.max_fetch, page_limit)

        logger.info(
            "pair_sync_started",
            watermark=mark.last_fetched_time,
            first_run=mark.is_first_run,
            page_limit=page_limit,
            existing=len(existing),
        )

        to_time = int(self._clock())
        fresh: list[TradeRecord] = []
        pages_used = 0
        stop_reason = StopReason.PAGE_LIMIT
        error: str | None = None

        for index in range(page_limit):
            pages_used = index + 1
            try:
                page = await self._client.fetch_page(pair_id, to_time, limits.page_size)
            except FetchError as e:
                stop_reason = StopReason.ERROR
                error = str(e)
                logger.warning("pair_page_fetch_failed", page=pages_used, error=error)
                await safe_publish(
                    self._publisher,
                    job_id,
                    self._events.error(pair_id, error, page=pages_used),
                )
                break

            verdict = policy.evaluate(page, index, len(fresh))
            fresh.extend(verdict.fresh)

            logger.debug(
                "pair_page_fetched",
                page=pages_used,
                got=len(page),
                fresh=len(verdict.fresh),
                to_time=to_time,
            )
            await safe_publish(
                self._publisher,
                job_id,
                self._events.page(
                    pair_id=pair_id,
                    page=pages_used,
                    page_limit=page_limit,
                    got=len(page),
                    fresh=len(verdict.fresh),
                    hit_boundary=verdict.hit_boundary,
                    last_tx_time=verdict.last_tx_time,
                    next_to_time=verdict.next_to_time,
                    accumulated=len(fresh),
                ),
            )

            if not verdict.should_continue:
                stop_reason = verdict.stop_reason
                break

            to_time = verdict.next_to_time
            # Rate limit safety delay between paginated calls
            await asyncio.sleep(limits.page_delay_ms / 1000)

        merged = self._history.merge(pair_id, existing, fresh)

        watermark_updated = False
        fresh_times = [t for t in map(parse_tx_time, fresh) if t is not None]
        if fresh_times:
            watermark_updated = self._watermarks.write(pair_id, max(fresh_times))

        logger.info(
            "pair_sync_done",
            pages_used=pages_used,
            stop_reason=stop_reason.value,
            fresh=len(fresh),
            added=merged.added,
            watermark_updated=watermark_updated,
        )
        return SyncResult(
            pair_id=pair_id,
            pages_used=pages_used,
            stop_reason=stop_reason,
            added=merged.added,
            watermark_updated=watermark_updated,
            error=error,
        )
