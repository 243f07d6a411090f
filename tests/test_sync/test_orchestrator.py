"""Tests for PairSyncOrchestrator.

Tests verify:
- First run pages backward from now until an empty page
- Boundary stop keeps records newer than the watermark
- Idempotence: an immediate second run adds nothing and keeps the file
- max_fetch, page_limit, invalid_last and error stop reasons
- Watermark only ever moves forward
- Failures become ``failed`` results and never raise
- Progress event ordering and publisher failure isolation
- Runtime config changes apply to the next run
"""

from unittest.mock import AsyncMock, patch

import pytest

from conftest import NOW, RecordingPublisher, trade
from tradesync.config import RuntimeConfig
from tradesync.exceptions import FetchError, InvalidInputError
from tradesync.models import StopReason
from tradesync.storage import HistoryStore, PairFiles, WatermarkStore
from tradesync.sync import PairSyncOrchestrator


def _page(*times, wallet: str = "w1") -> list[dict]:
    return [trade(f"h{t}", t, wallet=wallet) for t in times]


class TestFirstRun:
    @pytest.mark.asyncio
    async def test_pages_until_empty(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
        history_store: HistoryStore,
        watermark_store: WatermarkStore,
    ) -> None:
        mock_client.fetch_page.side_effect = [
            _page(100, 99, 98),
            _page(97, 96, 95),
            [],
        ]

        result = await orchestrator.run("PAIR", "job-1")

        assert result.stop_reason == StopReason.EMPTY
        assert result.pages_used == 3
        assert result.added == 6
        assert result.watermark_updated is True
        assert watermark_store.read("PAIR").last_fetched_time == 100
        assert [r["tx_time"] for r in history_store.load("PAIR")] == [100, 99, 98, 97, 96, 95]

    @pytest.mark.asyncio
    async def test_cursor_starts_now_and_moves_before_last_record(
        self, orchestrator: PairSyncOrchestrator, mock_client: AsyncMock
    ) -> None:
        mock_client.fetch_page.side_effect = [_page(100, 99, 98), _page(97), []]

        await orchestrator.run("PAIR")

        cursors = [c.args[1] for c in mock_client.fetch_page.await_args_list]
        assert cursors == [NOW, 97, 96]
        assert all(c.args[2] == 3 for c in mock_client.fetch_page.await_args_list)

    @pytest.mark.asyncio
    async def test_empty_first_page_writes_empty_history(
        self,
        orchestrator: PairSyncOrchestrator,
        history_store: HistoryStore,
        watermark_store: WatermarkStore,
    ) -> None:
        result = await orchestrator.run("PAIR")

        assert result.stop_reason == StopReason.EMPTY
        assert result.pages_used == 1
        assert result.added == 0
        assert result.watermark_updated is False
        assert history_store.load("PAIR") == []
        assert watermark_store.read("PAIR").is_first_run

    @pytest.mark.asyncio
    async def test_untimed_record_is_stored(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
        history_store: HistoryStore,
        watermark_store: WatermarkStore,
    ) -> None:
        mock_client.fetch_page.side_effect = [
            [trade("h100", 100), trade("nots", None), trade("h98", 98)],
            [],
        ]

        result = await orchestrator.run("PAIR")

        assert result.added == 3
        assert {r["tx_hash"] for r in history_store.load("PAIR")} == {"h100", "nots", "h98"}
        assert watermark_store.read("PAIR").last_fetched_time == 100


class TestIncrementalRun:
    @pytest.mark.asyncio
    async def test_boundary_stop_merges_newer_records(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
        history_store: HistoryStore,
        watermark_store: WatermarkStore,
    ) -> None:
        history_store.merge("PAIR", [], _page(96, 95))
        watermark_store.write("PAIR", 96)
        mock_client.fetch_page.side_effect = [_page(100, 99, 98), _page(97, 96, 95)]

        result = await orchestrator.run("PAIR")

        assert result.stop_reason == StopReason.BOUNDARY
        assert result.pages_used == 2
        assert result.added == 4
        assert watermark_store.read("PAIR").last_fetched_time == 100
        hashes = [r["tx_hash"] for r in history_store.load("PAIR")]
        assert hashes == ["h100", "h99", "h98", "h97", "h96", "h95"]

    @pytest.mark.asyncio
    async def test_record_at_watermark_stops_with_boundary(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
        history_store: HistoryStore,
        watermark_store: WatermarkStore,
    ) -> None:
        watermark_store.write("PAIR", 50)
        mock_client.fetch_page.side_effect = [_page(52, 51, 50)]

        result = await orchestrator.run("PAIR")

        assert result.stop_reason == StopReason.BOUNDARY
        assert result.added == 2
        assert [r["tx_time"] for r in history_store.load("PAIR")] == [52, 51]

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
        pair_files: PairFiles,
        watermark_store: WatermarkStore,
    ) -> None:
        mock_client.fetch_page.side_effect = [_page(100, 99, 98), []]
        await orchestrator.run("PAIR")
        before = pair_files.history_path("PAIR").read_bytes()

        mock_client.fetch_page.side_effect = [_page(100, 99, 98), []]
        result = await orchestrator.run("PAIR")

        assert result.added == 0
        assert result.stop_reason == StopReason.BOUNDARY
        assert result.watermark_updated is False
        assert pair_files.history_path("PAIR").read_bytes() == before
        assert watermark_store.read("PAIR").last_fetched_time == 100

    @pytest.mark.asyncio
    async def test_page_limit_uses_max_pages_after(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
        watermark_store: WatermarkStore,
    ) -> None:
        watermark_store.write("PAIR", 10)
        mock_client.fetch_page.side_effect = [_page(100, 99, 98), _page(97, 96, 95), _page(94)]

        result = await orchestrator.run("PAIR")

        assert result.stop_reason == StopReason.PAGE_LIMIT
        assert result.pages_used == 2
        assert mock_client.fetch_page.await_count == 2


class TestStopReasons:
    @pytest.mark.asyncio
    async def test_max_fetch(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
    ) -> None:
        orchestrator.runtime_config = RuntimeConfig(max_fetch=5)
        mock_client.fetch_page.side_effect = [_page(100, 99, 98), _page(97, 96, 95), []]

        result = await orchestrator.run("PAIR")

        # 5 // 3 = 1 page allowed, but 3 fresh < 5 so the page budget ends it
        assert result.stop_reason == StopReason.PAGE_LIMIT
        assert result.pages_used == 1

        orchestrator.runtime_config = RuntimeConfig(max_fetch=6)
        mock_client.fetch_page.side_effect = [_page(90, 89, 88), _page(87, 86, 85), []]

        result = await orchestrator.run("PAIR2")

        assert result.stop_reason == StopReason.MAX_FETCH
        assert result.pages_used == 2
        assert result.added == 6

    @pytest.mark.asyncio
    async def test_invalid_last_record(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
        history_store: HistoryStore,
        watermark_store: WatermarkStore,
    ) -> None:
        mock_client.fetch_page.side_effect = [_page(100, 99) + [trade("bad", None)]]

        result = await orchestrator.run("PAIR")

        assert result.stop_reason == StopReason.INVALID_LAST
        assert result.pages_used == 1
        assert [r["tx_hash"] for r in history_store.load("PAIR")] == ["h100", "h99", "bad"]
        assert watermark_store.read("PAIR").last_fetched_time == 100

    @pytest.mark.asyncio
    async def test_fetch_error_keeps_earlier_pages(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
        history_store: HistoryStore,
        publisher: RecordingPublisher,
    ) -> None:
        mock_client.fetch_page.side_effect = [_page(100, 99, 98), FetchError("HTTP 502")]

        result = await orchestrator.run("PAIR", "job-1")

        assert result.stop_reason == StopReason.ERROR
        assert result.pages_used == 2
        assert result.error == "HTTP 502"
        assert result.added == 3
        assert len(history_store.load("PAIR")) == 3
        errors = publisher.of_type("error")
        assert errors[0]["page"] == 2
        assert errors[0]["error"] == "HTTP 502"

    @pytest.mark.asyncio
    async def test_zero_page_budget_ends_with_page_limit(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
    ) -> None:
        orchestrator.runtime_config = RuntimeConfig(max_fetch=2)

        result = await orchestrator.run("PAIR")

        assert result.stop_reason == StopReason.PAGE_LIMIT
        assert result.pages_used == 0
        mock_client.fetch_page.assert_not_awaited()


class TestFailures:
    @pytest.mark.asyncio
    async def test_malformed_history_fails_without_fetching(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
        pair_files: PairFiles,
        publisher: RecordingPublisher,
    ) -> None:
        path = pair_files.history_path("PAIR")
        path.parent.mkdir(parents=True)
        path.write_text("{corrupt")

        result = await orchestrator.run("PAIR", "job-1")

        assert result.failed
        assert result.stop_reason == StopReason.FAILED
        assert "not readable JSON" in result.error
        mock_client.fetch_page.assert_not_awaited()
        assert path.read_text() == "{corrupt"
        assert publisher.types()[-1] == "pair-done"
        assert publisher.of_type("pair-done")[0]["stop_reason"] == "failed"

    @pytest.mark.asyncio
    async def test_unexpected_client_error_becomes_failed_result(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
        history_store: HistoryStore,
    ) -> None:
        mock_client.fetch_page.side_effect = RuntimeError("socket exploded")

        result = await orchestrator.run("PAIR")

        assert result.failed
        assert result.error == "socket exploded"
        assert history_store.exists("PAIR") is False

    @pytest.mark.asyncio
    async def test_invalid_pair_id_fails(
        self, orchestrator: PairSyncOrchestrator, mock_client: AsyncMock
    ) -> None:
        result = await orchestrator.run("../escape")

        assert result.failed
        mock_client.fetch_page.assert_not_awaited()


class TestProgressEvents:
    @pytest.mark.asyncio
    async def test_event_order(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
        publisher: RecordingPublisher,
    ) -> None:
        mock_client.fetch_page.side_effect = [_page(100, 99, 98), _page(97), []]

        await orchestrator.run("PAIR", "job-1")

        assert publisher.types() == ["pair-start", "page", "page", "page", "pair-done"]
        assert all(job_id == "job-1" for job_id, _ in publisher.published)
        pages = publisher.of_type("page")
        assert [p["page"] for p in pages] == [1, 2, 3]
        assert [p["accumulated"] for p in pages] == [3, 4, 4]
        assert pages[0]["progress"] == "1/10"
        assert pages[0]["next_to_time"] == 97

    @pytest.mark.asyncio
    async def test_pair_done_payload(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
        publisher: RecordingPublisher,
    ) -> None:
        mock_client.fetch_page.side_effect = [_page(100), []]

        await orchestrator.run("PAIR", "job-1")

        done = publisher.of_type("pair-done")[0]
        assert done["pair_id"] == "PAIR"
        assert done["stop_reason"] == "empty"
        assert done["stop_reason_text"] == StopReason.EMPTY.description
        assert done["added"] == 1
        assert done["timestamp"] == NOW

    @pytest.mark.asyncio
    async def test_no_job_id_publishes_nothing(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
        publisher: RecordingPublisher,
    ) -> None:
        mock_client.fetch_page.side_effect = [_page(100), []]

        await orchestrator.run("PAIR")

        assert publisher.published == []

    @pytest.mark.asyncio
    async def test_publisher_failure_does_not_break_sync(
        self,
        mock_client: AsyncMock,
        history_store: HistoryStore,
        watermark_store: WatermarkStore,
        sync_settings,
    ) -> None:
        broken = AsyncMock()
        broken.publish.side_effect = ConnectionError("subscriber gone")
        orchestrator = PairSyncOrchestrator(
            client=mock_client,
            history=history_store,
            watermarks=watermark_store,
            settings=sync_settings,
            publisher=broken,
            clock=lambda: NOW,
        )
        mock_client.fetch_page.side_effect = [_page(100, 99), []]

        result = await orchestrator.run("PAIR", "job-1")

        assert result.stop_reason == StopReason.EMPTY
        assert result.added == 2
        assert broken.publish.await_count > 0


class TestPacingAndConfig:
    @pytest.mark.asyncio
    async def test_delay_after_each_non_terminal_page(
        self,
        orchestrator: PairSyncOrchestrator,
        mock_client: AsyncMock,
    ) -> None:
        orchestrator.runtime_config = RuntimeConfig(page_delay_ms=250)
        mock_client.fetch_page.side_effect = [_page(100), _page(99), []]

        with patch(
            "tradesync.sync.orchestrator.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            await orchestrator.run("PAIR")

        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(0.25)

    def test_plan_first_run_and_incremental(
        self,
        orchestrator: PairSyncOrchestrator,
        watermark_store: WatermarkStore,
    ) -> None:
        first = orchestrator.plan("PAIR")
        assert first.is_first_run is True
        assert first.page_limit == 10
        assert first.boundary_time is None

        watermark_store.write("PAIR", 777)
        later = orchestrator.plan("PAIR")
        assert later.is_first_run is False
        assert later.page_limit == 2
        assert later.boundary_time == 777

    def test_invalid_runtime_config_rejected(
        self, orchestrator: PairSyncOrchestrator
    ) -> None:
        orchestrator.runtime_config = RuntimeConfig(max_pages_after=5)

        with pytest.raises(InvalidInputError):
            orchestrator.runtime_config = RuntimeConfig(max_fetch=0)

        assert orchestrator.runtime_config.max_pages_after == 5
        assert orchestrator.limits().max_fetch == 30
