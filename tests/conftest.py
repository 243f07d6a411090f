"""Shared test fixtures for the trade history synchronizer."""

from unittest.mock import AsyncMock

import pytest

from tradesync.client.client import TradeClient
from tradesync.config import SyncSettings
from tradesync.progress import ProgressEvents, ProgressPublisher
from tradesync.storage import HistoryStore, PairFiles, WatermarkStore
from tradesync.sync import PairSyncOrchestrator

NOW = 1_700_000_000


def trade(tx_hash: str, tx_time, wallet: str = "w1", **extra) -> dict:
    """Build a trade record the way the AVE API returns it."""
    return {"tx_hash": tx_hash, "tx_time": tx_time, "wallet_address": wallet, **extra}


class RecordingPublisher(ProgressPublisher):
    """Collects (job_id, event) tuples in publish order."""

    def __init__(self) -> None:
        self.published: list[tuple[str, dict]] = []

    async def publish(self, job_id: str, event: dict) -> None:
        self.published.append((job_id, event))

    def types(self) -> list[str]:
        return [event["type"] for _, event in self.published]

    def of_type(self, event_type: str) -> list[dict]:
        return [event for _, event in self.published if event["type"] == event_type]


@pytest.fixture
def sync_settings(tmp_path) -> SyncSettings:
    """Small pages and no pacing: page_size=3, max_fetch=30 -> 10 pages max."""
    return SyncSettings(
        data_dir=str(tmp_path / "tokenlist"),
        page_size=3,
        max_fetch=30,
        max_pages_after=2,
        page_delay_ms=0,
        pair_delay_ms=0,
    )


@pytest.fixture
def pair_files(sync_settings: SyncSettings) -> PairFiles:
    return PairFiles(sync_settings.data_dir)


@pytest.fixture
def history_store(pair_files: PairFiles) -> HistoryStore:
    return HistoryStore(pair_files)


@pytest.fixture
def watermark_store(pair_files: PairFiles) -> WatermarkStore:
    return WatermarkStore(pair_files)


@pytest.fixture
def mock_client() -> AsyncMock:
    """Mock TradeClient; tests script fetch_page via side_effect."""
    client = AsyncMock(spec=TradeClient)
    client.fetch_page.return_value = []
    return client


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def orchestrator(
    mock_client: AsyncMock,
    history_store: HistoryStore,
    watermark_store: WatermarkStore,
    sync_settings: SyncSettings,
    publisher: RecordingPublisher,
) -> PairSyncOrchestrator:
    """Orchestrator with a fixed clock so the first cursor is NOW."""
    return PairSyncOrchestrator(
        client=mock_client,
        history=history_store,
        watermarks=watermark_store,
        settings=sync_settings,
        publisher=publisher,
        events=ProgressEvents(utc_offset_hours=8, clock=lambda: NOW),
        clock=lambda: NOW,
    )
