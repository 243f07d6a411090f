"""Incremental pair synchronization and wallet intersection."""

from tradesync.sync.coordinator import MultiPairCoordinator
from tradesync.sync.intersection import IntersectionEngine
from tradesync.sync.orchestrator import PairSyncOrchestrator
from tradesync.sync.policy import PageVerdict, StopPolicy
from tradesync.sync.service import TradeSyncService

__all__ = [
    "IntersectionEngine",
    "MultiPairCoordinator",
    "PageVerdict",
    "PairSyncOrchestrator",
    "StopPolicy",
    "TradeSyncService",
]
