"""On-disk per-pair state: trade history files and watermark files."""

from tradesync.storage.files import PairFiles, validate_pair_id
from tradesync.storage.history import HistoryStore
from tradesync.storage.watermark import WatermarkStore

__all__ = ["HistoryStore", "PairFiles", "WatermarkStore", "validate_pair_id"]
