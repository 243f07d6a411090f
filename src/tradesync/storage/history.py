"""Per-pair trade history persistence and merge.

A history file is a JSON array of trade records, deduplicated by tx_hash
and ordered newest first. Only a missing file reads as an empty history;
any other unreadable content raises MalformedHistoryError so a sync run
can never overwrite history it failed to load.
"""

import json

from tradesync.exceptions import MalformedHistoryError, MissingHistoryError
from tradesync.logging import get_logger
from tradesync.models import MergeResult, TradeRecord, parse_tx_time
from tradesync.storage.files import PairFiles, write_json_atomic

logger = get_logger(__name__)


class HistoryStore:
    """Reads, merges and rewrites ``<pair_id>.json`` history files.

    Usage:
        store = HistoryStore(PairFiles("tokenlist"))
        existing = store.load("PAIR")
        result = store.merge("PAIR", existing, fresh_records)
    """

    def __init__(self, files: PairFiles) -> None:
        self._files = files

    def exists(self, pair_id: str) -> bool:
        return self._files.history_path(pair_id).exists()

    def load(self, pair_id: str) -> list[TradeRecord]:
        """Load the stored history; [] when the pair was never synced."""
        path = self._files.history_path(pair_id)
        if not path.exists():
            return []

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise MalformedHistoryError(
                f"history for {pair_id} is not readable JSON: {e}"
            ) from e

        if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
            raise MalformedHistoryError(
                f"history for {pair_id} is not a JSON array of records"
            )
        return data

    def merge(
        self,
        pair_id: str,
        existing: list[TradeRecord],
        fresh: list[TradeRecord],
    ) -> MergeResult:
        """Merge fresh records ahead of existing ones and rewrite the history.

        Keyed by tx_hash; a later entry replaces an earlier one with the same
        key. The result is sorted newest first (stable for equal tx_time).
        """
        by_hash: dict[object, TradeRecord] = {}
        for record in [*fresh, *existing]:
            by_hash[record.get("tx_hash")] = record

        records = list(by_hash.values())
        records.sort(key=lambda r: parse_tx_time(r) or 0, reverse=True)

        write_json_atomic(self._files.history_path(pair_id), records)

        added = max(0, len(records) - len(existing))
        logger.debug(
            "history_merged",
            pair_id=pair_id,
            existing=len(existing),
            fresh=len(fresh),
            total=len(records),
            added=added,
        )
        return MergeResult(records=records, added=added)

    def count(self, pair_id: str) -> int:
        return len(self.load(pair_id))

    def load_wallet_set(self, pair_id: str) -> set[str]:
        """Return the distinct non-empty wallet addresses of a stored history.

        Unlike load(), a missing history is an error here: an intersection
        over a pair that was never synced would be silently empty.
        """
        if not self.exists(pair_id):
            raise MissingHistoryError(f"no stored history for pair {pair_id}")

        wallets: set[str] = set()
        for record in self.load(pair_id):
            wallet = record.get("wallet_address")
            if isinstance(wallet, str) and wallet:
                wallets.add(wallet)
        return wallets
