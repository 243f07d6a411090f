"""Shared data models for the trade history synchronizer.

Trade records themselves stay plain dicts: only tx_hash, tx_time and
wallet_address are interpreted, every other field is passed through as-is.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum

TradeRecord = dict


def parse_tx_time(record: TradeRecord) -> int | None:
    """Return the record's tx_time as a positive int, or None if unusable.

    Integral floats and digit strings are accepted; booleans are not.
    """
    value = record.get("tx_time") if isinstance(record, dict) else None
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    elif isinstance(value, str):
        if not value.strip().isdigit():
            return None
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        return None
    return value


class StopReason(str, Enum):
    """Why a pair's pagination loop ended."""

    ERROR = "error"
    EMPTY = "empty"
    INVALID_LAST = "invalid_last"
    BOUNDARY = "boundary"
    MAX_FETCH = "max_fetch"
    PAGE_LIMIT = "page_limit"
    FAILED = "failed"  # run aborted before pagination could finish

    @property
    def description(self) -> str:
        """Human readable explanation shown to progress subscribers."""
        return _STOP_REASON_DESCRIPTIONS[self]


_STOP_REASON_DESCRIPTIONS = {
    StopReason.ERROR: "page request failed",
    StopReason.EMPTY: "page returned no data",
    StopReason.INVALID_LAST: "last record of the page has no valid timestamp",
    StopReason.BOUNDARY: "reached the previous fetch boundary (older data)",
    StopReason.MAX_FETCH: "reached the per-run record limit",
    StopReason.PAGE_LIMIT: "reached the page limit",
    StopReason.FAILED: "pair processing failed",
}


@dataclass
class Watermark:
    """Per-pair boundary: records at or before last_fetched_time are already stored."""

    last_fetched_time: int = 0

    @property
    def is_first_run(self) -> bool:
        return self.last_fetched_time == 0


@dataclass
class MergeResult:
    """Outcome of merging fresh records into a pair history."""

    records: list[TradeRecord]
    added: int


@dataclass
class PairPlan:
    """Paging budget announced to subscribers before a job starts."""

    pair_id: str
    page_limit: int
    is_first_run: bool
    boundary_time: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SyncResult:
    """Result of one pair's synchronization run."""

    pair_id: str
    pages_used: int
    stop_reason: StopReason
    added: int = 0
    watermark_updated: bool = False
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.stop_reason == StopReason.FAILED

    def to_dict(self) -> dict:
        data = asdict(self)
        data["stop_reason"] = self.stop_reason.value
        return data


@dataclass
class MultiSyncResult:
    """Result of a sequential multi-pair run."""

    results: list[SyncResult] = field(default_factory=list)

    @property
    def total_added(self) -> int:
        return sum(r.added for r in self.results)

    def to_dict(self) -> dict:
        return {
            "results": [r.to_dict() for r in self.results],
            "total_added": self.total_added,
        }


@dataclass
class PairWalletCount:
    """Unique wallet count for one pair."""

    pair_id: str
    unique_wallets: int


@dataclass
class IntersectionResult:
    """Wallets common to every requested pair, plus per-pair cardinalities."""

    per_pair: list[PairWalletCount]
    common: list[str]

    def to_dict(self) -> dict:
        return {
            "per_pair": [asdict(p) for p in self.per_pair],
            "common_count": len(self.common),
            "common_wallets": list(self.common),
        }
