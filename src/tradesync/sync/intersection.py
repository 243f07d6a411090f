"""Wallet address intersection across 2 to 4 pair histories."""

from tradesync.exceptions import InvalidInputError
from tradesync.logging import get_logger
from tradesync.models import IntersectionResult, PairWalletCount
from tradesync.storage.files import validate_pair_id
from tradesync.storage.history import HistoryStore

logger = get_logger(__name__)

MIN_PAIRS = 2
MAX_PAIRS = 4


def validate_pair_count(pair_ids: list[str]) -> None:
    """Reject pair lists outside [MIN_PAIRS, MAX_PAIRS] before any I/O."""
    if not isinstance(pair_ids, list) or not MIN_PAIRS <= len(pair_ids) <= MAX_PAIRS:
        raise InvalidInputError(
            f"pairs must be a list of {MIN_PAIRS}~{MAX_PAIRS} pair ids"
        )
    for pair_id in pair_ids:
        validate_pair_id(pair_id)


class IntersectionEngine:
    """Computes the wallets that traded in every requested pair.

    Missing or malformed history for any pair propagates; there is no
    partial intersection.
    """

    def __init__(self, history: HistoryStore) -> None:
        self._history = history

    def compute(self, pair_ids: list[str]) -> IntersectionResult:
        validate_pair_count(pair_ids)

        sets = [self._history.load_wallet_set(pair_id) for pair_id in pair_ids]
        first, *rest = sets
        common = [w for w in first if all(w in s for s in rest)]

        per_pair = [
            PairWalletCount(pair_id=pair_id, unique_wallets=len(s))
            for pair_id, s in zip(pair_ids, sets)
        ]
        logger.info(
            "intersection_computed",
            pairs=pair_ids,
            per_pair=[p.unique_wallets for p in per_pair],
            common=len(common),
        )
        return IntersectionResult(per_pair=per_pair, common=common)
