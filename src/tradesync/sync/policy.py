"""Per-page stop policy for watermark-bounded backward pagination.

After each fetched page the policy decides whether paging continues, in
this order of precedence:

    empty page            -> empty
    last record untimed   -> invalid_last
    any record <= mark    -> boundary   (records newer than mark still fresh)
    fresh total >= limit  -> max_fetch
    page budget used up   -> page_limit
    otherwise             -> continue at last tx_time - 1

A failed fetch (stop reason ``error``) never reaches the policy; the
orchestrator stops on the exception itself.
"""

from dataclasses import dataclass, field

from tradesync.exceptions import InvalidLastRecordError
from tradesync.models import StopReason, TradeRecord, parse_tx_time


@dataclass
class PageVerdict:
    """Decision for one page."""

    fresh: list[TradeRecord] = field(default_factory=list)
    stop_reason: StopReason | None = None
    hit_boundary: bool = False
    last_tx_time: int | None = None
    next_to_time: int | None = None

    @property
    def should_continue(self) -> bool:
        return self.stop_reason is None


def next_cursor(page: list[TradeRecord]) -> int:
    """Cursor for the next request: one second before the page's last record."""
    last_time = parse_tx_time(page[-1])
    if last_time is None:
        raise InvalidLastRecordError(f"last record has no usable tx_time: {page[-1]!r}")
    return last_time - 1


class StopPolicy:
    """Stateless page evaluator for one pair run.

    Args:
        watermark: last_fetched_time of the pair; 0 on first run.
        max_fetch: fresh record count that ends the run.
        page_limit: maximum number of pages for the run.
    """

    def __init__(self, watermark: int, max_fetch: int, page_limit: int) -> None:
        self.watermark = watermark
        self.max_fetch = max_fetch
        self.page_limit = page_limit

    def is_fresh(self, record: TradeRecord) -> bool:
        # Without a watermark the whole page is new, timestamp or not
        if not self.watermark:
            return True
        tx_time = parse_tx_time(record)
        return tx_time is not None and tx_time > self.watermark

    def is_stale(self, record: TradeRecord) -> bool:
        tx_time = parse_tx_time(record)
        return tx_time is not None and tx_time <= self.watermark

    def evaluate(
        self, page: list[TradeRecord], page_index: int, accumulated: int
    ) -> PageVerdict:
        """Classify a page.

        Args:
            page: records of this page, newest first.
            page_index: zero-based index of this page within the run.
            accumulated: fresh records collected by earlier pages.
        """
        if not page:
            return PageVerdict(stop_reason=StopReason.EMPTY)

        fresh = [r for r in page if self.is_fresh(r)]
        last_tx_time = parse_tx_time(page[-1])
        verdict = PageVerdict(fresh=fresh, last_tx_time=last_tx_time)

        try:
            cursor = next_cursor(page)
        except InvalidLastRecordError:
            verdict.stop_reason = StopReason.INVALID_LAST
            return verdict
        verdict.next_to_time = cursor

        if self.watermark and any(self.is_stale(r) for r in page):
            verdict.hit_boundary = True
            verdict.stop_reason = StopReason.BOUNDARY
        elif accumulated + len(fresh) >= self.max_fetch:
            verdict.stop_reason = StopReason.MAX_FETCH
        elif page_index + 1 >= self.page_limit:
            verdict.stop_reason = StopReason.PAGE_LIMIT
        return verdict
