"""Abstract trade API client interface.

Sync code depends only on this interface, keeping the AVE-specific
request format isolated in the concrete implementation.
"""

from abc import ABC, abstractmethod

from tradesync.models import TradeRecord


class TradeClient(ABC):
    """Abstract base class for paged trade history sources."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the underlying transport."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release transport resources."""
        ...

    @abstractmethod
    async def fetch_page(
        self, pair_id: str, to_time: int, limit: int
    ) -> list[TradeRecord]:
        """Fetch up to ``limit`` trades with tx_time <= to_time, newest first.

        Raises FetchError on any transport or API failure. Pagination and
        retries are NOT handled here -- callers drive the cursor.
        """
        ...
