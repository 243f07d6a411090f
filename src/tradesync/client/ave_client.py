"""AVE trade API client implementation via httpx async.

Endpoint: GET {base_url}/v2/txs/{pair_id}-{chain}?limit=&sort=desc&to_time=
Trades are returned under data.txs of the JSON body, newest first.
"""

import httpx

from tradesync.client.client import TradeClient
from tradesync.config import AveSettings
from tradesync.exceptions import FetchError
from tradesync.logging import get_logger
from tradesync.models import TradeRecord

logger = get_logger(__name__)


class AveClient(TradeClient):
    """Concrete AVE client using a shared httpx.AsyncClient."""

    def __init__(
        self,
        settings: AveSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the HTTP client. Safe to call more than once."""
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(
            base_url=self._settings.base_url,
            headers={"X-API-KEY": self._settings.api_key.get_secret_value()},
            timeout=self._settings.timeout_seconds,
            transport=self._transport,
        )
        logger.info("ave_client_connected", base_url=self._settings.base_url)

    async def close(self) -> None:
        """Close the HTTP client. CRITICAL: must be called to avoid leaking connections."""
        if self._http is None:
            return
        await self._http.aclose()
        self._http = None
        logger.info("ave_client_closed")

    async def fetch_page(
        self, pair_id: str, to_time: int, limit: int
    ) -> list[TradeRecord]:
        """Fetch one page of trades older than or at to_time."""
        if self._http is None:
            await self.connect()

        url = f"/v2/txs/{pair_id}-{self._settings.chain}"
        params = {"limit": limit, "sort": "desc", "to_time": to_time}

        try:
            resp = await self._http.get(url, params=params)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"HTTP {e.response.status_code} for {pair_id}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(f"request failed for {pair_id}: {e}") from e
        except ValueError as e:
            raise FetchError(f"invalid JSON body for {pair_id}: {e}") from e

        data = body.get("data") if isinstance(body, dict) else None
        txs = data.get("txs") if isinstance(data, dict) else None
        if not isinstance(txs, list):
            txs = []

        logger.debug("ave_page_fetched", pair_id=pair_id, to_time=to_time, count=len(txs))
        return txs
