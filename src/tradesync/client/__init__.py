"""Trade API client layer -- AVE API integration via httpx."""

from tradesync.client.ave_client import AveClient
from tradesync.client.client import TradeClient

__all__ = ["AveClient", "TradeClient"]
