"""HTTP and WebSocket surface of the synchronizer."""

from tradesync.server.app import create_app
from tradesync.server.routes.ws import ProgressHub

__all__ = ["ProgressHub", "create_app"]
