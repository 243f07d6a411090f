"""Entry point for the trade history synchronizer service.

Wires all components together and serves the FastAPI app with uvicorn.
The sync core shares uvicorn's asyncio event loop; the AVE client is
opened and closed by the app lifespan.

Component wiring order (in build_components):
1. PairFiles / HistoryStore / WatermarkStore (on-disk state)
2. AveClient (page source)
3. ProgressHub (WebSocket progress publisher)
4. PairSyncOrchestrator -> MultiPairCoordinator -> IntersectionEngine
5. TradeSyncService (facade used by routes)
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from tradesync.client.ave_client import AveClient
from tradesync.config import AppSettings
from tradesync.logging import get_logger, setup_logging
from tradesync.progress import ProgressEvents
from tradesync.server.app import create_app
from tradesync.server.routes.ws import ProgressHub
from tradesync.storage import HistoryStore, PairFiles, WatermarkStore
from tradesync.sync import (
    IntersectionEngine,
    MultiPairCoordinator,
    PairSyncOrchestrator,
    TradeSyncService,
)


def build_components(settings: AppSettings) -> dict[str, Any]:
    """Build the sync dependency graph from settings.

    Does NOT open the HTTP client -- that happens in the lifespan.
    """
    logger = get_logger("tradesync.main")

    files = PairFiles(settings.sync.data_dir)
    history = HistoryStore(files)
    watermarks = WatermarkStore(files)

    client = AveClient(settings.ave)
    if not settings.ave.api_key.get_secret_value():
        logger.warning(
            "no_ave_api_key_configured",
            note="Page requests will likely be rejected by the AVE API.",
        )

    hub = ProgressHub()
    events = ProgressEvents(settings.sync.display_utc_offset_hours)

    orchestrator = PairSyncOrchestrator(
        client=client,
        history=history,
        watermarks=watermarks,
        settings=settings.sync,
        publisher=hub,
        events=events,
    )
    coordinator = MultiPairCoordinator(orchestrator)
    intersection = IntersectionEngine(history)
    service = TradeSyncService(orchestrator, coordinator, intersection)

    return {
        "client": client,
        "hub": hub,
        "history": history,
        "watermarks": watermarks,
        "service": service,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the AVE client on startup and close it on shutdown."""
    logger = get_logger("tradesync.main")
    client: AveClient = app.state.client

    await client.connect()
    logger.info("lifespan_started", data_dir=app.state.settings.sync.data_dir)

    yield

    await client.close()
    logger.info("tradesync_stopped")


async def run() -> None:
    """Run the HTTP + WebSocket service."""
    settings = AppSettings()
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("tradesync.main")

    components = build_components(settings)
    app = create_app(
        service=components["service"],
        settings=settings,
        hub=components["hub"],
        lifespan=lifespan,
    )
    app.state.client = components["client"]

    logger.info(
        "starting_server",
        host=settings.server.host,
        port=settings.server.port,
        websocket="/ws?jobId=<JOB_ID>",
    )

    config = uvicorn.Config(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # uvicorn records go through setup_logging
        log_level="warning",
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
