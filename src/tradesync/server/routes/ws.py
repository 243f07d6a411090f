"""WebSocket hub routing progress events to subscribers of a job."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from tradesync.progress import ProgressPublisher

log = structlog.get_logger(__name__)

router = APIRouter()


class ProgressHub(ProgressPublisher):
    """Manages WebSocket subscriptions per job id and pushes events to them."""

    def __init__(self) -> None:
        self.subscribers: dict[str, set[WebSocket]] = {}

    async def connect(self, job_id: str, ws: WebSocket) -> None:
        """Accept a WebSocket connection and subscribe it to job_id."""
        await ws.accept()
        self.subscribers.setdefault(job_id, set()).add(ws)
        log.info("progress_ws_connected", job_id=job_id, total=len(self.subscribers[job_id]))

    def disconnect(self, job_id: str, ws: WebSocket) -> None:
        """Remove a subscription, dropping the job entry once it has none."""
        sockets = self.subscribers.get(job_id)
        if sockets is None:
            return
        sockets.discard(ws)
        if not sockets:
            del self.subscribers[job_id]
        log.info("progress_ws_disconnected", job_id=job_id)

    async def publish(self, job_id: str, event: dict) -> None:
        """Send event to every subscriber of job_id, removing broken connections."""
        for ws in list(self.subscribers.get(job_id, ())):
            try:
                await ws.send_json(event)
            except Exception:
                self.disconnect(job_id, ws)
                log.warning("progress_ws_send_error", job_id=job_id)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, jobId: str | None = None) -> None:
    """Subscribe to the progress events of one job: /ws?jobId=<id>."""
    if not jobId:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="jobId required")
        return

    hub: ProgressHub = websocket.app.state.hub
    await hub.connect(jobId, websocket)
    try:
        while True:
            # Consume messages to keep connection alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(jobId, websocket)
