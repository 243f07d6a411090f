"""JSON endpoints for syncing pairs and computing wallet intersections."""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from tradesync.server.routes.deps import require_api_key
from tradesync.sync.service import TradeSyncService

log = structlog.get_logger(__name__)

router = APIRouter(dependencies=[Depends(require_api_key)])


class PairsRequest(BaseModel):
    """Body shared by the sync and intersection endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    pairs: list[str] = Field(default_factory=list)
    job_id: str | None = Field(default=None, alias="jobId")


def _generated_at(request: Request) -> str | None:
    service: TradeSyncService = request.app.state.service
    return service.orchestrator.events.format_time(int(time.time()))


@router.post("/common")
async def common(body: PairsRequest, request: Request) -> JSONResponse:
    """Intersection only: wallets present in every stored pair history."""
    service: TradeSyncService = request.app.state.service
    result = service.compute_intersection(body.pairs)

    return JSONResponse(content={
        "ok": True,
        "mode": "common-only",
        "pairs": body.pairs,
        **result.to_dict(),
        "generated_at": _generated_at(request),
    })


@router.post("/update-and-common")
async def update_and_common(body: PairsRequest, request: Request) -> JSONResponse:
    """Sync every pair (with WebSocket progress), then compute the intersection.

    Clients should open /ws?jobId=<id> with the same jobId before posting.
    """
    service: TradeSyncService = request.app.state.service
    job_id = body.job_id or uuid.uuid4().hex

    log.info("update_and_common_requested", job_id=job_id, pairs=body.pairs)
    summary, result = await service.update_and_intersect(body.pairs, job_id)

    return JSONResponse(content={
        "ok": True,
        "jobId": job_id,
        "mode": "update-and-common",
        "pairs": body.pairs,
        "update_results": [r.to_dict() for r in summary.results],
        "total_added": summary.total_added,
        **result.to_dict(),
        "generated_at": _generated_at(request),
    })


@router.post("/sync")
async def sync(body: PairsRequest, request: Request) -> JSONResponse:
    """Sync one or more pairs without computing an intersection."""
    service: TradeSyncService = request.app.state.service
    job_id = body.job_id or uuid.uuid4().hex

    summary = await service.sync_pairs(body.pairs, job_id)

    return JSONResponse(content={
        "ok": True,
        "jobId": job_id,
        "mode": "update-only",
        "pairs": body.pairs,
        **summary.to_dict(),
        "generated_at": _generated_at(request),
    })
