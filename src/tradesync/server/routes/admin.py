"""Admin endpoints: health check, effective config, and runtime config updates."""

from __future__ import annotations

from pathlib import Path

import structlog
from dotenv import set_key
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tradesync.config import RUNTIME_ENV_KEYS, RuntimeConfig, SyncLimits
from tradesync.server.routes.deps import require_api_key
from tradesync.sync.service import TradeSyncService

log = structlog.get_logger(__name__)

router = APIRouter()
admin_router = APIRouter(prefix="/admin", dependencies=[Depends(require_api_key)])


class RuntimeUpdateRequest(BaseModel):
    """Partial runtime config update; omitted fields keep their value."""

    max_fetch_limit: int | None = None
    max_pages_after: int | None = None
    page_size: int | None = None
    sleep_ms: int | None = None
    between_pairs_ms: int | None = None
    persist: bool = True

    def to_runtime_config(self) -> RuntimeConfig:
        return RuntimeConfig(
            page_size=self.page_size,
            max_fetch=self.max_fetch_limit,
            max_pages_after=self.max_pages_after,
            page_delay_ms=self.sleep_ms,
            pair_delay_ms=self.between_pairs_ms,
        )


def _config_payload(limits: SyncLimits) -> dict:
    return {
        "page_size": limits.page_size,
        "max_fetch_limit": limits.max_fetch,
        "max_pages_after": limits.max_pages_after,
        "sleep_ms": limits.page_delay_ms,
        "between_pairs_ms": limits.pair_delay_ms,
        "max_pages_now": limits.max_pages,
    }


@router.get("/health")
async def health() -> JSONResponse:
    return JSONResponse(content={"ok": True})


@admin_router.get("/config")
async def get_config(request: Request) -> JSONResponse:
    """Effective sync configuration (settings plus runtime overrides)."""
    service: TradeSyncService = request.app.state.service
    return JSONResponse(content={
        "ok": True,
        "config": _config_payload(service.orchestrator.limits()),
    })


@admin_router.post("/runtime")
async def update_runtime(body: RuntimeUpdateRequest, request: Request) -> JSONResponse:
    """Apply runtime overrides immediately; optionally persist them to .env.

    Invalid values raise InvalidInputError (400) and leave the current
    overlay untouched.
    """
    orchestrator = request.app.state.service.orchestrator
    update = body.to_runtime_config()
    orchestrator.runtime_config = orchestrator.runtime_config.merged_with(update)
    log.info("runtime_config_updated_via_api", **update.set_fields())

    if body.persist:
        env_file = request.app.state.env_file
        try:
            Path(env_file).touch(exist_ok=True)
            for name, value in update.set_fields().items():
                set_key(env_file, RUNTIME_ENV_KEYS[name], str(value), quote_mode="never")
        except OSError as e:
            log.error("runtime_config_persist_failed", error=str(e))
            return JSONResponse(
                status_code=500,
                content={"ok": False, "error": f"persist failed: {e}"},
            )

    return JSONResponse(content={
        "ok": True,
        "message": "runtime config updated",
        "persisted": body.persist,
        "config": _config_payload(orchestrator.limits()),
    })
