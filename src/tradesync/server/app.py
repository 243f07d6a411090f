"""FastAPI application factory with JSON routes and the progress WebSocket hub."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tradesync.config import AppSettings
from tradesync.exceptions import InvalidInputError, MissingHistoryError, TradeSyncError
from tradesync.server.routes import admin, api, ws
from tradesync.server.routes.ws import ProgressHub
from tradesync.sync.service import TradeSyncService

log = structlog.get_logger(__name__)


def _status_for(exc: TradeSyncError) -> int:
    if isinstance(exc, InvalidInputError):
        return 400
    if isinstance(exc, MissingHistoryError):
        return 404
    return 500


async def _sync_error_handler(request: Request, exc: TradeSyncError) -> JSONResponse:
    status_code = _status_for(exc)
    log.warning(
        "request_failed",
        path=request.url.path,
        status=status_code,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return JSONResponse(status_code=status_code, content={"ok": False, "error": str(exc)})


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies as 400 invalid input."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    message = "; ".join(problems) or "invalid request"
    log.warning("request_invalid", path=request.url.path, error=message)
    return JSONResponse(status_code=400, content={"ok": False, "error": message})


async def _http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


def create_app(
    service: TradeSyncService,
    settings: AppSettings,
    hub: ProgressHub,
    lifespan: Any = None,
    env_file: str = ".env",
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Sync facade used by the route handlers.
        settings: Application settings (server API key lives here).
        hub: Progress hub; must be the publisher wired into the service.
        lifespan: Optional async context manager for startup/shutdown.
        env_file: Where POST /admin/runtime persists overrides.
    """
    app = FastAPI(title="Trade History Sync", lifespan=lifespan)

    app.state.service = service
    app.state.settings = settings
    app.state.hub = hub
    app.state.env_file = env_file

    app.add_exception_handler(TradeSyncError, _sync_error_handler)
    app.add_exception_handler(HTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    app.include_router(admin.router)
    app.include_router(admin.admin_router)
    app.include_router(api.router)
    app.include_router(ws.router)

    return app
