"""Shared route dependencies."""

from __future__ import annotations

import secrets

from fastapi import Header, HTTPException, Request


async def require_api_key(
    request: Request, x_api_key: str | None = Header(default=None)
) -> None:
    """Enforce the X-API-KEY header when a server API key is configured."""
    expected = request.app.state.settings.server.api_key.get_secret_value()
    if not expected:
        return
    if x_api_key is None or not secrets.compare_digest(x_api_key, expected):
        raise HTTPException(status_code=401, detail="unauthorized")
