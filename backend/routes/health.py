"""Health, readiness and real-time update routes."""

import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from dependencies import Services, get_services
from errors import StorageError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/ready")
async def ready(services: Services = Depends(get_services)) -> dict:
    """Lightweight readiness check, no external calls."""
    return {"status": "ok", "service": "disaster-api", "commit": services.settings.git_sha}


@router.get("/health")
async def health(services: Services = Depends(get_services)) -> dict:
    """Which integrations are live, and whether the cache table answers."""
    result = {
        "status": "ok",
        "service": "disaster-api",
        "commit": services.settings.git_sha,
        "environment": services.settings.environment,
        "capabilities": services.capabilities.as_dict(),
        "cache": "disabled",
    }

    if services.cache.enabled:
        try:
            result["cache"] = "ok"
            result["cache_entries"] = await asyncio.to_thread(services.cache_store.count)
        except StorageError as e:
            logger.exception("Cache health check failed")
            result["status"] = "degraded"
            result["cache"] = "error"
            result["cache_error"] = str(e)

    return result


@router.websocket("/ws")
async def updates_socket(ws: WebSocket):
    """
    Push channel for CRUD notifications.

    The server sends {"event": ..., "type": "created|updated|deleted", "payload": {...}}.
    A client "ping" gets {"type": "pong"}.
    """
    hub = ws.app.state.services.events
    await hub.connect(ws)
    try:
        while True:
            data = await ws.receive_text()
            if data == "ping":
                await ws.send_json({"type": "pong"})
    except WebSocketDisconnect:
        hub.disconnect(ws)
