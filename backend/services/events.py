"""WebSocket fan-out of CRUD change notifications.

Delivery is best-effort and at-most-once: a socket that fails a send is
dropped, nothing is retried or acknowledged.
"""

import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)

DISASTER_UPDATED = "disaster_updated"
RESOURCES_UPDATED = "resources_updated"
SOCIAL_MEDIA_UPDATED = "social_media_updated"

CREATED = "created"
UPDATED = "updated"
DELETED = "deleted"


class EventHub:
    """WebSocket connection manager for real-time updates."""

    def __init__(self):
        self.active: set[WebSocket] = set()

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self.active.add(ws)
        logger.info("Client connected (%d active)", len(self.active))

    def disconnect(self, ws: WebSocket) -> None:
        self.active.discard(ws)
        logger.info("Client disconnected (%d active)", len(self.active))

    async def emit(self, event: str, change_type: str, payload: dict) -> None:
        message = {"event": event, "type": change_type, "payload": payload}
        dead: set[WebSocket] = set()
        for ws in list(self.active):
            try:
                await ws.send_json(message)
            except Exception as e:  # any send failure means the client is gone
                logger.debug("Dropping websocket after failed send: %s", e)
                dead.add(ws)
        self.active -= dead
