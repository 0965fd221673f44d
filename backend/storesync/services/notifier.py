"""
WebSocket change notifier for live dashboards.

WHAT:
    Tracks connected dashboard websockets and pushes a bare "data_updated"
    signal to all of them after a successful mutation.

WHY:
    Dashboards refresh on a hint instead of polling. The signal carries no
    payload and nothing is queued or replayed: a client that was offline
    re-fetches current state when it reconnects.

USAGE:
    # After an order upsert commits:
    await notifier.publish()

    # In the websocket route:
    await notifier.connect(websocket)
    ...
    await notifier.disconnect(websocket)

REFERENCES:
    - storesync/routers/realtime.py (WebSocket endpoint)
    - storesync/services/webhook_service.py (publisher)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List

from fastapi import WebSocket

logger = logging.getLogger(__name__)


DATA_UPDATED_EVENT = "data_updated"


@dataclass
class DashboardConnection:
    """A connected dashboard socket and when it joined."""
    websocket: WebSocket
    connected_at: datetime = field(default_factory=datetime.utcnow)


class ChangeNotifier:
    """
    Process-wide broadcast channel for "data changed" hints.

    One instance lives on app.state for the lifetime of the server. The lock
    only guards the subscriber map; sends happen outside it so one slow
    client cannot block registration of others.
    """

    def __init__(self):
        # websocket -> connection metadata
        self._connections: Dict[WebSocket, DashboardConnection] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        """Accept the socket, register it, and confirm the subscription."""
        await websocket.accept()

        async with self._lock:
            self._connections[websocket] = DashboardConnection(websocket=websocket)

        logger.info("[NOTIFIER] Dashboard connected (active=%d)", len(self._connections))

        await websocket.send_json({
            "type": "connected",
            "timestamp": datetime.utcnow().isoformat(),
        })

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            connection = self._connections.pop(websocket, None)

        if connection:
            logger.info("[NOTIFIER] Dashboard disconnected (active=%d)", len(self._connections))

    async def publish(self) -> None:
        """Send the data_updated signal to every connected dashboard.

        Delivery is best effort. Sockets that fail are dropped; the caller
        never sees an error from here.
        """
        async with self._lock:
            targets: List[WebSocket] = list(self._connections)

        if not targets:
            return

        disconnected = []
        for websocket in targets:
            try:
                await websocket.send_json({"type": DATA_UPDATED_EVENT})
            except Exception as e:
                logger.warning("[NOTIFIER] Failed to send to dashboard: %s", e)
                disconnected.append(websocket)

        for websocket in disconnected:
            await self.disconnect(websocket)

        logger.debug(
            "[NOTIFIER] Published %s to %d dashboards",
            DATA_UPDATED_EVENT, len(targets) - len(disconnected),
        )

    def connection_count(self) -> int:
        return len(self._connections)
