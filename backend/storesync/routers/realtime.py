"""Dashboard websocket channel.

WS /ws: the client connects, gets {"type": "connected"}, then receives
{"type": "data_updated"} whenever stored data changes. Text "ping" is
answered with "pong" so clients can keep idle connections open.
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..services.notifier import ChangeNotifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def dashboard_socket(websocket: WebSocket):
    notifier: ChangeNotifier = websocket.app.state.notifier

    try:
        await notifier.connect(websocket)
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        await notifier.disconnect(websocket)
