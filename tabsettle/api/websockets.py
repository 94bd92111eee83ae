"""
WebSocket endpoint for refresh notifications
"""

from datetime import datetime

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import structlog

from tabsettle.core.websocket_manager import manager

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.websocket("/refresh")
async def websocket_refresh(websocket: WebSocket):
    """Staff devices listen here for orders/table-session/table refresh events"""
    await manager.connect(websocket)
    await websocket.send_json({"type": "connection_confirmed"})

    try:
        while True:
            data = await websocket.receive_json()
            if data.get("type") == "ping":
                await websocket.send_json({
                    "type": "pong",
                    "timestamp": datetime.utcnow().isoformat()
                })
    except WebSocketDisconnect:
        logger.info("Refresh socket closed by client")
    finally:
        manager.disconnect(websocket)
