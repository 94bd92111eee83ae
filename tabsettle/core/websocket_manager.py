"""
WebSocket connection manager for refresh notifications

Staff devices keep one socket open and re-fetch their views whenever a refresh
event arrives.
"""

import asyncio
from json import dumps
from typing import Optional, Set

from fastapi import WebSocket
import structlog

from tabsettle.core.events import (
    DomainEvent, EventBus, ORDERS_UPDATED, TABLE_SESSIONS_UPDATED, TABLES_UPDATED
)

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Manages staff WebSocket connections"""

    def __init__(self):
        self.connections: Set[WebSocket] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def bind_loop(self, loop: asyncio.AbstractEventLoop):
        """Remember the server loop so sync request handlers can schedule broadcasts"""
        self._loop = loop

    def attach(self, bus: EventBus):
        """Relay every refresh event published on the bus"""
        for event_name in (ORDERS_UPDATED, TABLE_SESSIONS_UPDATED, TABLES_UPDATED):
            bus.subscribe(event_name, self.relay)

    def detach(self, bus: EventBus):
        for event_name in (ORDERS_UPDATED, TABLE_SESSIONS_UPDATED, TABLES_UPDATED):
            bus.unsubscribe(event_name, self.relay)

    async def connect(self, websocket: WebSocket):
        """Accept and register a staff WebSocket"""
        await websocket.accept()
        self.connections.add(websocket)
        logger.info("Refresh socket connected", connections=len(self.connections))

    def disconnect(self, websocket: WebSocket):
        """Forget a WebSocket connection"""
        if websocket in self.connections:
            self.connections.discard(websocket)
            logger.info("Refresh socket disconnected", connections=len(self.connections))
        else:
            logger.warning("Attempted to disconnect unknown WebSocket")

    async def broadcast(self, message: dict):
        """Send a message to every connected device"""
        if not self.connections:
            return

        message_json = dumps(message)

        disconnected = []
        for connection in list(self.connections):
            try:
                await connection.send_text(message_json)
            except Exception as e:
                logger.error("Error sending to connection", error=str(e))
                disconnected.append(connection)

        # Clean up dead connections
        for connection in disconnected:
            self.disconnect(connection)

    def relay(self, event: DomainEvent):
        """Event bus handler; request handlers run in worker threads"""
        if self._loop is None or self._loop.is_closed():
            return
        message = event.to_dict()
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._loop.create_task(self.broadcast(message))
        else:
            asyncio.run_coroutine_threadsafe(self.broadcast(message), self._loop)


# Global connection manager
manager = ConnectionManager()
