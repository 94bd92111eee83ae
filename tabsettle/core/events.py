"""
UI refresh events

The settlement services publish these after every committed mutation so that
external views (order board, table map) know to re-fetch. Producers never
depend on subscribers.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import uuid
import structlog

logger = structlog.get_logger(__name__)

ORDERS_UPDATED = "orders-updated"
TABLE_SESSIONS_UPDATED = "table-sessions-updated"
TABLES_UPDATED = "tables-updated"


class DomainEvent:
    """Base class for refresh events"""

    name: str = "domain-event"

    def __init__(self, event_id: uuid.UUID = None):
        self.event_id = event_id or uuid.uuid4()
        self.occurred_at = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary"""
        return {
            "type": self.name,
            "event_id": str(self.event_id),
            "occurred_at": self.occurred_at.isoformat(),
        }


class OrdersUpdated(DomainEvent):
    """Orders or their totals changed"""

    name = ORDERS_UPDATED

    def __init__(self, session_id: Optional[uuid.UUID] = None, event_id: uuid.UUID = None):
        super().__init__(event_id)
        self.session_id = session_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["session_id"] = str(self.session_id) if self.session_id else None
        return data


class TableSessionsUpdated(DomainEvent):
    """A table session was opened, changed, settled or closed"""

    name = TABLE_SESSIONS_UPDATED

    def __init__(
        self,
        session_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.session_id = session_id
        self.status = status

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "session_id": str(self.session_id) if self.session_id else None,
            "status": self.status,
        })
        return data


class TablesUpdated(DomainEvent):
    """Table occupancy changed"""

    name = TABLES_UPDATED

    def __init__(self, table_ids: Optional[List[uuid.UUID]] = None, event_id: uuid.UUID = None):
        super().__init__(event_id)
        self.table_ids = table_ids or []

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["table_ids"] = [str(table_id) for table_id in self.table_ids]
        return data


class EventBus:
    """Simple in-memory event bus for publishing refresh events"""

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[DomainEvent], Any]]] = {}

    def subscribe(self, event_name: str, handler: Callable[[DomainEvent], Any]):
        """Subscribe to a specific event name"""
        self._subscribers.setdefault(event_name, []).append(handler)
        logger.debug("Subscribed handler", event_name=event_name)

    def unsubscribe(self, event_name: str, handler: Callable[[DomainEvent], Any]):
        """Unsubscribe from an event name"""
        if handler in self._subscribers.get(event_name, []):
            self._subscribers[event_name].remove(handler)
            logger.debug("Unsubscribed handler", event_name=event_name)

    def publish(self, event: DomainEvent):
        """Publish an event to all subscribers"""
        handlers = list(self._subscribers.get(event.name, []))

        if not handlers:
            logger.debug("No subscribers for event", event_name=event.name)
            return

        logger.debug("Publishing event", event_name=event.name, event_id=str(event.event_id))

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error("Error in event handler", event_name=event.name, error=str(e), exc_info=True)

    def publish_all(self, events: List[DomainEvent]):
        """Publish several events in order"""
        for event in events:
            self.publish(event)

    def clear_subscribers(self):
        """Clear all subscribers (useful for testing)"""
        self._subscribers.clear()
        logger.debug("Cleared all event subscribers")


# Global event bus instance
event_bus = EventBus()
