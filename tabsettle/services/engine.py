"""
Settlement engine wiring

Builds the services for one database session, leaves first, and connects the
ledger to the lifecycle manager for the auto-close check.
"""

from typing import Optional

from sqlmodel import Session

from tabsettle.core.events import EventBus, event_bus
from tabsettle.services.aggregator import OrderAggregator
from tabsettle.services.cover import CoverChargeReconciler
from tabsettle.services.ledger import PaymentLedger
from tabsettle.services.lifecycle import SessionLifecycleManager
from tabsettle.services.orders import OrderService
from tabsettle.services.receipts import ReceiptService
from tabsettle.services.settings_provider import SettingsProvider


class SettlementEngine:
    """All settlement services bound to one database session"""

    def __init__(self, db: Session, events: Optional[EventBus] = None):
        events = events or event_bus
        self.db = db
        self.settings = SettingsProvider(db)
        self.aggregator = OrderAggregator(db)
        self.cover = CoverChargeReconciler(db, self.aggregator, self.settings, events)
        self.ledger = PaymentLedger(db, self.aggregator, self.cover, events)
        self.lifecycle = SessionLifecycleManager(db, self.cover, self.ledger, events)
        self.ledger.settle = self.lifecycle
        self.orders = OrderService(db, self.aggregator, self.cover, events)
        self.receipts = ReceiptService(db, self.settings)
