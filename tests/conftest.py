"""
Test configuration for pytest
"""

import os
from decimal import Decimal
from typing import Generator, List

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, select

# Test environment variables
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LOG_JSON"] = "false"

from tabsettle.core.database import build_engine  # noqa: E402
from tabsettle.core.events import (  # noqa: E402
    DomainEvent, EventBus, ORDERS_UPDATED, TABLE_SESSIONS_UPDATED, TABLES_UPDATED
)
import tabsettle.models  # noqa: E402,F401
from tabsettle.models import OrderItem, ShopSettings, Table, TableSession  # noqa: E402
from tabsettle.services.engine import SettlementEngine  # noqa: E402


# Create test engine using in-memory SQLite shared by every connection
test_engine = build_engine(
    "sqlite:///:memory:",
    echo=False,
    poolclass=StaticPool,
)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a clean database session for each test"""
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def bus() -> EventBus:
    """Private event bus so tests see only their own events"""
    return EventBus()


@pytest.fixture
def published(bus: EventBus) -> List[DomainEvent]:
    """Every refresh event published during the test"""
    events: List[DomainEvent] = []
    for name in (ORDERS_UPDATED, TABLE_SESSIONS_UPDATED, TABLES_UPDATED):
        bus.subscribe(name, events.append)
    return events


@pytest.fixture
def settlement(db: Session, bus: EventBus) -> SettlementEngine:
    return SettlementEngine(db, bus)


@pytest.fixture
def shop(db: Session) -> ShopSettings:
    """Shop charging 1.50 per cover"""
    settings = ShopSettings(
        shop_name="Trattoria da Test",
        address="Via Roma 1, Milano",
        phone="02 1234567",
        cover_charge=Decimal("1.50"),
    )
    db.add(settings)
    db.commit()
    db.refresh(settings)
    return settings


@pytest.fixture
def table(db: Session) -> Table:
    table = Table(name="T1", capacity=4)
    db.add(table)
    db.commit()
    db.refresh(table)
    return table


@pytest.fixture
def other_table(db: Session) -> Table:
    table = Table(name="T2", capacity=2)
    db.add(table)
    db.commit()
    db.refresh(table)
    return table


@pytest.fixture
def open_session(settlement: SettlementEngine, table: Table, shop: ShopSettings) -> TableSession:
    """Empty open session for two guests"""
    return settlement.lifecycle.open_session(table.id, covers=2)


@pytest.fixture
def dinner(settlement: SettlementEngine, open_session: TableSession) -> TableSession:
    """Two comande: 9.00 and 12.00 (2x Kebab Classico @ 6.00), cover not applied"""
    settlement.orders.create_order(open_session.id, items=[
        {"menu_item_name": "Pizza Margherita", "price": Decimal("9.00"), "quantity": 1},
    ])
    settlement.orders.create_order(open_session.id, items=[
        {"menu_item_name": "Kebab Classico", "price": Decimal("6.00"), "quantity": 2},
    ])
    return settlement.lifecycle.get_session(open_session.id)


@pytest.fixture
def kebab(db: Session, dinner: TableSession) -> OrderItem:
    return db.exec(select(OrderItem).where(OrderItem.menu_item_name == "Kebab Classico")).one()


@pytest.fixture
def margherita(db: Session, dinner: TableSession) -> OrderItem:
    return db.exec(select(OrderItem).where(OrderItem.menu_item_name == "Pizza Margherita")).one()
