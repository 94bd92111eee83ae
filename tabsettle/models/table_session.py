"""
Table session model: one open or closed tab for a table
"""

from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import Index, text
from decimal import Decimal
from datetime import datetime
from typing import Optional, TYPE_CHECKING, List
from enum import Enum
import uuid

if TYPE_CHECKING:
    from tabsettle.models.table import Table
    from tabsettle.models.order import Order
    from tabsettle.models.session_payment import SessionPayment


class TableSessionStatus(str, Enum):
    """Status of a table session"""
    OPEN = "open"               # Tab is running
    CLOSED = "closed"           # Settled or closed by staff (terminal)


class ClosingMethod(str, Enum):
    """Method recorded when a session is closed"""
    CASH = "cash"
    CARD = "card"
    ONLINE = "online"
    SPLIT = "split"             # Paid through the split-bill ledger


class TableSession(SQLModel, table=True):
    """Table session aggregating the orders and payments of one tab"""

    __tablename__ = "table_sessions"
    __table_args__ = (
        # At most one open session per table
        Index(
            "uq_table_sessions_open_table",
            "table_id",
            unique=True,
            sqlite_where=text("status = 'open'"),
            postgresql_where=text("status = 'open'"),
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    table_id: uuid.UUID = Field(
        foreign_key="tables.id",
        index=True,
        description="Table currently hosting this session"
    )

    status: str = Field(
        default=TableSessionStatus.OPEN.value,
        max_length=20,
        index=True,
        description="open or closed"
    )

    # Guests
    covers: int = Field(default=1, ge=0, description="Number of covers (guests)")
    customer_name: Optional[str] = Field(default=None, max_length=255)
    customer_phone: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=1000)

    # Authoritative total, including the cover charge when applied
    total: Decimal = Field(
        default=Decimal("0.00"),
        max_digits=10,
        decimal_places=2,
        description="Session total (orders baseline plus cover charge when applied)"
    )

    # Closing audit
    closing_payment_method: Optional[str] = Field(
        default=None,
        max_length=20,
        description="cash, card, online or split; empty for zero-total sessions"
    )
    closing_smac_flag: bool = Field(default=False, description="SMAC marker recorded at close")

    # Timestamps
    opened_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    closed_at: Optional[datetime] = Field(default=None, index=True)
    updated_at: Optional[datetime] = Field(default=None)

    # Optimistic concurrency control
    version: int = Field(
        default=1,
        description="Version number for optimistic concurrency control"
    )

    # Relationships
    table: Optional["Table"] = Relationship(back_populates="sessions")
    orders: List["Order"] = Relationship(back_populates="session")
    payments: List["SessionPayment"] = Relationship(back_populates="session")

    def is_open(self) -> bool:
        """Check if the session still accepts orders and payments"""
        return self.status == TableSessionStatus.OPEN
