"""
Order model: one comanda, optionally belonging to a table session
"""

from sqlmodel import Field, SQLModel, Relationship
from decimal import Decimal
from datetime import datetime
from typing import Optional, TYPE_CHECKING, List
from enum import Enum
import uuid

if TYPE_CHECKING:
    from tabsettle.models.table_session import TableSession
    from tabsettle.models.order_item import OrderItem


class OrderStatus(str, Enum):
    """Status of an order"""
    PENDING = "pending"               # Sent, waiting for the kitchen
    IN_PROGRESS = "in_progress"       # Kitchen is preparing
    DELIVERED = "delivered"           # Served
    CANCELLED = "cancelled"           # Cancelled by staff, excluded from totals


class Order(SQLModel, table=True):
    """Order (comanda) with a total derived from its items"""

    __tablename__ = "orders"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    session_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="table_sessions.id",
        index=True,
        nullable=True,
        description="Table session this order belongs to (empty for standalone orders)"
    )
    order_number: Optional[int] = Field(
        default=None,
        description="Sequence of the comanda within its session"
    )

    status: str = Field(
        default=OrderStatus.PENDING.value,
        max_length=20,
        index=True
    )
    notes: Optional[str] = Field(default=None, max_length=2000)

    # Derived from line items, recomputed after every item change
    total: Decimal = Field(
        default=Decimal("0.00"),
        max_digits=10,
        decimal_places=2,
        description="Sum of price * quantity over the order's items"
    )

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = Field(default=None)

    # Relationships
    session: Optional["TableSession"] = Relationship(back_populates="orders")
    items: List["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )

    def counts_toward_total(self) -> bool:
        return self.status != OrderStatus.CANCELLED
