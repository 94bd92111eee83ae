"""
Order item model
Individual lines of an order with a price snapshot
"""

from sqlmodel import Field, SQLModel, Relationship
from decimal import Decimal
from typing import Optional, TYPE_CHECKING
import uuid

if TYPE_CHECKING:
    from tabsettle.models.order import Order


class OrderItem(SQLModel, table=True):
    """Line item owned by exactly one order"""

    __tablename__ = "order_items"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
        description="Order this item belongs to"
    )

    menu_item_name: str = Field(max_length=255, description="Item name (snapshot from menu)")
    price: Decimal = Field(
        default=Decimal("0.00"),
        max_digits=10,
        decimal_places=2,
        description="Unit price at time of order"
    )
    quantity: int = Field(default=1, ge=1, description="Quantity ordered")
    notes: Optional[str] = Field(default=None, max_length=500)

    order: Optional["Order"] = Relationship(back_populates="items")

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity
