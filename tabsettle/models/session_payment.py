"""
Session payment model
Append-only ledger of money collected against a table session
"""

from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import Column, JSON
from decimal import Decimal
from datetime import datetime
from typing import Optional, TYPE_CHECKING, List, Iterable
from enum import Enum
import uuid

if TYPE_CHECKING:
    from tabsettle.models.table_session import TableSession


class PaymentMethod(str, Enum):
    """Methods accepted for a ledger entry"""
    CASH = "cash"               # Physical cash
    CARD = "card"               # Credit/debit card
    ONLINE = "online"           # Online / app payment


class PaidItem(SQLModel):
    """One itemised line of a ledger entry; order_item_id None is the cover charge"""
    order_item_id: Optional[uuid.UUID] = None
    quantity: int
    menu_item_name: str
    price: Decimal

    def to_json(self) -> dict:
        return {
            "order_item_id": str(self.order_item_id) if self.order_item_id else None,
            "quantity": self.quantity,
            "menu_item_name": self.menu_item_name,
            "price": str(self.price),
        }

    @classmethod
    def from_json(cls, data: dict) -> "PaidItem":
        raw_id = data.get("order_item_id")
        return cls(
            order_item_id=uuid.UUID(raw_id) if raw_id else None,
            quantity=int(data["quantity"]),
            menu_item_name=data.get("menu_item_name") or "",
            price=Decimal(str(data.get("price", "0"))),
        )


class SessionPayment(SQLModel, table=True):
    """Immutable record of a partial payment"""

    __tablename__ = "session_payments"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    session_id: uuid.UUID = Field(
        foreign_key="table_sessions.id",
        index=True,
        description="Session this payment settles"
    )

    amount: Decimal = Field(
        max_digits=10,
        decimal_places=2,
        description="Amount collected"
    )
    payment_method: str = Field(max_length=20, index=True, description="cash, card or online")
    paid_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    notes: Optional[str] = Field(default=None, max_length=500, description="e.g. the guest who paid")
    smac_flag: bool = Field(default=False, description="Opaque loyalty/fiscal marker")

    paid_items: List[dict] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Itemised lines covered by this payment"
    )

    session: Optional["TableSession"] = Relationship(back_populates="payments")

    def items(self) -> List[PaidItem]:
        """Itemised lines as typed objects"""
        return [PaidItem.from_json(entry) for entry in (self.paid_items or [])]

    @staticmethod
    def dump_items(items: Iterable[PaidItem]) -> List[dict]:
        return [item.to_json() for item in items]
