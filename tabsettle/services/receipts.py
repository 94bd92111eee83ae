"""
Partial-payment receipts

Receipts are projections of a ledger entry and are never stored.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import uuid

from pydantic import BaseModel, Field
from sqlmodel import Session

from tabsettle.core.config import get_settings
from tabsettle.core.money import ZERO, to_money
from tabsettle.models import SessionPayment, ShopSettings
from tabsettle.services.exceptions import PaymentNotFound
from tabsettle.services.settings_provider import SettingsProvider

GENERIC_LINE = "Partial payment"
WIDTH = 40


class ShopInfo(BaseModel):
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None


class ReceiptLine(BaseModel):
    name: str
    quantity: int
    unit_price: Decimal
    total: Decimal


class Receipt(BaseModel):
    """Receipt for one partial payment"""
    receipt_number: str
    payment_id: uuid.UUID
    session_id: uuid.UUID
    date: str
    time: str
    paid_at: datetime
    items: List[ReceiptLine] = Field(default_factory=list)
    subtotal: Decimal
    total: Decimal
    payment_method: str
    smac_flag: bool = False
    notes: Optional[str] = None
    shop_info: ShopInfo


def receipt_number(payment: SessionPayment) -> str:
    return f"P-{payment.id.hex[:8].upper()}"


def generate_partial_receipt(
    payment: SessionPayment,
    shop: ShopSettings,
    cover_label: Optional[str] = None,
) -> Receipt:
    """Project a ledger entry into a receipt.

    Itemised payments list their lines (the cover pseudo-item under the cover
    label); a payment without lines gets one generic line for its amount.
    """
    cover_label = cover_label or get_settings().COVER_LABEL
    amount = to_money(payment.amount)

    lines: List[ReceiptLine] = []
    for paid in payment.items():
        name = cover_label if paid.order_item_id is None else paid.menu_item_name
        unit_price = to_money(paid.price)
        lines.append(ReceiptLine(
            name=name,
            quantity=paid.quantity,
            unit_price=unit_price,
            total=to_money(unit_price * paid.quantity),
        ))

    if not lines:
        lines.append(ReceiptLine(name=GENERIC_LINE, quantity=1, unit_price=amount, total=amount))

    return Receipt(
        receipt_number=receipt_number(payment),
        payment_id=payment.id,
        session_id=payment.session_id,
        date=payment.paid_at.strftime("%d/%m/%Y"),
        time=payment.paid_at.strftime("%H:%M"),
        paid_at=payment.paid_at,
        items=lines,
        subtotal=to_money(sum((line.total for line in lines), ZERO)),
        total=amount,
        payment_method=payment.payment_method,
        smac_flag=payment.smac_flag,
        notes=payment.notes,
        shop_info=ShopInfo(name=shop.shop_name, address=shop.address, phone=shop.phone),
    )


def _columns(left: str, right: str) -> str:
    space = max(1, WIDTH - len(left) - len(right))
    return f"{left}{' ' * space}{right}"


def format_receipt_text(receipt: Receipt) -> str:
    """Format a receipt as text for thermal printer"""
    lines = []
    lines.append("=" * WIDTH)
    lines.append(receipt.shop_info.name.center(WIDTH).rstrip())
    if receipt.shop_info.address:
        lines.append(receipt.shop_info.address.center(WIDTH).rstrip())
    if receipt.shop_info.phone:
        lines.append(f"Tel: {receipt.shop_info.phone}".center(WIDTH).rstrip())
    lines.append("=" * WIDTH)
    lines.append(f"Receipt {receipt.receipt_number}")
    lines.append(f"Date: {receipt.date} {receipt.time}")
    lines.append("-" * WIDTH)

    for line in receipt.items:
        lines.append(_columns(f"{line.quantity}x {line.name}", f"{line.total:.2f}"))
        if line.quantity > 1:
            lines.append(f"  {line.unit_price:.2f} each")

    lines.append("-" * WIDTH)
    if receipt.subtotal != receipt.total:
        lines.append(_columns("Subtotal:", f"{receipt.subtotal:.2f}"))
    lines.append(_columns("TOTAL:", f"{receipt.total:.2f}"))
    lines.append(_columns("Paid by:", receipt.payment_method.title()))
    if receipt.smac_flag:
        lines.append("SMAC")
    if receipt.notes:
        lines.append(f"Note: {receipt.notes}")
    lines.append("=" * WIDTH)
    lines.append("Thank you!".center(WIDTH).rstrip())
    lines.append("=" * WIDTH)

    return "\n".join(lines)


class ReceiptService:
    """Loads ledger entries and shop settings to build receipts"""

    def __init__(self, db: Session, settings: Optional[SettingsProvider] = None):
        self.db = db
        self.settings = settings or SettingsProvider(db)

    def partial_receipt(self, payment_id: uuid.UUID) -> Receipt:
        payment = self.db.get(SessionPayment, payment_id)
        if payment is None:
            raise PaymentNotFound(payment_id)
        return generate_partial_receipt(
            payment,
            self.settings.get(),
            cover_label=self.settings.cover_label,
        )
