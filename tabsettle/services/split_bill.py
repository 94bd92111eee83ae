"""
Split-bill selection

Pure helpers that turn an operator's selection (quantities of unpaid items,
number of covers) into a payment candidate. Nothing here touches the store:
the candidate is submitted through ``PaymentLedger.add_payment``.
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, computed_field

from tabsettle.core.money import EPSILON, ZERO, to_money
from tabsettle.models import PaidItem, PaymentMethod
from tabsettle.services.exceptions import EmptySelection, InvalidSplit, OrderItemNotFound

NOTES_MAX_LENGTH = 40

# Marks an override field the operator left alone; None is a real value for notes
UNCHANGED = object()


class RemainingItem(BaseModel):
    """An order item with quantity still to be paid"""

    model_config = ConfigDict(frozen=True)

    order_item_id: uuid.UUID
    order_id: uuid.UUID
    order_number: Optional[int] = None
    menu_item_name: str
    price: Decimal
    quantity: int
    paid_quantity: int = 0

    @computed_field
    @property
    def remaining_quantity(self) -> int:
        return max(0, self.quantity - self.paid_quantity)


class SettlementSnapshot(BaseModel):
    """What is left to pay on a session at one point in time"""

    model_config = ConfigDict(frozen=True)

    session_id: uuid.UUID
    remaining: Decimal
    items: List[RemainingItem] = Field(default_factory=list)
    cover_quota: int = 0
    cover_unit_price: Decimal = ZERO
    cover_label: str = "Coperto"

    def item(self, order_item_id: uuid.UUID) -> Optional[RemainingItem]:
        for item in self.items:
            if item.order_item_id == order_item_id:
                return item
        return None


class PaymentCandidate(BaseModel):
    """A payment proposed by the selector, editable before submission"""

    model_config = ConfigDict(frozen=True)

    amount: Decimal
    method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None
    smac: bool = False
    paid_items: List[PaidItem] = Field(default_factory=list)

    def override(
        self,
        amount=UNCHANGED,
        method=UNCHANGED,
        notes=UNCHANGED,
        smac=UNCHANGED,
    ) -> "PaymentCandidate":
        """Return a copy carrying the operator's edits; passing notes=None clears the notes"""
        changes = {"amount": amount, "method": method, "notes": notes, "smac": smac}
        data = self.model_dump()
        data.update({key: value for key, value in changes.items() if value is not UNCHANGED})
        return PaymentCandidate(**data)

    def as_payment_kwargs(self) -> dict:
        return {
            "amount": self.amount,
            "method": self.method,
            "notes": self.notes,
            "smac": self.smac,
            "paid_items": list(self.paid_items),
        }


class ItemSelection:
    """Desired quantities per item plus a cover count, capped by what is unpaid"""

    def __init__(self, snapshot: SettlementSnapshot):
        self.snapshot = snapshot
        self.quantities: Dict[uuid.UUID, int] = {}
        self.cover_count = 0

    def _remaining_for(self, order_item_id: uuid.UUID) -> int:
        item = self.snapshot.item(order_item_id)
        if item is None:
            raise OrderItemNotFound(order_item_id)
        return item.remaining_quantity

    def quantity(self, order_item_id: uuid.UUID) -> int:
        return self.quantities.get(order_item_id, 0)

    def set_quantity(self, order_item_id: uuid.UUID, quantity: int) -> int:
        capped = max(0, min(int(quantity), self._remaining_for(order_item_id)))
        if capped:
            self.quantities[order_item_id] = capped
        else:
            self.quantities.pop(order_item_id, None)
        return capped

    def increment(self, order_item_id: uuid.UUID) -> int:
        return self.set_quantity(order_item_id, self.quantity(order_item_id) + 1)

    def decrement(self, order_item_id: uuid.UUID) -> int:
        return self.set_quantity(order_item_id, self.quantity(order_item_id) - 1)

    def toggle_all(self, order_item_id: uuid.UUID) -> int:
        """Select every remaining unit, or clear the item if that is already selected"""
        remaining = self._remaining_for(order_item_id)
        if remaining and self.quantity(order_item_id) == remaining:
            return self.set_quantity(order_item_id, 0)
        return self.set_quantity(order_item_id, remaining)

    def set_cover_count(self, count: int) -> int:
        self.cover_count = max(0, min(int(count), self.snapshot.cover_quota))
        return self.cover_count

    def is_empty(self) -> bool:
        return not self.quantities and self.cover_count == 0


def _describe(lines: Iterable[PaidItem]) -> str:
    notes = ", ".join(f"{line.quantity}x {line.menu_item_name}" for line in lines)
    if len(notes) > NOTES_MAX_LENGTH:
        notes = notes[:NOTES_MAX_LENGTH] + "..."
    return notes


def build_candidate(
    selection: ItemSelection,
    snapshot: Optional[SettlementSnapshot] = None,
    method: PaymentMethod = PaymentMethod.CASH,
    smac: bool = False,
) -> PaymentCandidate:
    """Price a selection.

    The amount is clamped to the remaining balance when it exceeds it; the
    description and the itemised lines are left as selected.
    """
    snapshot = snapshot or selection.snapshot
    if selection.is_empty():
        raise EmptySelection()

    lines: List[PaidItem] = []
    amount = ZERO
    for item in snapshot.items:
        quantity = selection.quantity(item.order_item_id)
        if not quantity:
            continue
        lines.append(PaidItem(
            order_item_id=item.order_item_id,
            quantity=quantity,
            menu_item_name=item.menu_item_name,
            price=item.price,
        ))
        amount += item.price * quantity

    if selection.cover_count:
        lines.append(PaidItem(
            order_item_id=None,
            quantity=selection.cover_count,
            menu_item_name=snapshot.cover_label,
            price=snapshot.cover_unit_price,
        ))
        amount += snapshot.cover_unit_price * selection.cover_count

    amount = to_money(amount)
    if amount > snapshot.remaining + EPSILON:
        amount = to_money(snapshot.remaining)

    return PaymentCandidate(
        amount=amount,
        method=method,
        notes=_describe(lines),
        smac=smac,
        paid_items=lines,
    )


def manual_candidate(
    amount,
    method: PaymentMethod = PaymentMethod.CASH,
    notes: Optional[str] = None,
    smac: bool = False,
    paid_items: Iterable[PaidItem] = (),
) -> PaymentCandidate:
    return PaymentCandidate(
        amount=amount,
        method=method,
        notes=notes,
        smac=smac,
        paid_items=list(paid_items),
    )


def equal_split_candidate(
    remaining: Decimal,
    total_people: int,
    paying_people: int,
    method: PaymentMethod = PaymentMethod.CASH,
    smac: bool = False,
) -> PaymentCandidate:
    """Share of the remaining balance for ``paying_people`` out of ``total_people``"""
    if total_people < 1:
        raise InvalidSplit("total_people must be at least 1")
    if paying_people < 1 or paying_people > total_people:
        raise InvalidSplit("paying_people must be between 1 and total_people")

    remaining = to_money(remaining)
    share = min(remaining / total_people * paying_people, remaining)

    return PaymentCandidate(
        amount=to_money(share),
        method=method,
        notes=f"Equal split ({paying_people}/{total_people} guests)",
        smac=smac,
    )


def calculate_change(amount: Decimal, tendered: Decimal) -> Decimal:
    """Change due for a cash payment"""
    return max(ZERO, to_money(tendered) - to_money(amount))
