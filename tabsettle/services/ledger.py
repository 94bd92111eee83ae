"""
Payment ledger

Append-only record of the partial payments collected on a session. Every
append is a guarded read-modify-write on the session row, followed by the
auto-close check in the same transaction.
"""

from collections import defaultdict
from decimal import Decimal
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Union
import uuid

from pydantic import BaseModel
from sqlmodel import Session, select

from tabsettle.core.events import EventBus, OrdersUpdated, TableSessionsUpdated, TablesUpdated
from tabsettle.core.money import EPSILON, ZERO, parse_amount, to_money
from tabsettle.models import Order, OrderItem, PaidItem, PaymentMethod, SessionPayment, TableSession
from tabsettle.services.base import BaseService
from tabsettle.services.exceptions import (
    InvalidAmount, InvalidSplit, ItemQuantityExceeded, OrderItemNotFound, OverpayRejected
)
from tabsettle.services.split_bill import RemainingItem, SettlementSnapshot

if TYPE_CHECKING:
    from tabsettle.services.aggregator import OrderAggregator
    from tabsettle.services.cover import CoverChargeReconciler
    from tabsettle.services.lifecycle import SessionLifecycleManager


def session_payments(db: Session, session_id: uuid.UUID) -> List[SessionPayment]:
    return list(db.exec(
        select(SessionPayment)
        .where(SessionPayment.session_id == session_id)
        .order_by(SessionPayment.paid_at)
    ).all())


def sum_payments(db: Session, session_id: uuid.UUID) -> Decimal:
    """Total collected on a session"""
    return to_money(sum((p.amount for p in session_payments(db, session_id)), ZERO))


def sum_paid_quantities(db: Session, session_id: uuid.UUID) -> Dict[Optional[uuid.UUID], int]:
    """Quantities paid per order item; the ``None`` key counts covers"""
    paid: Dict[Optional[uuid.UUID], int] = defaultdict(int)
    for payment in session_payments(db, session_id):
        for line in payment.items():
            paid[line.order_item_id] += line.quantity
    return dict(paid)


class SettlementSummary(BaseModel):
    session_id: uuid.UUID
    status: str
    total: Decimal
    paid: Decimal
    remaining: Decimal
    cover_applied: bool
    covers: int
    cover_unit_price: Decimal
    remaining_cover_quota: int


class PaymentLedger(BaseService):
    """Partial payments of a table session"""

    def __init__(
        self,
        db: Session,
        aggregator: "OrderAggregator",
        cover: "CoverChargeReconciler",
        events: Optional[EventBus] = None,
    ):
        super().__init__(db, events)
        self.aggregator = aggregator
        self.cover = cover
        # Wired by the engine; runs the auto-close check after each append
        self.settle: Optional["SessionLifecycleManager"] = None

    # Reads

    def payments(self, session_id: uuid.UUID) -> List[SessionPayment]:
        self.get_session_or_404(session_id)
        return session_payments(self.db, session_id)

    def paid_total(self, session_id: uuid.UUID) -> Decimal:
        return sum_payments(self.db, session_id)

    def remaining(self, table_session: TableSession) -> Decimal:
        remaining = to_money(table_session.total) - self.paid_total(table_session.id)
        return max(ZERO, to_money(remaining))

    def paid_quantities(self, session_id: uuid.UUID) -> Dict[Optional[uuid.UUID], int]:
        return sum_paid_quantities(self.db, session_id)

    def paid_quantity(self, session_id: uuid.UUID, order_item_id: Optional[uuid.UUID]) -> int:
        return self.paid_quantities(session_id).get(order_item_id, 0)

    def remaining_quantity(self, item: OrderItem) -> int:
        order = self.db.get(Order, item.order_id)
        if order is None or order.session_id is None:
            return item.quantity
        return item.quantity - self.paid_quantity(order.session_id, item.id)

    def remaining_items(self, session_id: uuid.UUID) -> List[RemainingItem]:
        """Items of the session's live orders that still have unpaid units"""
        table_session = self.get_session_or_404(session_id)
        paid = self.paid_quantities(session_id)

        remaining: List[RemainingItem] = []
        for order in self.aggregator.session_orders(table_session.id):
            if not order.counts_toward_total():
                continue
            for item in order.items:
                entry = RemainingItem(
                    order_item_id=item.id,
                    order_id=order.id,
                    order_number=order.order_number,
                    menu_item_name=item.menu_item_name,
                    price=to_money(item.price),
                    quantity=item.quantity,
                    paid_quantity=paid.get(item.id, 0),
                )
                if entry.remaining_quantity > 0:
                    remaining.append(entry)
        return remaining

    def remaining_cover_quota(self, table_session: TableSession) -> int:
        if not self.cover.is_cover_applied(table_session):
            return 0
        return max(0, table_session.covers - self.paid_quantity(table_session.id, None))

    def summary(self, session_id: uuid.UUID) -> SettlementSummary:
        table_session = self.get_session_or_404(session_id)
        paid = self.paid_total(session_id)
        return SettlementSummary(
            session_id=table_session.id,
            status=table_session.status,
            total=to_money(table_session.total),
            paid=paid,
            remaining=self.remaining(table_session),
            cover_applied=self.cover.is_cover_applied(table_session),
            covers=table_session.covers,
            cover_unit_price=self.cover.settings.cover_unit_price(),
            remaining_cover_quota=self.remaining_cover_quota(table_session),
        )

    def snapshot(self, session_id: uuid.UUID) -> SettlementSnapshot:
        """Input for the split-bill selector"""
        table_session = self.get_session_or_404(session_id)
        return SettlementSnapshot(
            session_id=table_session.id,
            remaining=self.remaining(table_session),
            items=self.remaining_items(session_id),
            cover_quota=self.remaining_cover_quota(table_session),
            cover_unit_price=self.cover.settings.cover_unit_price(),
            cover_label=self.cover.settings.cover_label,
        )

    # Writes

    def _check_item_quantities(self, table_session: TableSession, lines: List[PaidItem]):
        requested: Dict[Optional[uuid.UUID], int] = defaultdict(int)
        names: Dict[Optional[uuid.UUID], str] = {}
        for line in lines:
            if line.quantity < 1:
                raise InvalidSplit("Paid item quantities must be positive")
            requested[line.order_item_id] += line.quantity
            names[line.order_item_id] = line.menu_item_name

        if not requested:
            return

        paid = self.paid_quantities(table_session.id)
        for order_item_id, quantity in requested.items():
            if order_item_id is None:
                available = self.remaining_cover_quota(table_session)
            else:
                item = self.db.get(OrderItem, order_item_id)
                order = self.db.get(Order, item.order_id) if item else None
                if order is None or order.session_id != table_session.id:
                    raise OrderItemNotFound(order_item_id)
                available = item.quantity - paid.get(order_item_id, 0)

            if quantity > available:
                self.logger.warning(
                    "Itemised payment rejected",
                    session_id=str(table_session.id),
                    order_item_id=str(order_item_id) if order_item_id else None,
                    requested=quantity,
                    available=available,
                )
                raise ItemQuantityExceeded(names[order_item_id], quantity, available)

    def add_payment(
        self,
        session_id: uuid.UUID,
        amount: Union[Decimal, str, float, int],
        method: Union[PaymentMethod, str],
        notes: Optional[str] = None,
        smac: bool = False,
        paid_items: Optional[Iterable[Union[PaidItem, dict]]] = None,
    ) -> SessionPayment:
        """Append a payment to an open session.

        Raises:
            InvalidAmount: amount is not a finite number greater than zero
            SessionAlreadyClosed: the session was closed in the meantime
            OverpayRejected: amount exceeds the remaining balance by more than 0.01,
                or nothing is left to pay
            ItemQuantityExceeded: itemised lines exceed what is still unpaid
        """
        value = parse_amount(amount)
        if value is None or to_money(value) <= ZERO:
            raise InvalidAmount(amount)
        value = to_money(value)
        method = PaymentMethod(method)
        lines = [
            line if isinstance(line, PaidItem) else PaidItem.model_validate(line)
            for line in (paid_items or [])
        ]

        def operation():
            table_session = self.lock_session(session_id)

            remaining = self.remaining(table_session)
            # Nothing left to collect; an empty tab leaves only through close_session
            if remaining <= ZERO or value > remaining + EPSILON:
                self.logger.warning(
                    "Overpayment rejected",
                    session_id=str(session_id),
                    amount=str(value),
                    remaining=str(remaining),
                )
                raise OverpayRejected(value, remaining)

            self._check_item_quantities(table_session, lines)

            self.claim_session(table_session)
            payment = SessionPayment(
                session_id=table_session.id,
                amount=value,
                payment_method=method.value,
                notes=notes,
                smac_flag=smac,
                paid_items=SessionPayment.dump_items(lines),
            )
            self.db.add(payment)
            self.db.flush()

            closed = self.settle.settle_locked(table_session) if self.settle else False
            return payment, table_session, closed

        def events(result):
            payment, table_session, closed = result
            published = [
                OrdersUpdated(session_id=session_id),
                TableSessionsUpdated(session_id=session_id, status=table_session.status),
            ]
            if closed:
                published.append(TablesUpdated(table_ids=[table_session.table_id]))
            return published

        payment, table_session, closed = self.run_in_transaction(operation, events=events)
        self.db.refresh(payment)

        self.logger.info(
            "Payment appended",
            session_id=str(session_id),
            payment_id=str(payment.id),
            amount=str(payment.amount),
            method=payment.payment_method,
            itemised=bool(payment.paid_items),
            auto_closed=closed,
        )
        return payment
