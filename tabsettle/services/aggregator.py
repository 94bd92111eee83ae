"""
Order aggregation: order totals from their items, session baseline from orders
"""

from decimal import Decimal
import uuid

from sqlmodel import Session, select

from tabsettle.core.money import ZERO, to_money
from tabsettle.models import Order, OrderItem, TableSession


class OrderAggregator:
    """Derives order totals and the orders-only session baseline"""

    def __init__(self, db: Session):
        self.db = db

    def order_total(self, order: Order) -> Decimal:
        """Sum price * quantity over the order's current items without storing it"""
        items = self.db.exec(
            select(OrderItem).where(OrderItem.order_id == order.id)
        ).all()
        return to_money(sum((item.line_total for item in items), ZERO))

    def recompute_order_total(self, order: Order) -> Decimal:
        """Recompute the order total and store it"""
        order.total = self.order_total(order)
        self.db.add(order)
        return order.total

    def session_orders(self, session_id: uuid.UUID) -> list[Order]:
        return list(self.db.exec(
            select(Order)
            .where(Order.session_id == session_id)
            .order_by(Order.order_number, Order.created_at)
        ).all())

    def session_base_total(self, table_session: TableSession) -> Decimal:
        """Orders-only baseline of a session, read only"""
        return to_money(sum(
            (self.order_total(order) for order in self.session_orders(table_session.id)
             if order.counts_toward_total()),
            ZERO,
        ))

    def recompute_session_base_total(self, table_session: TableSession) -> Decimal:
        """Orders-only baseline of a session (cancelled orders excluded), storing each order total"""
        baseline = ZERO
        for order in self.session_orders(table_session.id):
            if not order.counts_toward_total():
                continue
            baseline += self.recompute_order_total(order)
        return to_money(baseline)
