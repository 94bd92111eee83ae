"""
Order and item store operations

Every change to a session's orders recomputes the order total and the session
total. The cover state is read before the change and reapplied after it, so
adding a dish to a tab that carries the cover charge keeps the cover.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional, TypeVar, Union
import uuid

from sqlalchemy import func
from sqlmodel import Session, select

from tabsettle.core.events import EventBus, OrdersUpdated, TableSessionsUpdated
from tabsettle.core.money import ZERO, parse_amount, to_money
from tabsettle.models import Order, OrderItem, OrderStatus
from tabsettle.services.aggregator import OrderAggregator
from tabsettle.services.base import BaseService
from tabsettle.services.cover import CoverChargeReconciler
from tabsettle.services.exceptions import (
    InvalidAmount, ItemQuantityExceeded, OrderItemNotFound, OrderNotFound
)
from tabsettle.services.ledger import sum_paid_quantities

T = TypeVar("T")


class OrderService(BaseService):
    """Comande and their items"""

    def __init__(
        self,
        db: Session,
        aggregator: OrderAggregator,
        cover: CoverChargeReconciler,
        events: Optional[EventBus] = None,
    ):
        super().__init__(db, events)
        self.aggregator = aggregator
        self.cover = cover

    def _in_session(self, session_id: Optional[uuid.UUID], mutate: Callable[[], T]) -> T:
        """Apply an order change and resync the session total under the session guard"""

        def operation():
            if session_id is None:
                return mutate()
            table_session = self.lock_session(session_id)
            include_cover = self.cover.is_cover_applied(table_session)
            result = mutate()
            self.db.flush()
            self.cover.apply_locked(table_session, include_cover)
            return result

        def events(_):
            published = [OrdersUpdated(session_id=session_id)]
            if session_id is not None:
                published.append(TableSessionsUpdated(session_id=session_id, status="open"))
            return published

        return self.run_in_transaction(operation, events=events)

    def _get_order(self, order_id: uuid.UUID) -> Order:
        order = self.db.get(Order, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def _get_item(self, item_id: uuid.UUID) -> OrderItem:
        item = self.db.get(OrderItem, item_id)
        if item is None:
            raise OrderItemNotFound(item_id)
        return item

    def _paid_units(self, order: Order, item: OrderItem) -> int:
        if order.session_id is None:
            return 0
        return sum_paid_quantities(self.db, order.session_id).get(item.id, 0)

    @staticmethod
    def _price(value) -> Decimal:
        price = parse_amount(value)
        if price is None or price < ZERO:
            raise InvalidAmount(value)
        return to_money(price)

    @staticmethod
    def _quantity(value) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise InvalidAmount(value)
        return value

    def next_order_number(self, session_id: uuid.UUID) -> int:
        current = self.db.exec(
            select(func.max(Order.order_number)).where(Order.session_id == session_id)
        ).one()
        return (current or 0) + 1

    def create_order(
        self,
        session_id: Optional[uuid.UUID],
        items: Iterable[dict] = (),
        notes: Optional[str] = None,
    ) -> Order:
        """Create a comanda, numbered after the session's previous ones"""
        lines = [
            {
                "menu_item_name": line["menu_item_name"],
                "price": self._price(line.get("price", ZERO)),
                "quantity": self._quantity(line.get("quantity", 1)),
                "notes": line.get("notes"),
            }
            for line in items
        ]

        def mutate():
            order = Order(
                session_id=session_id,
                order_number=self.next_order_number(session_id) if session_id else None,
                notes=notes,
            )
            self.db.add(order)
            self.db.flush()
            for line in lines:
                self.db.add(OrderItem(order_id=order.id, **line))
            self.db.flush()
            self.aggregator.recompute_order_total(order)
            return order

        order = self._in_session(session_id, mutate)
        self.db.refresh(order)
        self.logger.info(
            "Order created",
            order_id=str(order.id),
            session_id=str(session_id) if session_id else None,
            order_number=order.order_number,
            total=str(order.total),
        )
        return order

    def add_item(
        self,
        order_id: uuid.UUID,
        menu_item_name: str,
        price: Union[Decimal, str, int, float],
        quantity: int = 1,
        notes: Optional[str] = None,
    ) -> OrderItem:
        order = self._get_order(order_id)
        price = self._price(price)
        quantity = self._quantity(quantity)

        def mutate():
            item = OrderItem(
                order_id=order.id,
                menu_item_name=menu_item_name,
                price=price,
                quantity=quantity,
                notes=notes,
            )
            self.db.add(item)
            self.db.flush()
            self.aggregator.recompute_order_total(order)
            return item

        item = self._in_session(order.session_id, mutate)
        self.db.refresh(item)
        self.logger.info("Order item added", order_id=str(order_id), item_id=str(item.id))
        return item

    def update_item(
        self,
        item_id: uuid.UUID,
        quantity: Optional[int] = None,
        price: Optional[Union[Decimal, str, int, float]] = None,
        notes: Optional[str] = None,
    ) -> OrderItem:
        item = self._get_item(item_id)
        order = self._get_order(item.order_id)
        new_quantity = self._quantity(quantity) if quantity is not None else None
        new_price = self._price(price) if price is not None else None

        def mutate():
            paid = self._paid_units(order, item)
            if new_quantity is not None and new_quantity < paid:
                raise ItemQuantityExceeded(item.menu_item_name, paid, new_quantity)
            if new_quantity is not None:
                item.quantity = new_quantity
            if new_price is not None:
                item.price = new_price
            if notes is not None:
                item.notes = notes
            self.db.add(item)
            self.db.flush()
            order.updated_at = datetime.utcnow()
            self.aggregator.recompute_order_total(order)
            return item

        item = self._in_session(order.session_id, mutate)
        self.db.refresh(item)
        self.logger.info("Order item updated", item_id=str(item_id), quantity=item.quantity)
        return item

    def delete_item(self, item_id: uuid.UUID) -> None:
        item = self._get_item(item_id)
        order = self._get_order(item.order_id)

        def mutate():
            paid = self._paid_units(order, item)
            if paid:
                raise ItemQuantityExceeded(item.menu_item_name, paid, 0)
            self.db.delete(item)
            self.db.flush()
            order.updated_at = datetime.utcnow()
            self.aggregator.recompute_order_total(order)

        self._in_session(order.session_id, mutate)
        self.logger.info("Order item deleted", item_id=str(item_id), order_id=str(order.id))

    def set_status(self, order_id: uuid.UUID, status: Union[OrderStatus, str]) -> Order:
        """Move an order through the kitchen states; cancelling drops it from the total"""
        order = self._get_order(order_id)
        status = OrderStatus(status)

        def mutate():
            if status == OrderStatus.CANCELLED and order.session_id is not None:
                paid = sum_paid_quantities(self.db, order.session_id)
                for item in order.items:
                    if paid.get(item.id, 0):
                        raise ItemQuantityExceeded(item.menu_item_name, paid[item.id], 0)
            order.status = status.value
            order.updated_at = datetime.utcnow()
            self.db.add(order)
            return order

        order = self._in_session(order.session_id, mutate)
        self.db.refresh(order)
        self.logger.info("Order status changed", order_id=str(order_id), status=order.status)
        return order
