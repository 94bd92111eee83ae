"""
Table session lifecycle: open, close, auto-close, transfer

A session moves from ``open`` to ``closed`` exactly once. Opening marks the
table occupied, closing frees it again.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from tabsettle.core.events import EventBus, OrdersUpdated, TableSessionsUpdated, TablesUpdated
from tabsettle.core.money import EPSILON, ZERO, parse_amount, to_money
from tabsettle.models import (
    ClosingMethod, Order, OrderItem, SessionTotalOverride, Table,
    TableSession, TableSessionStatus, TableStatus,
)
from tabsettle.services.base import BaseService
from tabsettle.services.cover import CoverChargeReconciler
from tabsettle.services.exceptions import (
    DestinationOccupied, EmptySessionConfirmationRequired, InvalidAmount,
    PaymentMethodRequired, TableAlreadyOpen, TableNotFound,
    TotalBelowPaid,
)
from tabsettle.services.ledger import PaymentLedger, session_payments


class SessionLifecycleManager(BaseService):
    """Opens, closes and moves table sessions"""

    def __init__(
        self,
        db: Session,
        cover: CoverChargeReconciler,
        ledger: PaymentLedger,
        events: Optional[EventBus] = None,
    ):
        super().__init__(db, events)
        self.cover = cover
        self.ledger = ledger

    # Queries

    def get_session(self, session_id: uuid.UUID) -> TableSession:
        return self.get_session_or_404(session_id)

    def get_active_session_for_table(self, table_id: uuid.UUID) -> Optional[TableSession]:
        return self.db.exec(
            select(TableSession).where(
                TableSession.table_id == table_id,
                TableSession.status == TableSessionStatus.OPEN.value,
            )
        ).first()

    def list_active_sessions(self) -> List[TableSession]:
        return list(self.db.exec(
            select(TableSession)
            .where(TableSession.status == TableSessionStatus.OPEN.value)
            .order_by(TableSession.opened_at)
        ).all())

    def _get_table(self, table_id: uuid.UUID) -> Table:
        table = self.db.get(Table, table_id)
        if table is None or not table.is_active:
            raise TableNotFound(table_id)
        return table

    def _set_table_status(self, table_id: uuid.UUID, status: TableStatus):
        table = self.db.get(Table, table_id)
        if table is None:
            return
        table.status = status.value
        table.updated_at = datetime.utcnow()
        self.db.add(table)

    # Open

    def open_session(
        self,
        table_id: uuid.UUID,
        covers: int = 1,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> TableSession:
        """Open a tab on a free table"""

        def operation():
            table = self._get_table(table_id)
            if self.get_active_session_for_table(table_id) is not None:
                raise TableAlreadyOpen(table_id)

            table_session = TableSession(
                table_id=table.id,
                covers=max(0, covers),
                customer_name=customer_name,
                customer_phone=customer_phone,
                notes=notes,
                total=ZERO,
            )
            self.db.add(table_session)
            self._set_table_status(table.id, TableStatus.OCCUPIED)
            self.db.flush()
            return table_session

        try:
            table_session = self.run_in_transaction(
                operation,
                events=lambda result: [
                    TableSessionsUpdated(session_id=result.id, status=result.status),
                    TablesUpdated(table_ids=[table_id]),
                ],
            )
        except IntegrityError:
            # Lost the race against another device opening the same table
            self.logger.warning("Concurrent open rejected", table_id=str(table_id))
            raise TableAlreadyOpen(table_id)

        self.logger.info(
            "Table session opened",
            session_id=str(table_session.id),
            table_id=str(table_id),
            covers=table_session.covers,
        )
        return table_session

    # Close

    def close_locked(
        self,
        table_session: TableSession,
        method: Optional[Union[ClosingMethod, str]],
        smac: bool = False,
        include_cover: Optional[bool] = None,
        confirm_empty: bool = False,
    ) -> TableSession:
        """Close an already locked open session"""
        if include_cover is not None:
            self.cover.apply_locked(table_session, include_cover)

        if to_money(table_session.total) == ZERO:
            if not confirm_empty:
                raise EmptySessionConfirmationRequired(table_session.id)
            closing_method = None
        elif method is None:
            raise PaymentMethodRequired(table_session.id)
        else:
            closing_method = ClosingMethod(method).value

        self.claim_session(table_session)
        table_session.status = TableSessionStatus.CLOSED.value
        table_session.closed_at = datetime.utcnow()
        table_session.closing_payment_method = closing_method
        table_session.closing_smac_flag = bool(smac) if closing_method else False
        self.db.add(table_session)
        self._set_table_status(table_session.table_id, TableStatus.AVAILABLE)
        return table_session

    def close_session(
        self,
        session_id: uuid.UUID,
        method: Optional[Union[ClosingMethod, str]] = None,
        smac: bool = False,
        include_cover: Optional[bool] = None,
        confirm_empty: bool = False,
    ) -> TableSession:
        """Close a session and free its table.

        ``include_cover`` of None leaves the total (and so the cover state) as it is.
        A session whose total is zero closes only with ``confirm_empty`` and
        records no payment method.
        """

        def operation():
            table_session = self.lock_session(session_id)
            return self.close_locked(
                table_session,
                method,
                smac=smac,
                include_cover=include_cover,
                confirm_empty=confirm_empty,
            )

        table_session = self.run_in_transaction(
            operation,
            events=lambda result: [
                TableSessionsUpdated(session_id=session_id, status=result.status),
                TablesUpdated(table_ids=[result.table_id]),
            ],
        )

        self.logger.info(
            "Table session closed",
            session_id=str(session_id),
            total=str(table_session.total),
            method=table_session.closing_payment_method,
        )
        return table_session

    def settle_locked(self, table_session: TableSession) -> bool:
        """Auto-close a locked session once its balance is paid; True when it closed"""
        if not table_session.is_open():
            return False
        if to_money(table_session.total) <= ZERO:
            return False

        outstanding = to_money(table_session.total) - self.ledger.paid_total(table_session.id)
        if outstanding > EPSILON:
            return False

        # The total is left as it is: the cover is never re-added here
        self.close_locked(table_session, ClosingMethod.SPLIT)
        self.logger.info(
            "Table session settled",
            session_id=str(table_session.id),
            total=str(table_session.total),
        )
        return True

    def settle_if_paid(self, session_id: uuid.UUID) -> TableSession:
        """Close with method ``split`` when nothing is left to pay; no-op otherwise"""

        def operation():
            table_session = self.lock_session(session_id, require_open=False)
            return table_session, self.settle_locked(table_session)

        table_session, _ = self.run_in_transaction(
            operation,
            events=lambda result: (
                [
                    TableSessionsUpdated(session_id=session_id, status=result[0].status),
                    TablesUpdated(table_ids=[result[0].table_id]),
                ]
                if result[1] else []
            ),
        )
        self.db.refresh(table_session)
        return table_session

    # Transfer

    def transfer_session(self, session_id: uuid.UUID, new_table_id: uuid.UUID) -> TableSession:
        """Move an open session to another free table"""

        def operation():
            destination = self._get_table(new_table_id)
            table_session = self.lock_session(session_id)
            previous_table_id = table_session.table_id

            if previous_table_id == destination.id:
                return table_session, previous_table_id

            occupant = self.get_active_session_for_table(destination.id)
            if occupant is not None:
                raise DestinationOccupied(destination.id)

            self.claim_session(table_session)
            table_session.table_id = destination.id
            self.db.add(table_session)

            self._set_table_status(previous_table_id, TableStatus.AVAILABLE)
            self._set_table_status(destination.id, TableStatus.OCCUPIED)
            return table_session, previous_table_id

        table_session, previous_table_id = self.run_in_transaction(
            operation,
            events=lambda result: [
                TableSessionsUpdated(session_id=session_id, status=result[0].status),
                TablesUpdated(table_ids=[result[1], new_table_id]),
            ],
        )

        self.logger.info(
            "Table session transferred",
            session_id=str(session_id),
            from_table_id=str(previous_table_id),
            to_table_id=str(new_table_id),
        )
        return table_session

    # Administrative

    def override_total(
        self,
        session_id: uuid.UUID,
        total: Union[Decimal, str, float, int],
        reason: str,
        performed_by: Optional[str] = None,
    ) -> SessionTotalOverride:
        """Replace the total by hand, leaving an audit record"""
        value = parse_amount(total)
        if value is None or value < ZERO:
            raise InvalidAmount(total)
        value = to_money(value)

        def operation():
            table_session = self.lock_session(session_id)
            paid = self.ledger.paid_total(session_id)
            if value < paid - EPSILON:
                raise TotalBelowPaid(value, paid)

            audit = SessionTotalOverride(
                session_id=session_id,
                previous_total=to_money(table_session.total),
                new_total=value,
                reason=reason,
                performed_by=performed_by,
            )
            self.claim_session(table_session)
            table_session.total = value
            self.db.add(table_session)
            self.db.add(audit)
            self.db.flush()
            return audit

        audit = self.run_in_transaction(
            operation,
            events=lambda result: [TableSessionsUpdated(session_id=session_id, status="open")],
        )

        self.logger.warning(
            "Session total overridden",
            session_id=str(session_id),
            previous_total=str(audit.previous_total),
            new_total=str(audit.new_total),
            delta=str(audit.delta),
            reason=reason,
            performed_by=performed_by,
        )
        return audit

    def delete_session(self, session_id: uuid.UUID) -> None:
        """Remove a session with its orders, items and ledger entries"""

        def operation():
            table_session = self.lock_session(session_id, require_open=False)
            table_id = table_session.table_id
            was_open = table_session.is_open()

            for payment in session_payments(self.db, session_id):
                self.db.delete(payment)

            orders = self.db.exec(select(Order).where(Order.session_id == session_id)).all()
            for order in orders:
                for item in self.db.exec(select(OrderItem).where(OrderItem.order_id == order.id)).all():
                    self.db.delete(item)
                self.db.delete(order)

            overrides = self.db.exec(
                select(SessionTotalOverride).where(SessionTotalOverride.session_id == session_id)
            ).all()
            for audit in overrides:
                self.db.delete(audit)

            self.db.flush()
            self.db.delete(table_session)
            if was_open:
                self._set_table_status(table_id, TableStatus.AVAILABLE)
            return table_id

        table_id = self.run_in_transaction(
            operation,
            events=lambda result: [
                OrdersUpdated(session_id=session_id),
                TableSessionsUpdated(session_id=session_id, status="deleted"),
                TablesUpdated(table_ids=[result]),
            ],
        )

        self.logger.warning("Table session deleted", session_id=str(session_id), table_id=str(table_id))
