"""
Cover-charge reconciliation

Whether a session's total includes the per-guest cover charge is not stored;
it is inferred by comparing the total with the orders baseline plus
``cover_charge * covers``.
"""

from decimal import Decimal
from typing import NamedTuple, Optional
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from tabsettle.core.events import EventBus, TableSessionsUpdated
from tabsettle.core.money import EPSILON, ZERO, to_money
from tabsettle.models import TableSession
from tabsettle.services.aggregator import OrderAggregator
from tabsettle.services.base import BaseService
from tabsettle.services.exceptions import CoverAlreadyPaid, TotalBelowPaid
from tabsettle.services.ledger import sum_paid_quantities, sum_payments
from tabsettle.services.settings_provider import SettingsProvider


class CoverState(NamedTuple):
    applied: bool
    amount: Decimal


class CoverChargeReconciler(BaseService):
    """Applies, removes and infers the cover charge on a session total"""

    def __init__(
        self,
        db: Session,
        aggregator: OrderAggregator,
        settings: SettingsProvider,
        events: Optional[EventBus] = None,
    ):
        super().__init__(db, events)
        self.aggregator = aggregator
        self.settings = settings

    def cover_amount(self, table_session: TableSession) -> Decimal:
        return to_money(self.settings.cover_unit_price() * table_session.covers)

    def expected_with_cover(self, table_session: TableSession) -> Decimal:
        baseline = self.aggregator.session_base_total(table_session)
        return to_money(baseline + self.cover_amount(table_session))

    def feature_enabled(self, table_session: TableSession) -> bool:
        return self.settings.cover_unit_price() > ZERO and table_session.covers > 0

    def is_cover_applied(self, table_session: TableSession) -> bool:
        """Infer whether the stored total already carries the cover charge"""
        try:
            if not self.feature_enabled(table_session):
                return False
            expected = self.expected_with_cover(table_session)
        except SQLAlchemyError as e:
            self.logger.warning(
                "Cover inference failed, assuming not applied",
                session_id=str(table_session.id),
                error=str(e),
            )
            return False

        total = to_money(table_session.total)
        return abs(total - expected) < EPSILON or total >= expected - EPSILON

    def cover_state(self, table_session: TableSession) -> CoverState:
        if self.is_cover_applied(table_session):
            return CoverState(applied=True, amount=self.cover_amount(table_session))
        return CoverState(applied=False, amount=ZERO)

    def apply_locked(
        self,
        table_session: TableSession,
        include: bool,
        baseline: Optional[Decimal] = None,
    ) -> bool:
        """Rewrite the total of an already locked session; returns True when it changed"""
        if baseline is None:
            baseline = self.aggregator.recompute_session_base_total(table_session)

        with_cover = include and self.feature_enabled(table_session)
        new_total = to_money(baseline + self.cover_amount(table_session)) if with_cover else baseline

        if not with_cover:
            paid_covers = sum_paid_quantities(self.db, table_session.id).get(None, 0)
            if paid_covers > 0 and self.feature_enabled(table_session):
                raise CoverAlreadyPaid(paid_covers)

        paid = sum_payments(self.db, table_session.id)
        if new_total < paid - EPSILON:
            raise TotalBelowPaid(new_total, paid)

        if to_money(table_session.total) == new_total:
            return False

        self.claim_session(table_session)
        table_session.total = new_total
        self.db.add(table_session)
        return True

    def set_cover_applied(self, session_id: uuid.UUID, include: bool) -> TableSession:
        """Add or remove the cover charge on an open session"""

        def operation():
            table_session = self.lock_session(session_id)
            if not self.feature_enabled(table_session):
                return table_session, False
            changed = self.apply_locked(table_session, include)
            return table_session, changed

        table_session, changed = self.run_in_transaction(
            operation,
            events=lambda result: (
                [TableSessionsUpdated(session_id=session_id, status=result[0].status)]
                if result[1] else []
            ),
        )

        self.db.refresh(table_session)
        if changed:
            self.logger.info(
                "Cover charge toggled",
                session_id=str(session_id),
                applied=include,
                total=str(table_session.total),
            )
        return table_session

    def sync_session_total(self, session_id: uuid.UUID, include: Optional[bool] = None) -> TableSession:
        """Recompute the total from the orders, keeping the given or inferred cover decision"""

        def operation():
            table_session = self.lock_session(session_id)
            decision = self.is_cover_applied(table_session) if include is None else include
            changed = self.apply_locked(table_session, decision)
            return table_session, changed

        table_session, _ = self.run_in_transaction(
            operation,
            events=lambda result: (
                [TableSessionsUpdated(session_id=session_id, status=result[0].status)]
                if result[1] else []
            ),
        )
        self.db.refresh(table_session)
        return table_session
