"""
Cover-charge reconciliation tests
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from tabsettle.core.events import TABLE_SESSIONS_UPDATED
from tabsettle.models import PaidItem
from tabsettle.services.exceptions import CoverAlreadyPaid, SessionAlreadyClosed, TotalBelowPaid


def test_expected_with_cover(settlement, dinner):
    """Expected total is baseline plus unit price times covers"""
    assert settlement.cover.expected_with_cover(dinner) == Decimal("24.00")


def test_cover_not_applied_after_orders(settlement, dinner):
    assert dinner.total == Decimal("21.00")
    assert settlement.cover.is_cover_applied(dinner) is False


def test_enable_cover(settlement, dinner, published):
    session = settlement.cover.set_cover_applied(dinner.id, True)

    assert session.total == Decimal("24.00")
    assert settlement.cover.is_cover_applied(session) is True
    assert [event.name for event in published] == [TABLE_SESSIONS_UPDATED]


def test_cover_state(settlement, dinner):
    assert settlement.cover.cover_state(dinner) == (False, Decimal("0.00"))

    session = settlement.cover.set_cover_applied(dinner.id, True)
    state = settlement.cover.cover_state(session)

    assert state.applied is True
    assert state.amount == Decimal("3.00")


def test_enable_then_disable_restores_baseline(settlement, dinner):
    """Toggling the cover on and off with no payments in between is lossless"""
    settlement.cover.set_cover_applied(dinner.id, True)
    session = settlement.cover.set_cover_applied(dinner.id, False)

    assert session.total == Decimal("21.00")
    assert settlement.cover.is_cover_applied(session) is False


def test_enabling_twice_is_stable(settlement, dinner, published):
    settlement.cover.set_cover_applied(dinner.id, True)
    session = settlement.cover.set_cover_applied(dinner.id, True)

    assert session.total == Decimal("24.00")
    assert len(published) == 1


def test_remove_cover_after_plain_payment(settlement, dinner):
    """Cover on, 3.00 paid in cash, cover off: total 21.00, paid 3.00, remaining 18.00"""
    settlement.cover.set_cover_applied(dinner.id, True)
    settlement.ledger.add_payment(dinner.id, Decimal("3.00"), "cash")

    session = settlement.cover.set_cover_applied(dinner.id, False)
    summary = settlement.ledger.summary(session.id)

    assert summary.total == Decimal("21.00")
    assert summary.paid == Decimal("3.00")
    assert summary.remaining == Decimal("18.00")


def test_cover_applied_before_payment(settlement, dinner):
    """Cover on, then 3.00 paid: total 24.00, paid 3.00, remaining 21.00"""
    settlement.cover.set_cover_applied(dinner.id, True)
    settlement.ledger.add_payment(dinner.id, Decimal("3.00"), "cash")

    summary = settlement.ledger.summary(dinner.id)

    assert summary.total == Decimal("24.00")
    assert summary.paid == Decimal("3.00")
    assert summary.remaining == Decimal("21.00")
    assert summary.cover_applied is True


def test_no_op_without_cover_price(settlement, dinner, published):
    """With no cover charge configured, toggling changes nothing"""
    settlement.settings.update(cover_charge=Decimal("0.00"))

    session = settlement.cover.set_cover_applied(dinner.id, True)

    assert session.total == Decimal("21.00")
    assert settlement.cover.is_cover_applied(session) is False
    assert published == []


def test_no_op_without_covers(settlement, other_table, shop, published):
    session = settlement.lifecycle.open_session(other_table.id, covers=0)
    settlement.orders.create_order(session.id, items=[
        {"menu_item_name": "Caffe", "price": Decimal("1.00")},
    ])
    published.clear()

    session = settlement.cover.set_cover_applied(session.id, True)

    assert session.total == Decimal("1.00")
    assert published == []


def test_closed_session_rejected(settlement, dinner):
    settlement.lifecycle.close_session(dinner.id, method="cash")

    with pytest.raises(SessionAlreadyClosed):
        settlement.cover.set_cover_applied(dinner.id, True)


def test_cannot_remove_paid_cover(settlement, dinner):
    """Once a cover was paid as an item, the cover charge stays"""
    settlement.cover.set_cover_applied(dinner.id, True)
    settlement.ledger.add_payment(
        dinner.id,
        Decimal("1.50"),
        "cash",
        paid_items=[PaidItem(order_item_id=None, quantity=1, menu_item_name="Coperto", price=Decimal("1.50"))],
    )

    with pytest.raises(CoverAlreadyPaid):
        settlement.cover.set_cover_applied(dinner.id, False)

    assert settlement.lifecycle.get_session(dinner.id).total == Decimal("24.00")


def test_cannot_drop_total_below_paid(settlement, dinner):
    settlement.cover.set_cover_applied(dinner.id, True)
    settlement.ledger.add_payment(dinner.id, Decimal("22.00"), "card")

    with pytest.raises(TotalBelowPaid):
        settlement.cover.set_cover_applied(dinner.id, False)

    summary = settlement.ledger.summary(dinner.id)
    assert summary.total == Decimal("24.00")
    assert summary.remaining == Decimal("2.00")


def test_inference_failure_degrades_to_not_applied(settlement, dinner, monkeypatch):
    """Store errors while inferring are logged and read as 'not applied'"""
    settlement.cover.set_cover_applied(dinner.id, True)

    def broken(_session):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(settlement.aggregator, "session_base_total", broken)

    assert settlement.cover.is_cover_applied(dinner) is False


def test_sync_session_total_keeps_inferred_cover(db, settlement, dinner, kebab):
    settlement.cover.set_cover_applied(dinner.id, True)

    session = settlement.cover.sync_session_total(dinner.id)

    assert session.total == Decimal("24.00")


def test_sync_session_total_with_explicit_decision(settlement, dinner):
    session = settlement.cover.sync_session_total(dinner.id, include=True)

    assert session.total == Decimal("24.00")
