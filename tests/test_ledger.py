"""
Payment ledger tests
"""

from decimal import Decimal
import random

import pytest
from sqlalchemy import update

from tabsettle.core.events import ORDERS_UPDATED, TABLE_SESSIONS_UPDATED, TABLES_UPDATED
from tabsettle.models import PaidItem, TableSession, TableSessionStatus, TableStatus
from tabsettle.services.exceptions import (
    ConcurrentModification, InvalidAmount, ItemQuantityExceeded, OverpayRejected,
    SessionAlreadyClosed, SessionNotFound,
)


def kebab_line(kebab, quantity=1):
    return PaidItem(
        order_item_id=kebab.id,
        quantity=quantity,
        menu_item_name=kebab.menu_item_name,
        price=kebab.price,
    )


def test_add_payment_records_entry(settlement, dinner, published):
    payment = settlement.ledger.add_payment(dinner.id, Decimal("5.00"), "card", notes="Marco")

    assert payment.amount == Decimal("5.00")
    assert payment.payment_method == "card"
    assert payment.notes == "Marco"
    assert payment.paid_items == []
    assert settlement.ledger.paid_total(dinner.id) == Decimal("5.00")
    assert settlement.ledger.remaining(dinner) == Decimal("16.00")
    assert [event.name for event in published] == [ORDERS_UPDATED, TABLE_SESSIONS_UPDATED]


def test_add_payment_bumps_version(settlement, dinner):
    version = dinner.version

    settlement.ledger.add_payment(dinner.id, Decimal("1.00"), "cash")

    assert settlement.lifecycle.get_session(dinner.id).version == version + 1


def test_amount_is_parsed_from_text(settlement, dinner):
    payment = settlement.ledger.add_payment(dinner.id, "7.5", "cash")

    assert payment.amount == Decimal("7.50")


@pytest.mark.parametrize("amount", [0, "0", "-1.00", "abc", "", None, "NaN", float("inf"), True])
def test_invalid_amounts_rejected(settlement, dinner, amount):
    with pytest.raises(InvalidAmount):
        settlement.ledger.add_payment(dinner.id, amount, "cash")

    assert settlement.ledger.payments(dinner.id) == []


def test_overpay_rejected(settlement, dinner):
    """25.00 against an unpaid 21.00 session is refused and nothing is written"""
    with pytest.raises(OverpayRejected) as exc_info:
        settlement.ledger.add_payment(dinner.id, Decimal("25.00"), "cash")

    assert exc_info.value.details["remaining"] == "21.00"
    assert settlement.ledger.payments(dinner.id) == []
    assert settlement.lifecycle.get_session(dinner.id).is_open()


def test_one_cent_tolerance(settlement, dinner):
    """Paying one cent over the remaining balance is accepted"""
    settlement.ledger.add_payment(dinner.id, Decimal("21.01"), "cash")

    session = settlement.lifecycle.get_session(dinner.id)
    assert session.status == TableSessionStatus.CLOSED
    assert settlement.ledger.remaining(session) == Decimal("0.00")


def test_empty_tab_rejects_payments(settlement, open_session):
    """A session with nothing to pay takes no money, even within the one cent tolerance"""
    with pytest.raises(OverpayRejected):
        settlement.ledger.add_payment(open_session.id, Decimal("0.01"), "cash")

    session = settlement.lifecycle.get_session(open_session.id)
    assert session.is_open()
    assert settlement.ledger.payments(open_session.id) == []

    closed = settlement.lifecycle.close_session(open_session.id, confirm_empty=True)
    assert closed.status == TableSessionStatus.CLOSED


def test_unknown_session(settlement):
    import uuid

    with pytest.raises(SessionNotFound):
        settlement.ledger.add_payment(uuid.uuid4(), Decimal("1.00"), "cash")


def test_closed_session_rejects_payments(settlement, dinner):
    settlement.lifecycle.close_session(dinner.id, method="cash")

    with pytest.raises(SessionAlreadyClosed):
        settlement.ledger.add_payment(dinner.id, Decimal("1.00"), "cash")


def test_full_payment_auto_closes(db, settlement, dinner, table, published):
    """The payment that clears the balance closes the session with method split"""
    settlement.ledger.add_payment(dinner.id, Decimal("10.00"), "cash")
    settlement.ledger.add_payment(dinner.id, Decimal("11.00"), "card")

    session = settlement.lifecycle.get_session(dinner.id)
    db.refresh(table)

    assert session.status == TableSessionStatus.CLOSED
    assert session.closing_payment_method == "split"
    assert session.closed_at is not None
    assert session.total == Decimal("21.00")
    assert table.status == TableStatus.AVAILABLE
    assert TABLES_UPDATED in [event.name for event in published]

    with pytest.raises(SessionAlreadyClosed):
        settlement.ledger.add_payment(dinner.id, Decimal("1.00"), "cash")
    assert settlement.lifecycle.get_session(dinner.id).status == TableSessionStatus.CLOSED


def test_auto_close_keeps_cover(settlement, dinner):
    """A tab paid with the cover applied closes at the covered total"""
    settlement.cover.set_cover_applied(dinner.id, True)
    settlement.ledger.add_payment(dinner.id, Decimal("24.00"), "cash")

    session = settlement.lifecycle.get_session(dinner.id)
    assert session.status == TableSessionStatus.CLOSED
    assert session.total == Decimal("24.00")


def test_payments_ordered_by_time(settlement, dinner):
    first = settlement.ledger.add_payment(dinner.id, Decimal("1.00"), "cash")
    second = settlement.ledger.add_payment(dinner.id, Decimal("2.00"), "card")

    assert [p.id for p in settlement.ledger.payments(dinner.id)] == [first.id, second.id]


def test_itemised_payment_updates_quantities(settlement, dinner, kebab):
    settlement.ledger.add_payment(dinner.id, Decimal("6.00"), "cash", paid_items=[kebab_line(kebab)])

    assert settlement.ledger.paid_quantity(dinner.id, kebab.id) == 1
    assert settlement.ledger.remaining_quantity(kebab) == 1
    assert settlement.ledger.paid_quantities(dinner.id) == {kebab.id: 1}


def test_itemised_lines_accept_dicts(settlement, dinner, kebab):
    settlement.ledger.add_payment(
        dinner.id,
        Decimal("12.00"),
        "cash",
        paid_items=[{"order_item_id": str(kebab.id), "quantity": 2, "menu_item_name": "Kebab Classico", "price": "6.00"}],
    )

    assert settlement.ledger.remaining_quantity(kebab) == 0


def test_item_quantity_cannot_exceed_order(settlement, dinner, kebab):
    with pytest.raises(ItemQuantityExceeded):
        settlement.ledger.add_payment(dinner.id, Decimal("18.00"), "cash", paid_items=[kebab_line(kebab, 3)])

    settlement.ledger.add_payment(dinner.id, Decimal("6.00"), "cash", paid_items=[kebab_line(kebab)])
    settlement.ledger.add_payment(dinner.id, Decimal("6.00"), "cash", paid_items=[kebab_line(kebab)])

    with pytest.raises(ItemQuantityExceeded):
        settlement.ledger.add_payment(dinner.id, Decimal("6.00"), "cash", paid_items=[kebab_line(kebab)])

    assert settlement.ledger.paid_quantity(dinner.id, kebab.id) == 2


def test_cover_quota(settlement, dinner):
    assert settlement.ledger.remaining_cover_quota(dinner) == 0

    session = settlement.cover.set_cover_applied(dinner.id, True)
    assert settlement.ledger.remaining_cover_quota(session) == 2

    cover_line = PaidItem(order_item_id=None, quantity=2, menu_item_name="Coperto", price=Decimal("1.50"))
    settlement.ledger.add_payment(dinner.id, Decimal("3.00"), "cash", paid_items=[cover_line])
    assert settlement.ledger.remaining_cover_quota(settlement.lifecycle.get_session(dinner.id)) == 0

    with pytest.raises(ItemQuantityExceeded):
        settlement.ledger.add_payment(dinner.id, Decimal("1.50"), "cash", paid_items=[cover_line])


def test_remaining_items(settlement, dinner, kebab, margherita):
    settlement.ledger.add_payment(dinner.id, Decimal("9.00"), "cash", paid_items=[
        PaidItem(order_item_id=margherita.id, quantity=1, menu_item_name="Pizza Margherita", price=Decimal("9.00")),
    ])
    settlement.ledger.add_payment(dinner.id, Decimal("6.00"), "cash", paid_items=[kebab_line(kebab)])

    remaining = settlement.ledger.remaining_items(dinner.id)

    assert len(remaining) == 1
    assert remaining[0].order_item_id == kebab.id
    assert remaining[0].order_number == 2
    assert remaining[0].remaining_quantity == 1


def test_summary(settlement, dinner):
    settlement.ledger.add_payment(dinner.id, Decimal("4.00"), "cash")

    summary = settlement.ledger.summary(dinner.id)

    assert summary.total == Decimal("21.00")
    assert summary.paid == Decimal("4.00")
    assert summary.remaining == Decimal("17.00")
    assert summary.cover_applied is False
    assert summary.covers == 2
    assert summary.cover_unit_price == Decimal("1.50")
    assert summary.status == "open"


def test_stale_version_rejected(db, settlement, dinner):
    """A write based on an outdated read is refused"""
    stale = settlement.lifecycle.get_session(dinner.id)
    db.connection().execute(
        update(TableSession)
        .where(TableSession.id == dinner.id)
        .values(version=TableSession.version + 1)
    )

    with pytest.raises(ConcurrentModification):
        settlement.ledger.claim_session(stale)
    db.rollback()


def test_random_payments_never_exceed_total(settlement, dinner):
    """Whatever the sequence, collected money never exceeds the total by more than a cent"""
    rng = random.Random(1234)
    settlement.cover.set_cover_applied(dinner.id, True)

    for _ in range(40):
        amount = Decimal(rng.randint(1, 900)) / 100
        try:
            settlement.ledger.add_payment(dinner.id, amount, rng.choice(["cash", "card", "online"]))
        except (OverpayRejected, SessionAlreadyClosed):
            pass

        session = settlement.lifecycle.get_session(dinner.id)
        paid = settlement.ledger.paid_total(dinner.id)
        assert paid <= session.total + Decimal("0.01")
        assert settlement.ledger.remaining(session) == max(Decimal("0.00"), session.total - paid)
        if settlement.ledger.remaining(session) <= Decimal("0.01"):
            assert session.status == TableSessionStatus.CLOSED


def test_random_item_selections_never_overpay_items(settlement, dinner, kebab):
    rng = random.Random(99)

    for _ in range(10):
        quantity = rng.randint(1, 3)
        try:
            settlement.ledger.add_payment(
                dinner.id, kebab.price * quantity, "cash", paid_items=[kebab_line(kebab, quantity)]
            )
        except (ItemQuantityExceeded, OverpayRejected):
            pass
        assert settlement.ledger.paid_quantity(dinner.id, kebab.id) <= kebab.quantity
