"""
Session payments API endpoints (partial payments, split bill, receipts)
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse
from typing import List, Optional
import structlog
import uuid

from tabsettle.api.schemas import (
    EqualSplitRequest, ItemSplitRequest, SessionPaymentCreate, SessionPaymentRead, SplitResult
)
from tabsettle.core.dependencies import get_engine
from tabsettle.models import SessionPayment
from tabsettle.services.engine import SettlementEngine
from tabsettle.services.exceptions import SettlementError
from tabsettle.services.receipts import Receipt, format_receipt_text
from tabsettle.services.split_bill import (
    ItemSelection, PaymentCandidate, RemainingItem, build_candidate,
    calculate_change, equal_split_candidate,
)

logger = structlog.get_logger(__name__)

# Mounted under /table-sessions
session_router = APIRouter()
# Mounted under /session-payments
router = APIRouter()


def _submit(engine: SettlementEngine, session_id: uuid.UUID, candidate: PaymentCandidate) -> SessionPayment:
    try:
        return engine.ledger.add_payment(session_id, **candidate.as_payment_kwargs())
    except SettlementError:
        raise
    except Exception as e:
        logger.error("Error recording session payment", session_id=str(session_id), error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record payment"
        )


def _split_result(candidate: PaymentCandidate, payment: Optional[SessionPayment] = None, change=None) -> SplitResult:
    return SplitResult(
        amount=candidate.amount,
        payment_method=candidate.method,
        notes=candidate.notes,
        smac=candidate.smac,
        paid_items=candidate.paid_items,
        change=change,
        payment=SessionPaymentRead.model_validate(payment) if payment else None,
    )


@session_router.get("/{session_id}/payments", response_model=List[SessionPaymentRead])
async def list_session_payments(
    session_id: uuid.UUID,
    engine: SettlementEngine = Depends(get_engine)
):
    """Ledger entries of a session, oldest first"""
    return engine.ledger.payments(session_id)


@session_router.post(
    "/{session_id}/payments",
    response_model=SessionPaymentRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_session_payment(
    session_id: uuid.UUID,
    payment_data: SessionPaymentCreate,
    engine: SettlementEngine = Depends(get_engine)
):
    """Record a partial payment; the session closes itself once fully paid"""
    return _submit(engine, session_id, PaymentCandidate(
        amount=payment_data.amount,
        method=payment_data.payment_method,
        notes=payment_data.notes,
        smac=payment_data.smac,
        paid_items=payment_data.paid_items,
    ))


@session_router.get("/{session_id}/remaining-items", response_model=List[RemainingItem])
async def list_remaining_items(
    session_id: uuid.UUID,
    engine: SettlementEngine = Depends(get_engine)
):
    """Items with unpaid units, for per-item splitting"""
    return engine.ledger.remaining_items(session_id)


@session_router.post("/{session_id}/split/items", response_model=SplitResult)
async def split_by_items(
    session_id: uuid.UUID,
    split_data: ItemSplitRequest,
    engine: SettlementEngine = Depends(get_engine)
):
    """Pay for selected items and covers (``preview`` only prices the selection)"""
    snapshot = engine.ledger.snapshot(session_id)

    selection = ItemSelection(snapshot)
    for selected in split_data.items:
        selection.set_quantity(selected.order_item_id, selected.quantity)
    selection.set_cover_count(split_data.cover_count)

    # Only the fields the operator sent are edits; an explicit null clears the notes
    edits = split_data.model_dump(include={"amount", "notes"}, exclude_unset=True)
    if edits.get("amount") is None:
        edits.pop("amount", None)

    candidate = build_candidate(
        selection,
        snapshot,
        method=split_data.payment_method,
        smac=split_data.smac,
    ).override(**edits)

    if split_data.preview:
        return _split_result(candidate)
    return _split_result(candidate, _submit(engine, session_id, candidate))


@session_router.post("/{session_id}/split/equal", response_model=SplitResult)
async def split_equally(
    session_id: uuid.UUID,
    split_data: EqualSplitRequest,
    engine: SettlementEngine = Depends(get_engine)
):
    """Alla romana: pay the share of ``paying_people`` guests"""
    summary = engine.ledger.summary(session_id)
    candidate = equal_split_candidate(
        summary.remaining,
        split_data.total_people,
        split_data.paying_people,
        method=split_data.payment_method,
        smac=split_data.smac,
    )
    change = (
        calculate_change(candidate.amount, split_data.tendered)
        if split_data.tendered is not None else None
    )

    if split_data.preview:
        return _split_result(candidate, change=change)
    return _split_result(candidate, _submit(engine, session_id, candidate), change=change)


@router.get("/{payment_id}/receipt", response_model=Receipt)
async def get_partial_receipt(
    payment_id: uuid.UUID,
    format: str = Query("json", pattern="^(json|text)$"),
    engine: SettlementEngine = Depends(get_engine)
):
    """Receipt for one partial payment, as JSON or printer text"""
    receipt = engine.receipts.partial_receipt(payment_id)
    if format == "text":
        return PlainTextResponse(format_receipt_text(receipt))
    return receipt
