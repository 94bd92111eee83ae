"""
Table sessions API endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from typing import List
import structlog
import uuid

from tabsettle.api.orders import order_read
from tabsettle.api.schemas import (
    CoverUpdate, OrderCreate, OrderRead, SessionClose, SessionTransfer,
    TableSessionCreate, TableSessionRead, TotalOverrideCreate, TotalOverrideRead,
)
from tabsettle.core.dependencies import get_engine
from tabsettle.services.engine import SettlementEngine
from tabsettle.services.exceptions import SettlementError
from tabsettle.services.ledger import SettlementSummary

logger = structlog.get_logger(__name__)
router = APIRouter()


def _server_error(action: str, error: Exception) -> HTTPException:
    logger.error(f"Error {action}", error=str(error))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}"
    )


@router.post("/", response_model=TableSessionRead, status_code=status.HTTP_201_CREATED)
async def open_table_session(
    session_data: TableSessionCreate,
    engine: SettlementEngine = Depends(get_engine)
):
    """Open a tab on a free table"""
    try:
        return engine.lifecycle.open_session(
            session_data.table_id,
            covers=session_data.covers,
            customer_name=session_data.customer_name,
            customer_phone=session_data.customer_phone,
            notes=session_data.notes,
        )
    except SettlementError:
        raise
    except Exception as e:
        raise _server_error("open table session", e)


@router.get("/", response_model=List[TableSessionRead])
async def list_active_sessions(engine: SettlementEngine = Depends(get_engine)):
    """List open table sessions"""
    return engine.lifecycle.list_active_sessions()


@router.get("/{session_id}", response_model=TableSessionRead)
async def get_table_session(
    session_id: uuid.UUID,
    engine: SettlementEngine = Depends(get_engine)
):
    """Get table session details"""
    return engine.lifecycle.get_session(session_id)


@router.get("/{session_id}/summary", response_model=SettlementSummary)
async def get_settlement_summary(
    session_id: uuid.UUID,
    engine: SettlementEngine = Depends(get_engine)
):
    """Total, paid, remaining and cover state of a session"""
    return engine.ledger.summary(session_id)


@router.post("/{session_id}/cover", response_model=TableSessionRead)
async def set_cover_charge(
    session_id: uuid.UUID,
    cover_data: CoverUpdate,
    engine: SettlementEngine = Depends(get_engine)
):
    """Add or remove the cover charge"""
    try:
        return engine.cover.set_cover_applied(session_id, cover_data.include)
    except SettlementError:
        raise
    except Exception as e:
        raise _server_error("update cover charge", e)


@router.post("/{session_id}/close", response_model=TableSessionRead)
async def close_table_session(
    session_id: uuid.UUID,
    close_data: SessionClose,
    engine: SettlementEngine = Depends(get_engine)
):
    """Close a session and free its table"""
    try:
        return engine.lifecycle.close_session(
            session_id,
            method=close_data.method,
            smac=close_data.smac,
            include_cover=close_data.include_cover,
            confirm_empty=close_data.confirm_empty,
        )
    except SettlementError:
        raise
    except Exception as e:
        raise _server_error("close table session", e)


@router.post("/{session_id}/transfer", response_model=TableSessionRead)
async def transfer_table_session(
    session_id: uuid.UUID,
    transfer_data: SessionTransfer,
    engine: SettlementEngine = Depends(get_engine)
):
    """Move a session to another table"""
    try:
        return engine.lifecycle.transfer_session(session_id, transfer_data.new_table_id)
    except SettlementError:
        raise
    except Exception as e:
        raise _server_error("transfer table session", e)


@router.post("/{session_id}/override-total", response_model=TotalOverrideRead)
async def override_session_total(
    session_id: uuid.UUID,
    override_data: TotalOverrideCreate,
    engine: SettlementEngine = Depends(get_engine)
):
    """Set the session total by hand (audited)"""
    try:
        audit = engine.lifecycle.override_total(
            session_id,
            override_data.total,
            reason=override_data.reason,
            performed_by=override_data.performed_by,
        )
    except SettlementError:
        raise
    except Exception as e:
        raise _server_error("override session total", e)

    return TotalOverrideRead(
        id=audit.id,
        session_id=audit.session_id,
        previous_total=audit.previous_total,
        new_total=audit.new_total,
        delta=audit.delta,
        reason=audit.reason,
        performed_by=audit.performed_by,
        created_at=audit.created_at,
    )


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_table_session(
    session_id: uuid.UUID,
    engine: SettlementEngine = Depends(get_engine)
):
    """Delete a session with its orders and payments"""
    try:
        engine.lifecycle.delete_session(session_id)
    except SettlementError:
        raise
    except Exception as e:
        raise _server_error("delete table session", e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{session_id}/orders", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
async def create_session_order(
    session_id: uuid.UUID,
    order_data: OrderCreate,
    engine: SettlementEngine = Depends(get_engine)
):
    """Send a new comanda for the session"""
    try:
        order = engine.orders.create_order(
            session_id,
            items=[item.model_dump() for item in order_data.items],
            notes=order_data.notes,
        )
    except SettlementError:
        raise
    except Exception as e:
        raise _server_error("create order", e)

    return order_read(order)
