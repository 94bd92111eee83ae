"""
Orders and order items API endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status
import structlog
import uuid

from tabsettle.api.schemas import (
    OrderItemCreate, OrderItemRead, OrderItemUpdate, OrderRead, OrderStatusUpdate
)
from tabsettle.core.dependencies import get_engine
from tabsettle.models import Order
from tabsettle.services.engine import SettlementEngine
from tabsettle.services.exceptions import SettlementError

logger = structlog.get_logger(__name__)
router = APIRouter()
items_router = APIRouter()


def order_read(order: Order) -> OrderRead:
    """Order with its items for API responses"""
    return OrderRead(
        id=order.id,
        session_id=order.session_id,
        order_number=order.order_number,
        status=order.status,
        notes=order.notes,
        total=order.total,
        created_at=order.created_at,
        items=[OrderItemRead.model_validate(item) for item in order.items],
    )


@router.post("/{order_id}/items", response_model=OrderItemRead, status_code=status.HTTP_201_CREATED)
async def add_order_item(
    order_id: uuid.UUID,
    item_data: OrderItemCreate,
    engine: SettlementEngine = Depends(get_engine)
):
    """Add a line to an order; the session total follows"""
    try:
        return engine.orders.add_item(
            order_id,
            menu_item_name=item_data.menu_item_name,
            price=item_data.price,
            quantity=item_data.quantity,
            notes=item_data.notes,
        )
    except SettlementError:
        raise
    except Exception as e:
        logger.error("Error adding order item", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add order item"
        )


@router.patch("/{order_id}/status", response_model=OrderRead)
async def update_order_status(
    order_id: uuid.UUID,
    status_data: OrderStatusUpdate,
    engine: SettlementEngine = Depends(get_engine)
):
    """Move an order through the kitchen states (cancelled orders leave the total)"""
    try:
        order = engine.orders.set_status(order_id, status_data.status)
    except SettlementError:
        raise
    except Exception as e:
        logger.error("Error updating order status", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update order status"
        )
    return order_read(order)


@items_router.patch("/{item_id}", response_model=OrderItemRead)
async def update_order_item(
    item_id: uuid.UUID,
    item_data: OrderItemUpdate,
    engine: SettlementEngine = Depends(get_engine)
):
    """Change quantity, price or notes of a line"""
    try:
        return engine.orders.update_item(
            item_id,
            quantity=item_data.quantity,
            price=item_data.price,
            notes=item_data.notes,
        )
    except SettlementError:
        raise
    except Exception as e:
        logger.error("Error updating order item", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update order item"
        )


@items_router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order_item(
    item_id: uuid.UUID,
    engine: SettlementEngine = Depends(get_engine)
):
    """Remove a line that has not been paid"""
    try:
        engine.orders.delete_item(item_id)
    except SettlementError:
        raise
    except Exception as e:
        logger.error("Error deleting order item", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete order item"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
