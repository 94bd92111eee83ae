"""
API schemas for tables, sessions, orders and payments
"""

from sqlmodel import SQLModel, Field
from datetime import datetime
from typing import Optional, List
from decimal import Decimal
import uuid

from tabsettle.models.session_payment import PaymentMethod, PaidItem
from tabsettle.models.table_session import ClosingMethod
from tabsettle.models.order import OrderStatus

# ============================================================================
# Table Schemas
# ============================================================================

class TableCreate(SQLModel):
    name: str = Field(max_length=50)
    capacity: int = 4


class TableRead(SQLModel):
    id: uuid.UUID
    name: str
    capacity: int
    status: str
    is_active: bool


# ============================================================================
# Shop Settings Schemas
# ============================================================================

class ShopSettingsRead(SQLModel):
    shop_name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    cover_charge: Decimal
    smac_enabled: bool = False


class ShopSettingsUpdate(SQLModel):
    shop_name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    cover_charge: Optional[Decimal] = Field(default=None, ge=0)
    smac_enabled: Optional[bool] = None


# ============================================================================
# Table Session Schemas
# ============================================================================

class TableSessionCreate(SQLModel):
    """Schema for opening a tab on a table"""
    table_id: uuid.UUID
    covers: int = Field(default=1, ge=0)
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None


class TableSessionRead(SQLModel):
    id: uuid.UUID
    table_id: uuid.UUID
    status: str
    covers: int
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    total: Decimal
    closing_payment_method: Optional[str] = None
    closing_smac_flag: bool
    opened_at: datetime
    closed_at: Optional[datetime] = None
    version: int


class CoverUpdate(SQLModel):
    include: bool


class SessionClose(SQLModel):
    method: Optional[ClosingMethod] = None
    smac: bool = False
    include_cover: Optional[bool] = None
    confirm_empty: bool = False


class SessionTransfer(SQLModel):
    new_table_id: uuid.UUID


class TotalOverrideCreate(SQLModel):
    total: Decimal
    reason: str = Field(min_length=1, max_length=500)
    performed_by: Optional[str] = None


class TotalOverrideRead(SQLModel):
    id: uuid.UUID
    session_id: uuid.UUID
    previous_total: Decimal
    new_total: Decimal
    delta: Decimal
    reason: str
    performed_by: Optional[str] = None
    created_at: datetime


# ============================================================================
# Order Schemas
# ============================================================================

class OrderItemCreate(SQLModel):
    menu_item_name: str = Field(max_length=255)
    price: Decimal
    quantity: int = Field(default=1, ge=1)
    notes: Optional[str] = None


class OrderItemUpdate(SQLModel):
    quantity: Optional[int] = Field(default=None, ge=1)
    price: Optional[Decimal] = None
    notes: Optional[str] = None


class OrderItemRead(SQLModel):
    id: uuid.UUID
    order_id: uuid.UUID
    menu_item_name: str
    price: Decimal
    quantity: int
    notes: Optional[str] = None


class OrderCreate(SQLModel):
    items: List[OrderItemCreate] = []
    notes: Optional[str] = None


class OrderStatusUpdate(SQLModel):
    status: OrderStatus


class OrderRead(SQLModel):
    id: uuid.UUID
    session_id: Optional[uuid.UUID] = None
    order_number: Optional[int] = None
    status: str
    notes: Optional[str] = None
    total: Decimal
    created_at: datetime
    items: List[OrderItemRead] = []


# ============================================================================
# Payment Schemas
# ============================================================================

class SessionPaymentCreate(SQLModel):
    amount: Decimal
    payment_method: PaymentMethod
    notes: Optional[str] = None
    smac: bool = False
    paid_items: List[PaidItem] = []


class SessionPaymentRead(SQLModel):
    id: uuid.UUID
    session_id: uuid.UUID
    amount: Decimal
    payment_method: str
    paid_at: datetime
    notes: Optional[str] = None
    smac_flag: bool
    paid_items: List[dict] = []


class SelectedItem(SQLModel):
    order_item_id: uuid.UUID
    quantity: int = Field(ge=0)


class ItemSplitRequest(SQLModel):
    """Pay for selected items and covers; ``amount``/``notes`` override the proposal"""
    items: List[SelectedItem] = []
    cover_count: int = Field(default=0, ge=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    smac: bool = False
    amount: Optional[Decimal] = None
    notes: Optional[str] = None
    preview: bool = False


class EqualSplitRequest(SQLModel):
    """Alla romana: ``paying_people`` out of ``total_people`` pay their share"""
    total_people: int = Field(ge=1)
    paying_people: int = Field(default=1, ge=1)
    payment_method: PaymentMethod = PaymentMethod.CASH
    smac: bool = False
    tendered: Optional[Decimal] = None
    preview: bool = False


class SplitResult(SQLModel):
    amount: Decimal
    payment_method: PaymentMethod
    notes: Optional[str] = None
    smac: bool = False
    paid_items: List[PaidItem] = []
    change: Optional[Decimal] = None
    payment: Optional[SessionPaymentRead] = None
