"""
Shop settings model (single row)
"""

from sqlmodel import Field, SQLModel
from decimal import Decimal
from datetime import datetime
from typing import Optional


class ShopSettings(SQLModel, table=True):
    """Shop-wide settings consumed by the settlement engine"""

    __tablename__ = "shop_settings"

    id: Optional[int] = Field(default=None, primary_key=True)

    shop_name: str = Field(max_length=255)
    address: Optional[str] = Field(default=None, max_length=500)
    phone: Optional[str] = Field(default=None, max_length=50)
    cover_charge: Decimal = Field(
        default=Decimal("0.00"),
        max_digits=10,
        decimal_places=2,
        description="Cover charge per guest (0 disables the cover feature)"
    )
    smac_enabled: bool = Field(default=False, description="Show SMAC markers on payments")

    updated_at: Optional[datetime] = Field(default=None)
