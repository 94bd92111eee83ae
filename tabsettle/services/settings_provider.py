"""
Shop settings access

A single ``shop_settings`` row holds the shop name and the cover charge. Until
staff save one, the values come from application configuration.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlmodel import Session, select
import structlog

from tabsettle.core.config import Settings, get_settings
from tabsettle.core.money import ZERO, to_money
from tabsettle.models import ShopSettings

logger = structlog.get_logger(__name__)


class SettingsProvider:
    """Read and update the shop settings row"""

    def __init__(self, db: Session, config: Optional[Settings] = None):
        self.db = db
        self.config = config or get_settings()

    def _row(self) -> Optional[ShopSettings]:
        return self.db.exec(select(ShopSettings).order_by(ShopSettings.id)).first()

    def get(self) -> ShopSettings:
        """Current settings; an unsaved default row when none exists"""
        row = self._row()
        if row is not None:
            return row
        return ShopSettings(
            shop_name=self.config.DEFAULT_SHOP_NAME,
            cover_charge=to_money(self.config.DEFAULT_COVER_CHARGE),
        )

    def cover_unit_price(self) -> Decimal:
        price = self.get().cover_charge
        if price is None:
            return ZERO
        return to_money(price)

    @property
    def cover_label(self) -> str:
        return self.config.COVER_LABEL

    def update(self, **changes) -> ShopSettings:
        """Create or update the settings row"""
        row = self._row()
        if row is None:
            row = self.get()

        for key, value in changes.items():
            if value is None:
                continue
            if key == "cover_charge":
                value = to_money(value)
            setattr(row, key, value)
        row.updated_at = datetime.utcnow()

        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)

        logger.info(
            "Shop settings updated",
            shop_name=row.shop_name,
            cover_charge=str(row.cover_charge),
        )
        return row
