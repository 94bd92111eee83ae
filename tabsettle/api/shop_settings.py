"""
Shop settings API endpoints
"""

from fastapi import APIRouter, Depends
import structlog

from tabsettle.api.schemas import ShopSettingsRead, ShopSettingsUpdate
from tabsettle.core.dependencies import get_engine
from tabsettle.services.engine import SettlementEngine

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/", response_model=ShopSettingsRead)
async def get_shop_settings(engine: SettlementEngine = Depends(get_engine)):
    """Current shop settings (defaults until saved)"""
    return engine.settings.get()


@router.put("/", response_model=ShopSettingsRead)
async def update_shop_settings(
    settings_data: ShopSettingsUpdate,
    engine: SettlementEngine = Depends(get_engine)
):
    """Save shop name, contacts and cover charge"""
    return engine.settings.update(**settings_data.model_dump(exclude_unset=True))
