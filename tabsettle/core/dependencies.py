"""
FastAPI dependencies
"""

from fastapi import Depends
from sqlmodel import Session

from tabsettle.core.database import get_session
from tabsettle.core.events import event_bus
from tabsettle.services.engine import SettlementEngine


def get_engine(session: Session = Depends(get_session)) -> SettlementEngine:
    """Settlement services bound to the request's database session"""
    return SettlementEngine(session, event_bus)
