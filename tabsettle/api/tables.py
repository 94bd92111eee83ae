"""
Tables API endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select
from typing import List
import structlog

from tabsettle.api.schemas import TableCreate, TableRead
from tabsettle.core.database import get_session
from tabsettle.core.events import TablesUpdated, event_bus
from tabsettle.models.table import Table

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/", response_model=TableRead, status_code=status.HTTP_201_CREATED)
async def create_table(
    table_data: TableCreate,
    session: Session = Depends(get_session)
):
    """Create a new table"""
    try:
        new_table = Table(name=table_data.name, capacity=table_data.capacity)
        session.add(new_table)
        session.commit()
        session.refresh(new_table)

    except Exception as e:
        session.rollback()
        logger.error("Error creating table", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create table"
        )

    event_bus.publish(TablesUpdated(table_ids=[new_table.id]))
    logger.info("Table created", table_id=str(new_table.id), name=new_table.name)
    return new_table


@router.get("/", response_model=List[TableRead])
async def list_tables(
    session: Session = Depends(get_session)
):
    """List active tables with their occupancy"""
    query = select(Table).where(Table.is_active == True).order_by(Table.name)  # noqa: E712
    return session.exec(query).all()
