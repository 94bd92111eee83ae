"""
Table model for restaurant seating
"""

from sqlmodel import Field, SQLModel, Relationship
from datetime import datetime
from typing import Optional, TYPE_CHECKING
from enum import Enum
import uuid

if TYPE_CHECKING:
    from tabsettle.models.table_session import TableSession


class TableStatus(str, Enum):
    """Occupancy of a table"""
    AVAILABLE = "available"
    OCCUPIED = "occupied"     # Has an open session
    RESERVED = "reserved"


class Table(SQLModel, table=True):
    """Table model for restaurant seating"""

    __tablename__ = "tables"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    # Table details
    name: str = Field(max_length=50, index=True, description="Table identifier (e.g., 'A1', 'B3')")
    capacity: int = Field(default=4, description="Maximum number of guests")
    status: str = Field(
        default=TableStatus.AVAILABLE.value,
        max_length=20,
        index=True,
        description="available, occupied or reserved"
    )
    is_active: bool = Field(default=True, index=True)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    # Relationships
    sessions: list["TableSession"] = Relationship(back_populates="table")
