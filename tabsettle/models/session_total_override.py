"""
Session total override model
Audit trail for administrative edits of a session total
"""

from sqlmodel import Field, SQLModel
from decimal import Decimal
from datetime import datetime
from typing import Optional
import uuid


class SessionTotalOverride(SQLModel, table=True):
    """Immutable audit record of a manual total override"""

    __tablename__ = "session_total_overrides"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    session_id: uuid.UUID = Field(
        foreign_key="table_sessions.id",
        index=True,
        description="Session whose total was overridden"
    )

    previous_total: Decimal = Field(max_digits=10, decimal_places=2)
    new_total: Decimal = Field(max_digits=10, decimal_places=2)

    reason: str = Field(max_length=500, description="Why the total was overridden")
    performed_by: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Staff member who performed the override"
    )

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)

    @property
    def delta(self) -> Decimal:
        return self.new_total - self.previous_total
