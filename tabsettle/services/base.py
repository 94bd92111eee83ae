"""Base service class with the guarded read-modify-write helpers."""

from datetime import datetime
from typing import Callable, Iterable, Optional, TypeVar
import uuid

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import Session, select
import structlog

from tabsettle.core.events import DomainEvent, EventBus, event_bus
from tabsettle.models import TableSession
from tabsettle.services.exceptions import (
    ConcurrentModification, SessionAlreadyClosed, SessionNotFound, SettlementError
)

T = TypeVar("T")


class BaseService:
    """Base service class providing common functionality for all services.

    Provides:
    - Transaction handling with rollback
    - Guarded session reads (row lock plus version claim)
    - Publishing refresh events after commit
    """

    def __init__(self, db: Session, events: Optional[EventBus] = None):
        self.db = db
        self.events = events or event_bus
        self.logger = structlog.get_logger(self.__class__.__module__).bind(
            service=self.__class__.__name__
        )

    def run_in_transaction(
        self,
        operation: Callable[[], T],
        events: Callable[[T], Iterable[DomainEvent]] = None,
    ) -> T:
        """Execute operation within a transaction; publish events only after commit"""
        try:
            result = operation()
            self.db.commit()
        except SettlementError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error("Database error, transaction rolled back", error=str(e))
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error("Unexpected error, transaction rolled back", error=str(e))
            raise

        if events is not None:
            self.events.publish_all(list(events(result)))
        return result

    def get_session_or_404(self, session_id: uuid.UUID) -> TableSession:
        table_session = self.db.get(TableSession, session_id)
        if table_session is None:
            raise SessionNotFound(session_id)
        return table_session

    def lock_session(self, session_id: uuid.UUID, require_open: bool = True) -> TableSession:
        """Re-read the session row for update, discarding any cached state"""
        table_session = self.db.exec(
            select(TableSession)
            .where(TableSession.id == session_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()

        if table_session is None:
            raise SessionNotFound(session_id)
        if require_open and not table_session.is_open():
            raise SessionAlreadyClosed(session_id)
        return table_session

    def claim_session(self, table_session: TableSession) -> None:
        """Bump the version only if nobody else did since our read"""
        seen = table_session.version
        result = self.db.connection().execute(
            update(TableSession)
            .where(TableSession.id == table_session.id, TableSession.version == seen)
            .values(version=seen + 1, updated_at=datetime.utcnow())
        )
        if result.rowcount != 1:
            self.logger.warning(
                "Stale session write rejected",
                session_id=str(table_session.id),
                seen_version=seen,
            )
            raise ConcurrentModification(table_session.id)
        set_committed_value(table_session, "version", seen + 1)
