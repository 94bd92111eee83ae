"""
Database configuration and session management
"""

from typing import Generator

from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine
import structlog

from tabsettle.core.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()


def build_engine(url: str, echo: bool = False, **kwargs):
    """Create an engine; SQLite connections are shared across threads and enforce FKs"""
    connect_args = kwargs.pop("connect_args", {})
    if url.startswith("sqlite"):
        connect_args.setdefault("check_same_thread", False)

    engine = create_engine(url, echo=echo, connect_args=connect_args, **kwargs)

    if url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


engine = build_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)


def init_db() -> None:
    """Initialize database tables"""
    # Register every table on the metadata
    import tabsettle.models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Database tables created", url=engine.url.render_as_string(hide_password=True))


def get_session() -> Generator[Session, None, None]:
    """Dependency to get database session"""
    with Session(engine) as session:
        yield session
