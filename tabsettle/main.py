"""
Tab Settlement - Main Application Entry Point
Table-session settlement engine for restaurant POS
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from tabsettle import __version__
from tabsettle.core.config import get_settings
from tabsettle.core.database import init_db
from tabsettle.core.events import event_bus
from tabsettle.core.logging import configure_logging
from tabsettle.core.websocket_manager import manager
from tabsettle.api import orders, session_payments, shop_settings, table_sessions, tables, websockets
from tabsettle.services.exceptions import SettlementError

configure_logging()

logger = structlog.get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Initializing settlement backend", environment=settings.ENVIRONMENT)
    init_db()
    manager.bind_loop(asyncio.get_running_loop())
    manager.attach(event_bus)

    yield

    # Shutdown
    manager.detach(event_bus)
    logger.info("Shutting down settlement backend")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Table sessions, split bills and partial payments",
    version=__version__,
    lifespan=lifespan,
)

# Configure middleware stack
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SettlementError)
async def settlement_error_handler(request: Request, exc: SettlementError):
    """Map domain rejections to their HTTP status"""
    logger.warning(
        "Request rejected",
        path=request.url.path,
        error_code=exc.error_code,
        detail=exc.message,
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


# Include routers
prefix = settings.API_V1_PREFIX
app.include_router(tables.router, prefix=f"{prefix}/tables", tags=["tables"])
app.include_router(shop_settings.router, prefix=f"{prefix}/settings", tags=["settings"])
app.include_router(table_sessions.router, prefix=f"{prefix}/table-sessions", tags=["table-sessions"])
app.include_router(session_payments.session_router, prefix=f"{prefix}/table-sessions", tags=["session-payments"])
app.include_router(session_payments.router, prefix=f"{prefix}/session-payments", tags=["session-payments"])
app.include_router(orders.router, prefix=f"{prefix}/orders", tags=["orders"])
app.include_router(orders.items_router, prefix=f"{prefix}/order-items", tags=["orders"])
app.include_router(websockets.router, prefix="/ws", tags=["websockets"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "tabsettle-api"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "tabsettle.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level="info",
    )
