"""Bodega FastAPI application.

Takes wine orders over HTTP, hands each dispenser its share of the order over
the broker, and keeps order status in step with what the devices report back.

Usage:
    uvicorn app:app --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# Initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay ("production" → PostgreSQL).
from ordering.domain import ordering  # noqa: E402

ordering.init()

from fulfillment.coordinator import get_coordinator  # noqa: E402
from fulfillment.coordinator.subscriber import start_listening  # noqa: E402
from ordering.utils.db import setup_db  # noqa: E402
from shared.transport import get_transport  # noqa: E402

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Lifespan: schema, broker session, device subscriptions
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    with ordering.domain_context():
        setup_db(ordering)

    transport = get_transport()
    start_listening(transport, get_coordinator())
    logger.info("Bodega API ready", broker_connected=transport.connected)

    yield

    transport.disconnect()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Bodega API",
    description="Wine order intake and fulfillment tracking",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the ordering domain context for API requests."""
    if request.url.path.startswith("/api"):
        with ordering.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from ordering.api.routes import order_router  # noqa: E402

app.include_router(order_router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "transport": {"connected": get_transport().connected},
        }
    )
