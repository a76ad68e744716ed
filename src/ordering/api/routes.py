"""FastAPI routes for the Ordering domain — intake, listing, and probes."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from fulfillment.coordinator import get_coordinator
from shared.errors import PersistenceError, ValidationError
from shared.transport import get_transport

from ordering.api.schemas import (
    DatabaseProbeResponse,
    ErrorResponse,
    OrderListResponse,
    OrderPlacedResponse,
    PlaceOrderRequest,
    TrackedOrdersResponse,
    TransportStatusResponse,
)
from ordering.order.ingestion import place_order
from ordering.order.listing import list_orders_with_items, sample_orders


def _error(status_code: int, message: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, details=str(exc)).model_dump(),
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/api", tags=["orders"])


@order_router.post("/order", response_model=OrderPlacedResponse)
async def create_order(body: PlaceOrderRequest | None = None):
    """Register an order and send each dispenser its total."""
    try:
        placement = place_order(body.order if body is not None else None)
    except ValidationError as exc:
        return _error(400, "Order is empty or malformed.", exc)
    except PersistenceError as exc:
        return _error(500, "Failed to register the order.", exc)
    return OrderPlacedResponse(order_id=placement.order_id)


@order_router.get("/orders", response_model=OrderListResponse)
async def list_orders():
    """List orders with their items, unfinished first, newest first."""
    try:
        orders = list_orders_with_items()
    except PersistenceError as exc:
        return _error(500, "Failed to fetch orders.", exc)
    return OrderListResponse(orders=orders)


@order_router.get("/test-db", response_model=DatabaseProbeResponse)
async def test_db():
    """Read a handful of orders to prove the store is reachable."""
    try:
        data = sample_orders(limit=5)
    except PersistenceError as exc:
        return _error(500, "DB test failed", exc)
    return DatabaseProbeResponse(data=data)


@order_router.get("/mqtt-status", response_model=TransportStatusResponse)
async def transport_status() -> TransportStatusResponse:
    """Report whether the broker session is up."""
    return TransportStatusResponse(connected=get_transport().connected)


@order_router.get("/fulfillment", response_model=TrackedOrdersResponse)
async def tracked_orders() -> TrackedOrdersResponse:
    """Show the orders the coordinator is currently correlating feedback for."""
    return TrackedOrdersResponse(tracked=get_coordinator().snapshot())
